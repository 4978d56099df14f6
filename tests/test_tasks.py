from io import StringIO

import pytest
from django.core import mail
from django.core.management import CommandError, call_command

from contracts.models import CancelTicketStatus, ContractStatus
from contracts.services import tickets, uploads
from contracts.tasks import (
    task_auto_resolve_expired_tickets,
    task_auto_resolve_expired_uploads,
    task_expire_counterproof_windows,
    task_mark_overdue_contracts_not_completed,
    task_send_lifecycle_notification,
)


@pytest.mark.django_db
class TestSweepTasks:

    def test_ticket_sweep_reports_counts(self, contract, client_user, now, later):
        ticket = tickets.create_cancel_ticket(contract.pk, client_user, reason="Budget cut", now=now)

        counts = task_auto_resolve_expired_tickets.apply(kwargs={"as_of": later(49).isoformat()}).get()

        ticket.refresh_from_db()
        assert counts == {"cancel": 1, "revision": 0, "change": 0}
        assert ticket.status == CancelTicketStatus.FORCED_ACCEPTED

    def test_upload_sweep_reports_counts(self, contract, artist_user, now, later):
        uploads.create_final_upload(contract.pk, artist_user, images=["done.png"], now=now)

        counts = task_auto_resolve_expired_uploads.apply(kwargs={"as_of": later(25).isoformat()}).get()

        contract.refresh_from_db()
        assert counts == {"milestone": 0, "revision": 0, "final": 1}
        assert contract.status == ContractStatus.COMPLETED

    def test_counterproof_sweep_with_nothing_to_do(self, later):
        assert task_expire_counterproof_windows.apply(kwargs={"as_of": later(1).isoformat()}).get() == {"resolution": 0}

    def test_overdue_sweep(self, contract):
        as_of = contract.grace_ends_at.isoformat()

        assert task_mark_overdue_contracts_not_completed.apply(kwargs={"as_of": as_of}).get() == {"contract": 0}

    def test_bad_timestamp_fails_the_task(self):
        with pytest.raises(ValueError):
            task_auto_resolve_expired_tickets.apply(kwargs={"as_of": "yesterday"}, throw=True).get()


@pytest.mark.django_db
class TestSweepCommand:

    def test_runs_every_sweep(self, contract, later):
        out = StringIO()

        call_command("run_lifecycle_sweeps", "--as-of", later(1).isoformat(), stdout=out)

        output = out.getvalue()
        assert "tickets:" in output
        assert "overdue contracts:" in output
        assert "Lifecycle sweeps finished." in output

    def test_rejects_bad_timestamp(self):
        with pytest.raises(CommandError):
            call_command("run_lifecycle_sweeps", "--as-of", "soon", stdout=StringIO())


@pytest.mark.django_db
class TestNotifications:

    def test_notification_mails_both_parties(self, contract, client_user, artist_user):
        task_send_lifecycle_notification.apply(args=["contracts.Contract", contract.pk]).get()

        assert sorted(m.to[0] for m in mail.outbox) == sorted([client_user.email, artist_user.email])
        assert all(contract.number in m.subject for m in mail.outbox)

    def test_missing_row_is_skipped(self):
        task_send_lifecycle_notification.apply(args=["contracts.Contract", 999_999]).get()

        assert mail.outbox == []

    def test_transition_notifies_after_commit(
        self, contract, client_user, now, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            tickets.create_cancel_ticket(contract.pk, client_user, reason="Budget cut", now=now)

        assert len(callbacks) == 1
        assert len(mail.outbox) == 2
        assert "cancellation request" in mail.outbox[0].subject.lower()
