import re
from datetime import timedelta

import pytest
from django.db import transaction
from django.db.models import QuerySet

from contracts.errors import InvalidRequest, InvalidState, NotFound, PolicyViolation
from contracts.models import (
    CancelTicket,
    Contract,
    ContractFlow,
    ContractStatus,
    FinalUpload,
    MilestoneStatus,
    PartyRole,
    ResolutionTicket,
    RevisionType,
    UploadStatus,
)
from contracts.services import contracts as contract_service
from contracts.services import resolution, tickets, uploads
from payments import escrow


@pytest.mark.django_db
class TestCreateContract:

    def test_contract_is_active_and_numbered(self, contract, now):
        assert contract.status == ContractStatus.ACTIVE
        assert re.fullmatch(r"CTR-\d{8}-\d{4}", contract.number)
        assert contract.total_cents == 1_000_000
        assert contract.grace_ends_at == contract.deadline_at + timedelta(days=7)

    def test_numbers_increase_within_a_day(self, make_contract):
        first = make_contract()
        second = make_contract()

        assert int(second.number[-4:]) == int(first.number[-4:]) + 1

    def test_total_includes_options_and_addons(self, make_contract):
        contract = make_contract(base_price_cents=100_000, option_fees_cents=20_000, addons_cents=5_000)

        assert contract.total_cents == 125_000
        assert escrow.balance(contract) == 125_000

    def test_first_milestone_starts_in_progress(self, milestone_contract):
        milestones = list(milestone_contract.milestones.all())

        assert [m.status for m in milestones] == [
            MilestoneStatus.IN_PROGRESS, MilestoneStatus.PENDING, MilestoneStatus.PENDING,
        ]
        assert milestone_contract.current_milestone_index == 0

    def test_milestone_percentages_must_add_up(self, make_contract):
        with pytest.raises(InvalidRequest):
            make_contract(flow=ContractFlow.MILESTONE, milestones=[
                {"title": "Sketch", "percent": 30},
                {"title": "Colour", "percent": 60},
            ])

    def test_client_and_artist_must_differ(self, make_contract, client_user):
        with pytest.raises(InvalidRequest):
            make_contract(artist=client_user)

    def test_per_milestone_revisions_need_milestone_flow(self, make_contract):
        with pytest.raises(InvalidRequest):
            make_contract(revision_type=RevisionType.MILESTONE)

    def test_unknown_changeable_field_is_rejected(self, make_contract):
        with pytest.raises(InvalidRequest):
            make_contract(allow_contract_change=True, changeable_fields=["total_cents"])


@pytest.mark.django_db
class TestPayoutPreview:

    def test_preview_matches_client_cancellation(self, contract, now):
        preview = contract_service.payout_preview(
            contract, initiated_by=PartyRole.CLIENT, work_progress=30, as_of=now
        )

        assert preview["artist_amount"] == 350_000
        assert preview["client_amount"] == 650_000
        assert preview["is_late"] is False
        assert preview["already_released"] == 0

    def test_preview_after_deadline_is_late(self, contract):
        preview = contract_service.payout_preview(
            contract,
            initiated_by=PartyRole.ARTIST,
            work_progress=30,
            as_of=contract.deadline_at + timedelta(hours=1),
        )

        assert preview["is_late"] is True
        assert preview["artist_amount"] == 150_000

    def test_preview_on_closed_contract_is_refused(self, contract, now):
        contract_service.mark_not_completed(contract, now=now)

        with pytest.raises(InvalidState):
            contract_service.payout_preview(contract, initiated_by=PartyRole.CLIENT, as_of=now)


@pytest.mark.django_db
class TestOverdueContracts:

    def test_contract_past_grace_is_not_completed(self, contract):
        as_of = contract.grace_ends_at + timedelta(minutes=1)

        moved = contract_service.expire_overdue_contracts(as_of)

        contract.refresh_from_db()
        assert moved == 1
        assert contract.status == ContractStatus.NOT_COMPLETED
        assert contract.artist_payout_cents == 0
        assert contract.client_payout_cents == contract.total_cents
        assert escrow.balance(contract) == 0

    def test_contract_within_grace_is_left_alone(self, contract):
        moved = contract_service.expire_overdue_contracts(contract.grace_ends_at - timedelta(minutes=1))

        contract.refresh_from_db()
        assert moved == 0
        assert contract.status == ContractStatus.ACTIVE

    def test_contract_under_dispute_is_left_alone(self, contract, client_user, artist_user, now):
        ticket = tickets.create_cancel_ticket(contract.pk, client_user, reason="Changed my mind", now=now)
        tickets.respond_cancel_ticket(ticket.pk, artist_user, decision="reject", reason="Almost done", now=now)
        resolution.escalate(
            contract.pk,
            client_user,
            target_type="cancel_ticket",
            target_id=ticket.pk,
            description="The artist stopped answering messages.",
            proof_images=["chat.png"],
            now=now,
        )

        moved = contract_service.expire_overdue_contracts(contract.grace_ends_at + timedelta(days=1))

        contract.refresh_from_db()
        assert moved == 0
        assert contract.is_active


@pytest.mark.django_db
class TestChangeSetValidation:

    def test_field_outside_contract_terms_is_a_policy_violation(self, change_contract):
        with pytest.raises(PolicyViolation):
            contract_service.validate_change_set(change_contract, {"options": {"background": True}})

    def test_deadline_is_normalised_to_iso(self, change_contract, now):
        cleaned = contract_service.validate_change_set(
            change_contract, {"deadline_at": (now + timedelta(days=40)).isoformat()}
        )

        assert cleaned["deadline_at"] == (now + timedelta(days=40)).isoformat()

    def test_bad_deadline_is_rejected(self, change_contract):
        with pytest.raises(InvalidRequest):
            contract_service.validate_change_set(change_contract, {"deadline_at": "next week"})


@pytest.fixture
def lock_order(monkeypatch):
    """Models in the order their rows are locked with ``select_for_update``."""
    seen = []
    original = QuerySet.select_for_update

    def recording(self, *args, **kwargs):
        seen.append(self.model)
        return original(self, *args, **kwargs)

    monkeypatch.setattr(QuerySet, "select_for_update", recording)
    return seen


@pytest.mark.django_db
class TestRowLocking:

    def test_ticket_is_locked_after_its_contract(self, contract, client_user, artist_user, now, lock_order):
        ticket = tickets.create_cancel_ticket(contract.pk, client_user, reason="Budget cut", now=now)
        lock_order.clear()

        tickets.respond_cancel_ticket(ticket.pk, artist_user, decision="accept", now=now)

        assert lock_order == [Contract, CancelTicket]

    def test_locked_ticket_carries_the_locked_contract(self, contract, client_user, now):
        ticket = tickets.create_cancel_ticket(contract.pk, client_user, reason="Budget cut", now=now)

        with transaction.atomic():
            locked, locked_contract = contract_service.lock_entity(CancelTicket, ticket.pk)

        assert locked.contract is locked_contract
        assert locked_contract.pk == contract.pk

    def test_missing_ticket_is_not_found(self, contract):
        with pytest.raises(NotFound):
            contract_service.lock_entity(CancelTicket, 999_999)

    def test_resolution_is_locked_after_its_contract(self, contract, client_user, artist_user, now, later, lock_order):
        ticket = tickets.create_cancel_ticket(contract.pk, client_user, reason="Budget cut", now=now)
        tickets.respond_cancel_ticket(ticket.pk, artist_user, decision="reject", reason="Nearly done", now=now)
        dispute = resolution.escalate(
            contract.pk, client_user, target_type="cancel_ticket", target_id=ticket.pk,
            description="The artist stopped answering messages.", proof_images=["chat.png"], now=now,
        )
        lock_order.clear()

        resolution.cancel_resolution(dispute.pk, client_user, now=later(1))

        assert lock_order == [Contract, ResolutionTicket]

    def test_timeout_sweep_locks_the_contract_first(self, contract, artist_user, now, later, lock_order):
        final = uploads.create_final_upload(contract.pk, artist_user, images=["done.png"], now=now)
        lock_order.clear()

        assert uploads.auto_resolve_uploads(later(25))["final"] == 1

        assert lock_order[:2] == [Contract, FinalUpload]
        final.refresh_from_db()
        assert final.status == UploadStatus.FORCED_ACCEPTED
