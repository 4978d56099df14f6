import pytest

from contracts.errors import Conflict, InvalidRequest, InvalidState, PolicyViolation, Unauthorized, WindowClosed
from contracts.models import RevisionTicketStatus, RevisionType, UploadStatus
from contracts.policies import RevisionPolicy
from contracts.services import tickets, uploads
from payments import escrow


def deliver_revision(ticket, client_user, artist_user, now):
    upload = uploads.create_revision_upload(ticket.pk, artist_user, images=["fixed.png"], now=now)
    return uploads.review_upload("revision", upload.pk, client_user, decision="accept", now=now)


@pytest.mark.django_db
class TestCreateRevisionTicket:

    def test_first_revision_is_free(self, revision_contract, client_user, now):
        ticket = tickets.create_revision_ticket(
            revision_contract.pk, client_user, description="Hands look off", now=now
        )

        revision_contract.refresh_from_db()
        assert ticket.status == RevisionTicketStatus.PENDING
        assert ticket.fee_cents == 0
        assert ticket.milestone_index is None
        assert revision_contract.revisions_done == 1

    def test_only_the_client_requests_revisions(self, revision_contract, artist_user, now):
        with pytest.raises(Unauthorized):
            tickets.create_revision_ticket(revision_contract.pk, artist_user, description="Self edit", now=now)

    def test_contract_without_revisions_refuses(self, contract, client_user, now):
        with pytest.raises(PolicyViolation):
            tickets.create_revision_ticket(contract.pk, client_user, description="Please fix", now=now)

    def test_one_open_revision_at_a_time(self, revision_contract, client_user, now):
        tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)

        with pytest.raises(Conflict):
            tickets.create_revision_ticket(revision_contract.pk, client_user, description="Feet", now=now)

    def test_limit_without_extras_is_a_policy_violation(self, make_contract, client_user, artist_user, now):
        contract = make_contract(
            revision_type=RevisionType.STANDARD,
            revision_policy=RevisionPolicy(free=1, limited=True, extra_allowed=False),
        )
        ticket = tickets.create_revision_ticket(contract.pk, client_user, description="Hands", now=now)
        tickets.respond_revision_ticket(ticket.pk, artist_user, decision="accept", now=now)
        deliver_revision(ticket, client_user, artist_user, now)

        with pytest.raises(PolicyViolation):
            tickets.create_revision_ticket(contract.pk, client_user, description="Feet", now=now)

    def test_unlimited_policy_never_charges(self, make_contract, client_user, artist_user, now):
        contract = make_contract(
            revision_type=RevisionType.STANDARD,
            revision_policy=RevisionPolicy(free=0, limited=False, extra_allowed=True, fee_cents=9_999),
        )

        ticket = tickets.create_revision_ticket(contract.pk, client_user, description="Hands", now=now)

        assert ticket.fee_cents == 0


@pytest.mark.django_db
class TestRevisionFlow:

    def test_free_revision_delivery_resolves_ticket(self, revision_contract, client_user, artist_user, now):
        ticket = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)
        tickets.respond_revision_ticket(ticket.pk, artist_user, decision="accept", now=now)

        upload = deliver_revision(ticket, client_user, artist_user, now)

        ticket.refresh_from_db()
        assert upload.status == UploadStatus.ACCEPTED
        assert ticket.resolved is True

    def test_extra_revision_must_be_paid_before_delivery(self, revision_contract, client_user, artist_user, now):
        first = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)
        tickets.respond_revision_ticket(first.pk, artist_user, decision="accept", now=now)
        deliver_revision(first, client_user, artist_user, now)

        second = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Feet", now=now)
        assert second.fee_cents == 5_000
        second = tickets.respond_revision_ticket(second.pk, artist_user, decision="accept", now=now)
        assert second.awaiting_payment

        with pytest.raises(InvalidState):
            uploads.create_revision_upload(second.pk, artist_user, images=["feet.png"], now=now)
        with pytest.raises(InvalidRequest):
            tickets.pay_revision_fee(second.pk, client_user, amount_cents=4_000, now=now)

        second = tickets.pay_revision_fee(second.pk, client_user, amount_cents=5_000, now=now)

        revision_contract.refresh_from_db()
        assert second.status == RevisionTicketStatus.PAID
        assert second.escrow_reference == f"revision:{second.pk}:fee"
        assert revision_contract.runtime_fees_cents == 5_000
        assert revision_contract.total_cents == 1_005_000
        assert escrow.balance(revision_contract) == 1_005_000
        assert uploads.create_revision_upload(second.pk, artist_user, images=["feet.png"], now=now).pk

    def test_rejection_needs_reason_and_returns_the_slot(self, revision_contract, client_user, artist_user, now):
        ticket = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)

        with pytest.raises(InvalidRequest):
            tickets.respond_revision_ticket(ticket.pk, artist_user, decision="reject", now=now)

        ticket = tickets.respond_revision_ticket(
            ticket.pk, artist_user, decision="reject", reason="Out of scope", now=now
        )

        revision_contract.refresh_from_db()
        assert ticket.status == RevisionTicketStatus.REJECTED
        assert ticket.artist_rejection_reason == "Out of scope"
        assert revision_contract.revisions_done == 0

    def test_client_can_withdraw_pending_request(self, revision_contract, client_user, now):
        ticket = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)

        ticket = tickets.cancel_revision_ticket(ticket.pk, client_user, now=now)

        revision_contract.refresh_from_db()
        assert ticket.status == RevisionTicketStatus.CANCELLED
        assert revision_contract.revisions_done == 0

    def test_withdrawing_after_the_window_forces_the_revision(self, revision_contract, client_user, now, later):
        ticket = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)

        with pytest.raises(WindowClosed):
            tickets.cancel_revision_ticket(ticket.pk, client_user, now=later(49))

        ticket.refresh_from_db()
        revision_contract.refresh_from_db()
        assert ticket.status == RevisionTicketStatus.FORCED_ACCEPTED_ARTIST
        assert revision_contract.revisions_done == 1

    def test_unanswered_revision_is_forced_on_the_artist(self, revision_contract, client_user, artist_user, now, later):
        ticket = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)

        with pytest.raises(WindowClosed):
            tickets.respond_revision_ticket(ticket.pk, artist_user, decision="reject", reason="No", now=later(49))

        ticket.refresh_from_db()
        assert ticket.status == RevisionTicketStatus.FORCED_ACCEPTED_ARTIST
        assert ticket.ready_for_delivery


@pytest.mark.django_db
class TestMilestoneRevisions:

    def test_revision_counts_against_current_milestone(self, make_contract, client_user, now):
        policy = RevisionPolicy(free=2)
        contract = make_contract(
            flow="milestone",
            revision_type=RevisionType.MILESTONE,
            milestones=[
                {"title": "Sketch", "percent": 50, "revision_policy": policy},
                {"title": "Colour", "percent": 50, "revision_policy": policy},
            ],
        )

        ticket = tickets.create_revision_ticket(contract.pk, client_user, description="Pose", now=now)

        sketch = contract.milestones.get(index=0)
        contract.refresh_from_db()
        assert ticket.milestone_index == 0
        assert sketch.revisions_done == 1
        assert contract.revisions_done == 0
