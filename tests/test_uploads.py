from datetime import timedelta

import pytest

from contracts.errors import Conflict, InvalidRequest, InvalidState, PolicyViolation, Unauthorized, WindowClosed
from contracts.models import ContractStatus, MilestoneStatus, UploadStatus
from contracts.services import tickets, uploads
from payments import escrow


@pytest.mark.django_db
class TestProgressUploads:

    def test_standard_contract_accepts_progress_posts(self, contract, artist_user, now):
        upload = uploads.create_progress_upload(contract.pk, artist_user, images=["wip.png"], description="Sketch", now=now)

        assert upload.contract_id == contract.pk
        assert upload.images == ["wip.png"]

    def test_images_are_required(self, contract, artist_user, now):
        with pytest.raises(InvalidRequest):
            uploads.create_progress_upload(contract.pk, artist_user, images=[], now=now)

    def test_client_cannot_upload(self, contract, client_user, now):
        with pytest.raises(Unauthorized):
            uploads.create_progress_upload(contract.pk, client_user, images=["wip.png"], now=now)

    def test_milestone_contract_uses_milestone_uploads(self, milestone_contract, artist_user, now):
        with pytest.raises(PolicyViolation):
            uploads.create_progress_upload(milestone_contract.pk, artist_user, images=["wip.png"], now=now)


@pytest.mark.django_db
class TestMilestoneUploads:

    def test_intermediate_upload_has_no_review(self, milestone_contract, artist_user, now):
        upload = uploads.create_milestone_upload(milestone_contract.pk, artist_user, images=["wip.png"], now=now)

        assert upload.status is None
        assert upload.expires_at is None

    def test_accepting_final_upload_releases_the_share(self, milestone_contract, client_user, artist_user, now):
        upload = uploads.create_milestone_upload(
            milestone_contract.pk, artist_user, images=["sketch.png"], is_final=True, now=now
        )
        assert milestone_contract.milestones.get(index=0).status == MilestoneStatus.SUBMITTED

        uploads.review_upload("milestone", upload.pk, client_user, decision="accept", now=now)

        milestone_contract.refresh_from_db()
        first, second = milestone_contract.milestones.all()[:2]
        assert first.status == MilestoneStatus.ACCEPTED
        assert second.status == MilestoneStatus.IN_PROGRESS
        assert milestone_contract.current_milestone_index == 1
        assert milestone_contract.work_percentage == 30
        assert escrow.released_to_artist(milestone_contract) == 300_000

    def test_rejected_milestone_goes_back_to_work(self, milestone_contract, client_user, artist_user, now):
        upload = uploads.create_milestone_upload(
            milestone_contract.pk, artist_user, images=["sketch.png"], is_final=True, now=now
        )

        with pytest.raises(InvalidRequest):
            uploads.review_upload("milestone", upload.pk, client_user, decision="reject", now=now)
        upload = uploads.review_upload(
            "milestone", upload.pk, client_user, decision="reject", reason="Wrong pose", now=now
        )

        assert upload.status == UploadStatus.REJECTED
        assert upload.rejection_reason == "Wrong pose"
        assert milestone_contract.milestones.get(index=0).status == MilestoneStatus.IN_PROGRESS

    def test_one_delivery_under_review_per_milestone(self, milestone_contract, artist_user, now):
        uploads.create_milestone_upload(milestone_contract.pk, artist_user, images=["a.png"], is_final=True, now=now)

        with pytest.raises(InvalidState):
            uploads.create_milestone_upload(
                milestone_contract.pk, artist_user, images=["b.png"], is_final=True, now=now
            )

    def test_only_current_milestone_can_be_delivered(self, milestone_contract, artist_user, now):
        with pytest.raises(InvalidState):
            uploads.create_milestone_upload(
                milestone_contract.pk, artist_user, images=["colour.png"], is_final=True, milestone_index=2, now=now
            )

    def test_unreviewed_delivery_is_accepted_for_the_client(self, milestone_contract, client_user, artist_user, now, later):
        upload = uploads.create_milestone_upload(
            milestone_contract.pk, artist_user, images=["sketch.png"], is_final=True, now=now
        )

        with pytest.raises(WindowClosed):
            uploads.review_upload("milestone", upload.pk, client_user, decision="reject", reason="No", now=later(25))

        upload.refresh_from_db()
        assert upload.status == UploadStatus.FORCED_ACCEPTED
        assert milestone_contract.milestones.get(index=0).status == MilestoneStatus.ACCEPTED
        assert escrow.released_to_artist(milestone_contract) == 300_000

    def test_full_milestone_run_then_final_delivery(self, milestone_contract, client_user, artist_user, now):
        for _ in range(3):
            upload = uploads.create_milestone_upload(
                milestone_contract.pk, artist_user, images=["step.png"], is_final=True, now=now
            )
            uploads.review_upload("milestone", upload.pk, client_user, decision="accept", now=now)

        milestone_contract.refresh_from_db()
        assert milestone_contract.current_milestone_index is None
        assert milestone_contract.work_percentage == 100

        final = uploads.create_final_upload(milestone_contract.pk, artist_user, images=["done.png"], now=now)
        uploads.review_upload("final", final.pk, client_user, decision="accept", now=now)

        milestone_contract.refresh_from_db()
        assert milestone_contract.status == ContractStatus.COMPLETED
        assert milestone_contract.artist_payout_cents == 1_000_000
        assert escrow.balance(milestone_contract) == 0


@pytest.mark.django_db
class TestFinalUploads:

    def test_accepted_delivery_completes_contract(self, contract, client_user, artist_user, now):
        final = uploads.create_final_upload(contract.pk, artist_user, images=["done.png"], now=now)

        uploads.review_upload("final", final.pk, client_user, decision="accept", now=now)

        contract.refresh_from_db()
        assert contract.status == ContractStatus.COMPLETED
        assert contract.artist_payout_cents == 1_000_000
        assert contract.client_payout_cents == 0
        assert contract.closed_at == now

    def test_late_delivery_is_penalised(self, contract, client_user, artist_user):
        after_deadline = contract.deadline_at + timedelta(days=1)
        final = uploads.create_final_upload(contract.pk, artist_user, images=["done.png"], now=after_deadline)

        uploads.review_upload("final", final.pk, client_user, decision="accept", now=after_deadline)

        contract.refresh_from_db()
        assert contract.status == ContractStatus.COMPLETED_LATE
        assert contract.artist_payout_cents == 900_000
        assert contract.client_payout_cents == 100_000

    def test_partial_delivery_needs_accepted_cancellation(self, contract, artist_user, now):
        with pytest.raises(InvalidRequest):
            uploads.create_final_upload(contract.pk, artist_user, images=["half.png"], work_progress=50, now=now)

    def test_second_delivery_while_one_is_under_review(self, contract, artist_user, now):
        uploads.create_final_upload(contract.pk, artist_user, images=["done.png"], now=now)

        with pytest.raises(Conflict):
            uploads.create_final_upload(contract.pk, artist_user, images=["done2.png"], now=now)

    def test_milestones_must_be_accepted_before_final_delivery(self, milestone_contract, client_user, artist_user, now):
        with pytest.raises(InvalidState):
            uploads.create_final_upload(milestone_contract.pk, artist_user, images=["done.png"], now=now)

        first = uploads.create_milestone_upload(
            milestone_contract.pk, artist_user, images=["step.png"], is_final=True, now=now
        )
        uploads.review_upload("milestone", first.pk, client_user, decision="accept", now=now)

        with pytest.raises(InvalidState):
            uploads.create_final_upload(milestone_contract.pk, artist_user, images=["done.png"], now=now)
        assert not milestone_contract.final_uploads.exists()

    def test_open_revision_blocks_final_delivery(self, revision_contract, client_user, artist_user, now):
        ticket = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)
        tickets.respond_revision_ticket(ticket.pk, artist_user, decision="accept", now=now)

        with pytest.raises(Conflict):
            uploads.create_final_upload(revision_contract.pk, artist_user, images=["done.png"], now=now)

        fix = uploads.create_revision_upload(ticket.pk, artist_user, images=["fixed.png"], now=now)
        uploads.review_upload("revision", fix.pk, client_user, decision="accept", now=now)

        final = uploads.create_final_upload(revision_contract.pk, artist_user, images=["done.png"], now=now)
        assert final.status == UploadStatus.SUBMITTED

    def test_rejected_revision_does_not_block_final_delivery(self, revision_contract, client_user, artist_user, now):
        ticket = tickets.create_revision_ticket(revision_contract.pk, client_user, description="Hands", now=now)
        tickets.respond_revision_ticket(ticket.pk, artist_user, decision="reject", reason="Out of scope", now=now)

        final = uploads.create_final_upload(revision_contract.pk, artist_user, images=["done.png"], now=now)

        assert final.status == UploadStatus.SUBMITTED

    def test_sweep_accepts_unreviewed_delivery(self, contract, artist_user, now, later):
        final = uploads.create_final_upload(contract.pk, artist_user, images=["done.png"], now=now)

        assert uploads.auto_resolve_uploads(later(23))["final"] == 0
        assert uploads.auto_resolve_uploads(later(25))["final"] == 1

        final.refresh_from_db()
        contract.refresh_from_db()
        assert final.status == UploadStatus.FORCED_ACCEPTED
        assert contract.status == ContractStatus.COMPLETED

    def test_unknown_upload_kind(self, contract, client_user, now):
        with pytest.raises(InvalidRequest):
            uploads.review_upload("sketch", 1, client_user, decision="accept", now=now)
