# backend/contracts/services/uploads.py
"""
Artist uploads and client review.

Reviewable uploads wait ``UPLOAD_REVIEW_WINDOW_HOURS`` for the client; an
unreviewed upload is accepted on the client's behalf when the window lapses.
Acceptance side effects:

* final milestone upload: milestone accepted, its share released, next milestone started
* revision upload: the linked revision ticket is marked resolved
* final upload: contract completed (100%) or cancelled with the proven progress
"""
from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from contracts import conf
from contracts.errors import Conflict, InvalidRequest, InvalidState, NotFound, PolicyViolation, WindowClosed
from contracts.models import (
    CancelTicket,
    CancelTicketStatus,
    ContractFlow,
    FinalUpload,
    MilestoneStatus,
    PartyRole,
    ProgressUploadMilestone,
    ProgressUploadStandard,
    ResolutionDecision,
    ResponseDecision,
    RevisionTicket,
    RevisionUpload,
    UploadStatus,
)
from contracts.models.tickets import UNRESOLVED_REVISION_STATUSES
from contracts.services import contracts as contract_service
from contracts.services.parties import require_party

logger = logging.getLogger(__name__)

REVIEWABLE = {
    "milestone": ProgressUploadMilestone,
    "revision": RevisionUpload,
    "final": FinalUpload,
}


def upload_model(kind: str):
    try:
        return REVIEWABLE[kind]
    except KeyError:
        raise InvalidRequest("Unknown upload kind.", kind=kind, allowed=sorted(REVIEWABLE))


def _guard_new_upload(contract, user) -> None:
    require_party(contract, user, PartyRole.ARTIST)
    contract_service.ensure_active(contract)
    contract_service.ensure_no_open_resolution(contract)


def _review_deadline(now):
    return now + conf.upload_review_window()


# ──────────────────────────────────────────────────────────────────────────────
# Create
# ──────────────────────────────────────────────────────────────────────────────
def create_progress_upload(contract_id, user, *, images, description: str = "", now=None) -> ProgressUploadStandard:
    with transaction.atomic():
        contract = contract_service.lock_contract(contract_id)
        _guard_new_upload(contract, user)
        if contract.flow != ContractFlow.STANDARD:
            raise PolicyViolation("Milestone contracts post progress against a milestone.")
        upload = ProgressUploadStandard.objects.create(
            contract=contract,
            images=contract_service.require_images(images),
            description=description or "",
        )
    logger.info("Progress upload %s posted on contract %s", upload.pk, contract.number)
    return upload


def create_milestone_upload(
    contract_id, user, *, images, description: str = "", is_final: bool = False, milestone_index=None, now=None
) -> ProgressUploadMilestone:
    now = now or timezone.now()
    with transaction.atomic():
        contract = contract_service.lock_contract(contract_id)
        _guard_new_upload(contract, user)
        if contract.flow != ContractFlow.MILESTONE:
            raise PolicyViolation("This contract has no milestones.")
        images = contract_service.require_images(images)

        index = contract.current_milestone_index if milestone_index is None else milestone_index
        milestone = contract.milestones.select_for_update().filter(index=index).first() if index is not None else None
        if milestone is None:
            raise NotFound("Milestone not found.", milestone_index=index)

        fields = {"contract": contract, "milestone": milestone, "images": images,
                  "description": description or "", "is_final": is_final}
        if is_final:
            if milestone.index != contract.current_milestone_index or milestone.status != MilestoneStatus.IN_PROGRESS:
                raise InvalidState(
                    "Only the milestone in progress can be delivered.",
                    milestone_index=milestone.index,
                    milestone_status=milestone.status,
                )
            if milestone.uploads.filter(status=UploadStatus.SUBMITTED).exists():
                raise Conflict("This milestone already has a delivery awaiting review.")
            upload = contract_service.create_exclusive(
                ProgressUploadMilestone,
                "This milestone already has a delivery awaiting review.",
                status=UploadStatus.SUBMITTED,
                expires_at=_review_deadline(now),
                **fields,
            )
            milestone.status = MilestoneStatus.SUBMITTED
            milestone.save(update_fields=["status"])
        else:
            upload = ProgressUploadMilestone.objects.create(**fields)
    logger.info("Milestone upload %s posted (milestone %s, final=%s)", upload.pk, milestone.index, is_final)
    return upload


def create_revision_upload(revision_ticket_id, user, *, images, description: str = "", now=None) -> RevisionUpload:
    now = now or timezone.now()
    with transaction.atomic():
        ticket, contract = contract_service.lock_entity(RevisionTicket, revision_ticket_id)
        _guard_new_upload(contract, user)
        images = contract_service.require_images(images)
        if not ticket.ready_for_delivery:
            raise InvalidState(
                "This revision is not ready for delivery.",
                status=ticket.status,
                fee_due=ticket.awaiting_payment,
                resolved=ticket.resolved,
            )
        if ticket.uploads.filter(status=UploadStatus.SUBMITTED).exists():
            raise Conflict("This revision already has a delivery awaiting review.")
        upload = contract_service.create_exclusive(
            RevisionUpload,
            "This revision already has a delivery awaiting review.",
            contract=contract,
            revision_ticket=ticket,
            images=images,
            description=description or "",
            expires_at=_review_deadline(now),
        )
    logger.info("Revision upload %s posted for ticket %s", upload.pk, ticket.pk)
    return upload


def create_final_upload(
    contract_id, user, *, images, description: str = "", work_progress: int = 100, cancel_ticket_id=None, now=None
) -> FinalUpload:
    """
    Deliver the finished work, or the cancellation proof for an accepted
    cancel ticket. An accepted cancel ticket on the contract is linked even
    when ``cancel_ticket_id`` is omitted.
    """
    now = now or timezone.now()
    with transaction.atomic():
        contract = contract_service.lock_contract(contract_id)
        _guard_new_upload(contract, user)
        images = contract_service.require_images(images)
        if not 0 <= work_progress <= 100:
            raise InvalidRequest("work_progress must be between 0 and 100.", work_progress=work_progress)

        accepted = (CancelTicketStatus.ACCEPTED, CancelTicketStatus.FORCED_ACCEPTED)
        if cancel_ticket_id is not None:
            cancel_ticket = CancelTicket.objects.filter(pk=cancel_ticket_id, contract=contract).first()
            if cancel_ticket is None:
                raise NotFound("Cancel ticket not found on this contract.", cancel_ticket=cancel_ticket_id)
            if cancel_ticket.status not in accepted:
                raise InvalidState("The cancellation has not been accepted.", status=cancel_ticket.status)
        else:
            cancel_ticket = (
                CancelTicket.objects.filter(contract=contract, status__in=accepted).order_by("-created_at").first()
            )

        if cancel_ticket is not None and work_progress >= 100:
            raise InvalidRequest("A cancellation proof must show less than 100% progress.")
        if cancel_ticket is None:
            if work_progress != 100:
                raise InvalidRequest("A final delivery must be 100% complete.")
            if (
                contract.flow == ContractFlow.MILESTONE
                and contract.milestones.exclude(status=MilestoneStatus.ACCEPTED).exists()
            ):
                raise InvalidState("Every milestone must be accepted before the final delivery.")
            if RevisionTicket.objects.filter(
                contract=contract, status__in=UNRESOLVED_REVISION_STATUSES, resolved=False
            ).exists():
                raise Conflict("An open revision must be delivered before the final delivery.")
        if contract.final_uploads.filter(status=UploadStatus.SUBMITTED).exists():
            raise Conflict("A final delivery is already awaiting review.")

        upload = contract_service.create_exclusive(
            FinalUpload,
            "A final delivery is already awaiting review.",
            contract=contract,
            cancel_ticket=cancel_ticket,
            work_progress=work_progress,
            images=images,
            description=description or "",
            expires_at=_review_deadline(now),
        )
    logger.info("Final upload %s posted on contract %s (%s%%)", upload.pk, contract.number, work_progress)
    return upload


# ──────────────────────────────────────────────────────────────────────────────
# Side effects
# ──────────────────────────────────────────────────────────────────────────────
def _on_accepted(upload, contract, now) -> None:
    if not contract.is_active:
        logger.warning("Upload %s accepted on closed contract %s; no side effects", upload.pk, contract.number)
        return
    if isinstance(upload, ProgressUploadMilestone):
        contract_service.accept_milestone(contract, upload.milestone, now=now)
    elif isinstance(upload, RevisionUpload):
        ticket = upload.revision_ticket
        ticket.resolved = True
        ticket.save(update_fields=["resolved", "updated_at"])
    elif upload.work_progress == 100:
        contract_service.complete_contract(contract, now=now)
    else:
        initiated_by = upload.cancel_ticket.requested_by if upload.cancel_ticket_id else PartyRole.ARTIST
        contract_service.cancel_contract(
            contract, initiated_by=initiated_by, work_progress=upload.work_progress, now=now
        )


def _on_rejected(upload) -> None:
    if isinstance(upload, ProgressUploadMilestone):
        contract_service.reopen_milestone(upload.milestone)


def _save(upload, *extra_fields):
    upload.save(update_fields=[*upload.lifecycle_fields(), *extra_fields])


def force_accept(upload, contract, now) -> None:
    upload.transition(UploadStatus.FORCED_ACCEPTED, at=now)
    _save(upload)
    _on_accepted(upload, contract, now)


def timeout_upload(upload, now) -> None:
    """Callers hold the contract lock and have bound it to ``upload.contract``."""
    force_accept(upload, upload.contract, now)
    logger.info("%s %s auto-accepted after the review window", upload._meta.verbose_name, upload.pk)


# ──────────────────────────────────────────────────────────────────────────────
# Review
# ──────────────────────────────────────────────────────────────────────────────
def review_upload(kind: str, upload_id, user, *, decision: str, reason: str = "", now=None):
    now = now or timezone.now()
    model = upload_model(kind)
    if decision not in ResponseDecision.values:
        raise InvalidRequest("Decision must be 'accept' or 'reject'.", decision=decision)
    expired = False
    with transaction.atomic():
        upload, contract = contract_service.lock_entity(model, upload_id)
        require_party(contract, user, PartyRole.CLIENT)
        contract_service.ensure_active(contract)
        contract_service.ensure_not_disputed(upload)
        if upload.is_expired(now):
            force_accept(upload, contract, now)
            expired = True
        elif decision == ResponseDecision.ACCEPT:
            upload.transition(UploadStatus.ACCEPTED, at=now)
            _save(upload)
            _on_accepted(upload, contract, now)
        else:
            reason = contract_service.require_text(reason, "A rejection reason")
            upload.transition(UploadStatus.REJECTED, at=now)
            upload.rejection_reason = reason
            _save(upload, "rejection_reason")
            _on_rejected(upload)
    if expired:
        raise WindowClosed("The review window has closed; the upload was accepted.", upload=upload.pk)
    logger.info("%s %s %s by the client", model._meta.verbose_name, upload.pk, upload.status)
    return upload


def apply_upload_decision(upload, decision: str, contract, *, now) -> None:
    if decision == ResolutionDecision.FAVOR_ARTIST:
        force_accept(upload, contract, now)
    elif upload.status == UploadStatus.SUBMITTED:
        upload.transition(UploadStatus.REJECTED, at=now)
        _save(upload)
        _on_rejected(upload)


# ──────────────────────────────────────────────────────────────────────────────
# Sweep
# ──────────────────────────────────────────────────────────────────────────────
def auto_resolve_uploads(as_of=None) -> dict:
    as_of = as_of or timezone.now()
    counts = {kind: contract_service.sweep_expired(model, as_of, timeout_upload) for kind, model in REVIEWABLE.items()}
    if any(counts.values()):
        logger.info("Upload review timeouts applied: %s", counts)
    return counts
