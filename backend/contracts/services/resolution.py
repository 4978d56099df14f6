# backend/contracts/services/resolution.py
"""
Resolution tickets: a party disputes a ticket or upload, the other party gets
a counterproof window, then an admin decides in favour of one side.

The decision is applied to the disputed entity through the handler registered
for its target type, in the same transaction that marks the resolution
ticket resolved. A resolved ticket cannot be resolved again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from django.db import transaction
from django.utils import timezone

from contracts import conf
from contracts.errors import Conflict, InvalidRequest, InvalidState, NotFound, Unauthorized, WindowClosed
from contracts.models import (
    CancelTicket,
    ChangeTicket,
    FinalUpload,
    PartyRole,
    ProgressUploadMilestone,
    ResolutionDecision,
    ResolutionStatus,
    ResolutionTargetType,
    ResolutionTicket,
    RevisionTicket,
    RevisionUpload,
)
from contracts.services import contracts as contract_service
from contracts.services import tickets, uploads
from contracts.services.parties import is_admin, require_admin, require_party

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    model: type
    on_timeout: Callable
    apply_decision: Callable
    siblings: Callable

    def newer_exists(self, entity) -> bool:
        return self.siblings(entity).filter(pk__gt=entity.pk).exists()


def _same_contract(entity):
    return type(entity).objects.filter(contract_id=entity.contract_id)


TARGETS: dict[str, Target] = {
    ResolutionTargetType.CANCEL_TICKET: Target(
        CancelTicket, tickets.timeout_cancel_ticket, tickets.apply_cancel_decision, _same_contract,
    ),
    ResolutionTargetType.REVISION_TICKET: Target(
        RevisionTicket, tickets.timeout_revision_ticket, tickets.apply_revision_decision, _same_contract,
    ),
    ResolutionTargetType.CHANGE_TICKET: Target(
        ChangeTicket, tickets.timeout_change_ticket, tickets.apply_change_decision, _same_contract,
    ),
    ResolutionTargetType.FINAL_UPLOAD: Target(
        FinalUpload, uploads.timeout_upload, uploads.apply_upload_decision, _same_contract,
    ),
    ResolutionTargetType.PROGRESS_MILESTONE_UPLOAD: Target(
        ProgressUploadMilestone,
        uploads.timeout_upload,
        uploads.apply_upload_decision,
        lambda upload: ProgressUploadMilestone.objects.filter(milestone_id=upload.milestone_id, is_final=True),
    ),
    ResolutionTargetType.REVISION_UPLOAD: Target(
        RevisionUpload,
        uploads.timeout_upload,
        uploads.apply_upload_decision,
        lambda upload: RevisionUpload.objects.filter(revision_ticket_id=upload.revision_ticket_id),
    ),
}


def get_target(target_type: str) -> Target:
    try:
        return TARGETS[target_type]
    except KeyError:
        raise InvalidRequest("Unknown resolution target type.", target_type=target_type)


def _load_target(target: Target, target_id, contract):
    entity = target.model.objects.select_for_update().filter(pk=target_id, contract=contract).first()
    if entity is None:
        raise NotFound("The disputed item does not exist on this contract.", target_id=target_id)
    entity.contract = contract
    return entity


def _lock_resolution(resolution_id):
    """Lock the owning contract, then the resolution row; returns ``(ticket, contract)``."""
    contract_id = ResolutionTicket.objects.filter(pk=resolution_id).values_list("contract_id", flat=True).first()
    if contract_id is None:
        raise NotFound("Resolution ticket not found.", id=resolution_id)
    contract = contract_service.lock_contract(contract_id)
    ticket = ResolutionTicket.objects.select_for_update().get(pk=resolution_id)
    ticket.contract = contract
    return ticket, contract


def _save(ticket: ResolutionTicket, *extra_fields):
    ticket.save(update_fields=[*ticket.lifecycle_fields(), *extra_fields])


# ──────────────────────────────────────────────────────────────────────────────
# Escalate
# ──────────────────────────────────────────────────────────────────────────────
def escalate(
    contract_id, user, *, target_type: str, target_id, description: str, proof_images, now=None
) -> ResolutionTicket:
    now = now or timezone.now()
    target = get_target(target_type)

    # A stale target is timed out first, so the dispute is judged on its current state.
    with transaction.atomic():
        contract = contract_service.lock_contract(contract_id)
        require_party(contract, user)
        entity = _load_target(target, target_id, contract)
        if entity.is_expired(now) and not contract_service.is_under_dispute(entity):
            target.on_timeout(entity, now)

    with transaction.atomic():
        contract = contract_service.lock_contract(contract_id)
        role = require_party(contract, user)
        contract_service.ensure_active(contract)

        description = (description or "").strip()
        minimum = conf.resolution_min_description_length()
        if len(description) < minimum:
            raise InvalidRequest(f"Describe the dispute in at least {minimum} characters.", minimum=minimum)
        proof_images = contract_service.require_images(proof_images)

        entity = _load_target(target, target_id, contract)
        if target.newer_exists(entity):
            raise InvalidState("Only the most recent item of its kind can be disputed.", target_id=entity.pk)
        if isinstance(entity, ProgressUploadMilestone) and not entity.is_final:
            raise InvalidState("Only a final milestone delivery can be disputed.", target_id=entity.pk)
        if entity.status not in entity.DISPUTABLE_STATUSES:
            raise InvalidState("This item can no longer be disputed.", status=entity.status)
        if contract_service.is_under_dispute(entity):
            raise Conflict("This item is already under dispute.", target_type=target_type, target_id=entity.pk)

        ticket = contract_service.create_exclusive(
            ResolutionTicket,
            "This item is already under dispute.",
            contract=contract,
            submitted_by=role,
            submitted_by_user=user,
            counterparty=PartyRole.opposite(role),
            target_type=target_type,
            target_id=entity.pk,
            description=description,
            proof_images=proof_images,
            expires_at=now + conf.counterproof_window(),
        )
    logger.info("Resolution %s opened by %s on %s #%s (contract %s)",
                ticket.pk, role, target_type, entity.pk, contract.number)
    return ticket


# ──────────────────────────────────────────────────────────────────────────────
# Counterproof
# ──────────────────────────────────────────────────────────────────────────────
def promote_to_review(ticket: ResolutionTicket, now) -> None:
    ticket.transition(ResolutionStatus.AWAITING_REVIEW, at=now)
    _save(ticket)
    logger.info("Resolution %s moved to admin review", ticket.pk)


def submit_counterproof(resolution_id, user, *, description: str, images=None, now=None) -> ResolutionTicket:
    """
    Counterparty's side of the dispute. After the window has passed the
    ticket is moved to admin review anyway and ``WindowClosed`` is raised.
    """
    now = now or timezone.now()
    expired = False
    with transaction.atomic():
        ticket, contract = _lock_resolution(resolution_id)
        role = require_party(contract, user)
        if role != ticket.counterparty:
            raise Unauthorized("Only the other party can answer this dispute.")

        if ticket.status == ResolutionStatus.AWAITING_REVIEW and ticket.counter_submitted_at is None:
            raise WindowClosed("The counterproof window has closed.", resolution=ticket.pk)
        if ticket.status != ResolutionStatus.OPEN:
            raise InvalidState("This dispute no longer accepts counterproof.", status=ticket.status)

        if ticket.is_expired(now):
            promote_to_review(ticket, now)
            expired = True
        else:
            ticket.counter_description = contract_service.require_text(description, "A counter description")
            ticket.counter_proof_images = list(images or [])
            ticket.counter_submitted_at = now
            ticket.transition(ResolutionStatus.AWAITING_REVIEW, at=now)
            _save(ticket, "counter_description", "counter_proof_images", "counter_submitted_at")
    if expired:
        raise WindowClosed("The counterproof window has closed.", resolution=ticket.pk)
    logger.info("Counterproof submitted on resolution %s", ticket.pk)
    return ticket


# ──────────────────────────────────────────────────────────────────────────────
# Resolve / cancel
# ──────────────────────────────────────────────────────────────────────────────
def resolve(resolution_id, admin_user, *, decision: str, resolution_note: str = "", now=None) -> ResolutionTicket:
    now = now or timezone.now()
    require_admin(admin_user)
    if decision not in ResolutionDecision.values:
        raise InvalidRequest("Decision must be 'favor_client' or 'favor_artist'.", decision=decision)

    with transaction.atomic():
        ticket, contract = _lock_resolution(resolution_id)
        if ticket.is_expired(now):
            promote_to_review(ticket, now)
        if ticket.status != ResolutionStatus.AWAITING_REVIEW:
            raise InvalidState("Only a dispute awaiting review can be resolved.", status=ticket.status)

        target = get_target(ticket.target_type)
        entity = _load_target(target, ticket.target_id, contract)
        target.apply_decision(entity, decision, contract, now=now)

        ticket.decision = decision
        ticket.resolution_note = resolution_note or ""
        ticket.resolved_by = admin_user
        ticket.transition(ResolutionStatus.RESOLVED, at=now)
        _save(ticket, "decision", "resolution_note", "resolved_by")
    logger.info("Resolution %s resolved %s by admin %s (%s #%s now %s)",
                ticket.pk, decision, admin_user.pk, ticket.target_type, entity.pk, entity.status)
    return ticket


def cancel_resolution(resolution_id, user, *, now=None) -> ResolutionTicket:
    now = now or timezone.now()
    with transaction.atomic():
        ticket, _ = _lock_resolution(resolution_id)
        if ticket.submitted_by_user_id != getattr(user, "pk", None) and not is_admin(user):
            raise Unauthorized("Only the submitter or an admin can withdraw this dispute.")
        ticket.transition(ResolutionStatus.CANCELLED, at=now)
        _save(ticket)
    logger.info("Resolution %s cancelled by user %s", ticket.pk, user.pk)
    return ticket


# ──────────────────────────────────────────────────────────────────────────────
# Sweep
# ──────────────────────────────────────────────────────────────────────────────
def expire_counter_windows(as_of=None) -> int:
    as_of = as_of or timezone.now()
    moved = contract_service.sweep_expired(ResolutionTicket, as_of, promote_to_review)
    if moved:
        logger.info("Moved %s resolution ticket(s) to admin review", moved)
    return moved
