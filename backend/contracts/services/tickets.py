# backend/contracts/services/tickets.py
"""
Cancel, revision and change tickets.

A ticket is raised by one party and answered by the other within the response
window. Every operation locks the contract row before the ticket row, so
the "one unresolved ticket of a kind" check and the create that follows
cannot interleave with a concurrent request; the partial unique constraints on the ticket tables back
this up at the storage level.

Timeout direction differs per kind: an unanswered cancel ticket is forced
through for the requester, an unanswered revision ticket is forced on the
artist, and an unanswered change ticket lapses.
"""
from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from contracts import conf
from contracts.errors import Conflict, InvalidRequest, InvalidState, NotFound, PolicyViolation, Unauthorized, WindowClosed
from contracts.models import (
    CancelTicket,
    CancelTicketStatus,
    ChangeTicket,
    ChangeTicketStatus,
    PartyRole,
    ResolutionDecision,
    ResponseDecision,
    RevisionTicket,
    RevisionTicketStatus,
    RevisionType,
)
from contracts.models.tickets import (
    UNRESOLVED_CANCEL_STATUSES,
    UNRESOLVED_CHANGE_STATUSES,
    UNRESOLVED_REVISION_STATUSES,
)
from contracts.policies import quote_revision
from contracts.services import contracts as contract_service
from contracts.services.parties import require_party

logger = logging.getLogger(__name__)


def _check_decision(decision: str) -> str:
    if decision not in ResponseDecision.values:
        raise InvalidRequest("Decision must be 'accept' or 'reject'.", decision=decision)
    return decision


def _save(ticket, *extra_fields):
    ticket.save(update_fields=[*ticket.lifecycle_fields(), *extra_fields])


def _confirm_or_transition(entity, status, *, now) -> bool:
    """Move to ``status`` unless already there. Returns True when it moved."""
    if entity.status == status:
        return False
    entity.transition(status, at=now)
    return True


def _guard_new_ticket(contract, user, *, role=None) -> str:
    actual = require_party(contract, user, role)
    contract_service.ensure_active(contract)
    contract_service.ensure_no_open_resolution(contract)
    return actual


# ──────────────────────────────────────────────────────────────────────────────
# Cancel tickets
# ──────────────────────────────────────────────────────────────────────────────
def create_cancel_ticket(contract_id, user, *, reason: str, now=None) -> CancelTicket:
    now = now or timezone.now()
    with transaction.atomic():
        contract = contract_service.lock_contract(contract_id)
        role = _guard_new_ticket(contract, user)
        reason = contract_service.require_text(reason, "A cancellation reason")
        if CancelTicket.objects.filter(contract=contract, status__in=UNRESOLVED_CANCEL_STATUSES).exists():
            raise Conflict("A cancellation request is already open on this contract.", contract=contract.pk)

        ticket = contract_service.create_exclusive(
            CancelTicket,
            "A cancellation request is already open on this contract.",
            contract=contract,
            requested_by=role,
            reason=reason,
            expires_at=now + conf.ticket_response_window(),
        )
    logger.info("Cancel ticket %s opened by %s on contract %s", ticket.pk, role, contract.number)
    return ticket


def timeout_cancel_ticket(ticket: CancelTicket, now) -> None:
    ticket.transition(CancelTicketStatus.FORCED_ACCEPTED, at=now)
    _save(ticket)
    logger.info("Cancel ticket %s timed out; forced accepted", ticket.pk)


def respond_cancel_ticket(ticket_id, user, *, decision: str, reason: str = "", now=None) -> CancelTicket:
    now = now or timezone.now()
    decision = _check_decision(decision)
    expired = False
    with transaction.atomic():
        ticket, contract = contract_service.lock_entity(CancelTicket, ticket_id)
        role = require_party(contract, user)
        contract_service.ensure_active(contract)
        contract_service.ensure_not_disputed(ticket)
        if ticket.is_expired(now):
            timeout_cancel_ticket(ticket, now)
            expired = True
        else:
            if role != ticket.responder_role:
                raise Unauthorized("Only the other party can answer a cancellation request.")
            if decision == ResponseDecision.ACCEPT:
                ticket.transition(CancelTicketStatus.ACCEPTED, at=now)
            else:
                ticket.transition(CancelTicketStatus.REJECTED, at=now)
                ticket.rejection_reason = (reason or "").strip()
            _save(ticket, "rejection_reason")
    if expired:
        raise WindowClosed("The response window has closed.", ticket=ticket.pk, status=ticket.status)
    logger.info("Cancel ticket %s %s by %s", ticket.pk, ticket.status, role)
    return ticket


def apply_cancel_decision(ticket: CancelTicket, decision: str, contract, *, now) -> None:
    if ResolutionDecision.favoured_role(decision) == ticket.requested_by:
        _confirm_or_transition(ticket, CancelTicketStatus.FORCED_ACCEPTED, now=now)
    else:
        _confirm_or_transition(ticket, CancelTicketStatus.REJECTED, now=now)
    _save(ticket)


# ──────────────────────────────────────────────────────────────────────────────
# Revision tickets
# ──────────────────────────────────────────────────────────────────────────────
def _revision_holder(contract, milestone_index):
    """The object whose revision policy and counter a revision uses."""
    if contract.revision_type != RevisionType.MILESTONE:
        return contract
    milestone = contract.milestones.filter(index=milestone_index).first()
    if milestone is None:
        raise NotFound("Milestone not found.", milestone_index=milestone_index)
    return milestone


def _adjust_revision_count(ticket: RevisionTicket, delta: int) -> None:
    holder = _revision_holder(ticket.contract, ticket.milestone_index)
    holder.revisions_done = max(0, holder.revisions_done + delta)
    holder.save(update_fields=["revisions_done"])


def create_revision_ticket(
    contract_id, user, *, description: str, milestone_index=None, reference_images=None, now=None
) -> RevisionTicket:
    now = now or timezone.now()
    with transaction.atomic():
        contract = contract_service.lock_contract(contract_id)
        _guard_new_ticket(contract, user, role=PartyRole.CLIENT)
        description = contract_service.require_text(description, "A revision description")
        if contract.revision_type == RevisionType.NONE:
            raise PolicyViolation("Revisions are not offered on this contract.")
        if RevisionTicket.objects.filter(
            contract=contract, status__in=UNRESOLVED_REVISION_STATUSES, resolved=False
        ).exists():
            raise Conflict("A revision request is already open on this contract.", contract=contract.pk)

        if contract.revision_type == RevisionType.MILESTONE:
            if milestone_index is None:
                milestone_index = contract.current_milestone_index
            if milestone_index is None:
                raise InvalidRequest("A milestone index is required once all milestones are done.")
        else:
            milestone_index = None
        holder = _revision_holder(contract, milestone_index)
        quote = quote_revision(holder.revision_policy, holder.revisions_done)

        ticket = contract_service.create_exclusive(
            RevisionTicket,
            "A revision request is already open on this contract.",
            contract=contract,
            milestone_index=milestone_index,
            description=description,
            reference_images=reference_images or [],
            fee_cents=quote.fee_cents,
            expires_at=now + conf.ticket_response_window(),
        )
        holder.revisions_done += 1
        holder.save(update_fields=["revisions_done"])
    logger.info("Revision ticket %s opened on contract %s (fee=%s)", ticket.pk, contract.number, ticket.fee_cents)
    return ticket


def timeout_revision_ticket(ticket: RevisionTicket, now) -> None:
    ticket.transition(RevisionTicketStatus.FORCED_ACCEPTED_ARTIST, at=now)
    _save(ticket)
    logger.info("Revision ticket %s timed out; forced on the artist", ticket.pk)


def respond_revision_ticket(ticket_id, user, *, decision: str, reason: str = "", now=None) -> RevisionTicket:
    now = now or timezone.now()
    decision = _check_decision(decision)
    expired = False
    with transaction.atomic():
        ticket, contract = contract_service.lock_entity(RevisionTicket, ticket_id)
        require_party(contract, user, PartyRole.ARTIST)
        contract_service.ensure_active(contract)
        contract_service.ensure_not_disputed(ticket)
        if ticket.is_expired(now):
            timeout_revision_ticket(ticket, now)
            expired = True
        elif decision == ResponseDecision.ACCEPT:
            ticket.transition(RevisionTicketStatus.ACCEPTED, at=now)
            _save(ticket)
        else:
            reason = contract_service.require_text(reason, "A rejection reason")
            ticket.transition(RevisionTicketStatus.REJECTED, at=now)
            ticket.artist_rejection_reason = reason
            _save(ticket, "artist_rejection_reason")
            _adjust_revision_count(ticket, -1)
    if expired:
        raise WindowClosed("The response window has closed.", ticket=ticket.pk, status=ticket.status)
    logger.info("Revision ticket %s %s by the artist", ticket.pk, ticket.status)
    return ticket


def pay_revision_fee(ticket_id, user, *, amount_cents: int, now=None) -> RevisionTicket:
    now = now or timezone.now()
    with transaction.atomic():
        ticket, contract = contract_service.lock_entity(RevisionTicket, ticket_id)
        require_party(contract, user, PartyRole.CLIENT)
        contract_service.ensure_active(contract)
        contract_service.ensure_not_disputed(ticket)
        if not ticket.awaiting_payment:
            raise InvalidState("No revision fee is due on this ticket.", status=ticket.status, fee=ticket.fee_cents)
        if amount_cents != ticket.fee_cents:
            raise InvalidRequest("Payment must equal the quoted fee.", expected=ticket.fee_cents, got=amount_cents)

        key = f"revision:{ticket.pk}:fee"
        contract_service.add_runtime_fee(contract, amount_cents, key=key, note="Extra revision fee")
        ticket.transition(RevisionTicketStatus.PAID, at=now)
        ticket.paid_fee_cents = amount_cents
        ticket.escrow_reference = key
        _save(ticket, "paid_fee_cents", "escrow_reference")
    logger.info("Revision ticket %s paid (%s cents)", ticket.pk, amount_cents)
    return ticket


def cancel_revision_ticket(ticket_id, user, *, now=None) -> RevisionTicket:
    now = now or timezone.now()
    expired = False
    with transaction.atomic():
        ticket, contract = contract_service.lock_entity(RevisionTicket, ticket_id)
        require_party(contract, user, PartyRole.CLIENT)
        contract_service.ensure_not_disputed(ticket)
        if ticket.is_expired(now):
            timeout_revision_ticket(ticket, now)
            expired = True
        else:
            ticket.transition(RevisionTicketStatus.CANCELLED, at=now)
            _save(ticket)
            _adjust_revision_count(ticket, -1)
    if expired:
        raise WindowClosed("The response window has closed.", ticket=ticket.pk, status=ticket.status)
    logger.info("Revision ticket %s cancelled by the client", ticket.pk)
    return ticket


def apply_revision_decision(ticket: RevisionTicket, decision: str, contract, *, now) -> None:
    was = ticket.status
    if decision == ResolutionDecision.FAVOR_CLIENT:
        _confirm_or_transition(ticket, RevisionTicketStatus.FORCED_ACCEPTED_ARTIST, now=now)
        if was == RevisionTicketStatus.REJECTED:
            # the rejection gave the slot back
            _adjust_revision_count(ticket, +1)
    else:
        moved = _confirm_or_transition(ticket, RevisionTicketStatus.REJECTED, now=now)
        if moved:
            _adjust_revision_count(ticket, -1)
    _save(ticket)


# ──────────────────────────────────────────────────────────────────────────────
# Change tickets
# ──────────────────────────────────────────────────────────────────────────────
def create_change_ticket(contract_id, user, *, reason: str, change_set: dict, now=None) -> ChangeTicket:
    now = now or timezone.now()
    with transaction.atomic():
        contract = contract_service.lock_contract(contract_id)
        _guard_new_ticket(contract, user, role=PartyRole.CLIENT)
        if not contract.allow_contract_change:
            raise PolicyViolation("This contract does not allow changes.")
        reason = contract_service.require_text(reason, "A change reason")
        cleaned = contract_service.validate_change_set(contract, change_set)
        if ChangeTicket.objects.filter(contract=contract, status__in=UNRESOLVED_CHANGE_STATUSES).exists():
            raise Conflict("A change request is already open on this contract.", contract=contract.pk)

        ticket = contract_service.create_exclusive(
            ChangeTicket,
            "A change request is already open on this contract.",
            contract=contract,
            reason=reason,
            change_set=cleaned,
            contract_version_before=contract.contract_version,
            expires_at=now + conf.ticket_response_window(),
        )
    logger.info("Change ticket %s opened on contract %s", ticket.pk, contract.number)
    return ticket


def _apply_change(ticket: ChangeTicket, contract) -> None:
    before, after = contract_service.apply_change_set(contract, ticket.change_set)
    ticket.contract_version_before = before
    ticket.contract_version_after = after


def _charge_change_fee(ticket: ChangeTicket, contract) -> None:
    key = f"change:{ticket.pk}:fee"
    contract_service.add_runtime_fee(contract, ticket.fee_cents, key=key, note="Contract change fee")
    ticket.escrow_reference = key


CHANGE_FIELDS = ("contract_version_before", "contract_version_after", "escrow_reference", "fee_cents",
                 "is_paid_change", "rejection_reason", "expires_at")


def timeout_change_ticket(ticket: ChangeTicket, now) -> None:
    ticket.transition(ChangeTicketStatus.CANCELLED, at=now)
    _save(ticket)
    logger.info("Change ticket %s lapsed", ticket.pk)


def respond_change_ticket(
    ticket_id, user, *, decision: str, fee_cents: int = 0, reason: str = "", now=None
) -> ChangeTicket:
    """
    Artist answers from ``pending_artist`` (accepting with a fee hands it to
    the client for payment); client may only reject from ``pending_client``,
    acceptance there is ``pay_change_fee``.
    """
    now = now or timezone.now()
    decision = _check_decision(decision)
    if fee_cents < 0:
        raise InvalidRequest("Fee must not be negative.")
    expired = False
    with transaction.atomic():
        ticket, contract = contract_service.lock_entity(ChangeTicket, ticket_id)
        role = require_party(contract, user)
        contract_service.ensure_active(contract)
        contract_service.ensure_not_disputed(ticket)
        if ticket.is_expired(now):
            timeout_change_ticket(ticket, now)
            expired = True
        elif ticket.status == ChangeTicketStatus.PENDING_ARTIST:
            if role != PartyRole.ARTIST:
                raise Unauthorized("Only the artist can answer this change request.")
            if decision == ResponseDecision.REJECT:
                ticket.transition(ChangeTicketStatus.REJECTED_ARTIST, at=now)
                ticket.rejection_reason = (reason or "").strip()
            elif fee_cents:
                ticket.transition(ChangeTicketStatus.PENDING_CLIENT, at=now)
                ticket.is_paid_change = True
                ticket.fee_cents = fee_cents
                ticket.expires_at = now + conf.ticket_response_window()
            else:
                ticket.transition(ChangeTicketStatus.ACCEPTED_ARTIST, at=now)
                _apply_change(ticket, contract)
            _save(ticket, *CHANGE_FIELDS)
        elif ticket.status == ChangeTicketStatus.PENDING_CLIENT:
            if role != PartyRole.CLIENT:
                raise Unauthorized("Only the client can answer a priced change request.")
            if decision == ResponseDecision.ACCEPT:
                raise InvalidRequest("Accept a priced change by paying its fee.", fee=ticket.fee_cents)
            ticket.transition(ChangeTicketStatus.REJECTED_CLIENT, at=now)
            ticket.rejection_reason = (reason or "").strip()
            _save(ticket, *CHANGE_FIELDS)
        else:
            raise InvalidState("This change request is already answered.", status=ticket.status)
    if expired:
        raise WindowClosed("The response window has closed.", ticket=ticket.pk, status=ticket.status)
    logger.info("Change ticket %s now %s", ticket.pk, ticket.status)
    return ticket


def pay_change_fee(ticket_id, user, *, amount_cents: int, now=None) -> ChangeTicket:
    now = now or timezone.now()
    expired = False
    with transaction.atomic():
        ticket, contract = contract_service.lock_entity(ChangeTicket, ticket_id)
        require_party(contract, user, PartyRole.CLIENT)
        contract_service.ensure_active(contract)
        contract_service.ensure_not_disputed(ticket)
        if ticket.is_expired(now):
            timeout_change_ticket(ticket, now)
            expired = True
        else:
            if ticket.status != ChangeTicketStatus.PENDING_CLIENT:
                raise InvalidState("No change fee is due on this ticket.", status=ticket.status)
            if amount_cents != ticket.fee_cents:
                raise InvalidRequest("Payment must equal the quoted fee.", expected=ticket.fee_cents, got=amount_cents)
            ticket.transition(ChangeTicketStatus.PAID, at=now)
            _charge_change_fee(ticket, contract)
            _apply_change(ticket, contract)
            _save(ticket, *CHANGE_FIELDS)
    if expired:
        raise WindowClosed("The payment window has closed.", ticket=ticket.pk, status=ticket.status)
    logger.info("Change ticket %s paid (%s cents)", ticket.pk, amount_cents)
    return ticket


def cancel_change_ticket(ticket_id, user, *, now=None) -> ChangeTicket:
    now = now or timezone.now()
    expired = False
    with transaction.atomic():
        ticket, contract = contract_service.lock_entity(ChangeTicket, ticket_id)
        require_party(contract, user, PartyRole.CLIENT)
        contract_service.ensure_not_disputed(ticket)
        if ticket.is_expired(now):
            timeout_change_ticket(ticket, now)
            expired = True
        else:
            ticket.transition(ChangeTicketStatus.CANCELLED, at=now)
            _save(ticket)
    if expired:
        raise WindowClosed("The response window has closed.", ticket=ticket.pk, status=ticket.status)
    logger.info("Change ticket %s withdrawn by the client", ticket.pk)
    return ticket


def apply_change_decision(ticket: ChangeTicket, decision: str, contract, *, now) -> None:
    S = ChangeTicketStatus
    artist_side = ticket.status in (S.PENDING_ARTIST, S.REJECTED_ARTIST)
    if decision == ResolutionDecision.FAVOR_CLIENT:
        ticket.transition(S.FORCED_ACCEPTED_ARTIST if artist_side else S.FORCED_ACCEPTED_CLIENT, at=now)
        # fee waived
        ticket.fee_cents = 0
        ticket.is_paid_change = False
        _apply_change(ticket, contract)
    elif artist_side:
        _confirm_or_transition(ticket, S.REJECTED_ARTIST, now=now)
    else:
        ticket.transition(S.FORCED_ACCEPTED_CLIENT, at=now)
        _charge_change_fee(ticket, contract)
        _apply_change(ticket, contract)
    _save(ticket, *CHANGE_FIELDS)


# ──────────────────────────────────────────────────────────────────────────────
# Sweep
# ──────────────────────────────────────────────────────────────────────────────
def auto_resolve_tickets(as_of=None) -> dict:
    as_of = as_of or timezone.now()
    counts = {
        "cancel": contract_service.sweep_expired(CancelTicket, as_of, timeout_cancel_ticket),
        "revision": contract_service.sweep_expired(RevisionTicket, as_of, timeout_revision_ticket),
        "change": contract_service.sweep_expired(ChangeTicket, as_of, timeout_change_ticket),
    }
    if any(counts.values()):
        logger.info("Ticket timeouts applied: %s", counts)
    return counts
