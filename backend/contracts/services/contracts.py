# backend/contracts/services/contracts.py
"""
Contract aggregate operations: creation, locking, milestone progress, change
application and the terminal settlements that move escrow.

Callers are expected to hold the contract row lock (``lock_contract``) inside
``transaction.atomic()`` before calling anything that mutates it.
"""
from __future__ import annotations

import logging
from datetime import datetime

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from contracts import conf
from contracts.errors import Conflict, InvalidRequest, InvalidState, LifecycleError, NotFound, PolicyViolation
from contracts.models import (
    CHANGEABLE_FIELDS,
    CancellationFeeKind,
    Contract,
    ContractFlow,
    ContractStatus,
    MilestoneStatus,
    PartyRole,
    ResolutionTicket,
    RevisionType,
)
from contracts.models.resolution import OPEN_RESOLUTION_STATUSES
from contracts.policies import RevisionPolicy
from contracts.services import calculator
from payments import escrow

logger = logging.getLogger(__name__)

CANCELLED_STATUS = {
    (PartyRole.CLIENT, False): ContractStatus.CANCELLED_CLIENT,
    (PartyRole.CLIENT, True): ContractStatus.CANCELLED_CLIENT_LATE,
    (PartyRole.ARTIST, False): ContractStatus.CANCELLED_ARTIST,
    (PartyRole.ARTIST, True): ContractStatus.CANCELLED_ARTIST_LATE,
}


def _policy_fields(policy: RevisionPolicy | None) -> dict:
    if policy is None:
        return {"revisions_free": None}
    if policy.free < 0 or policy.fee_cents < 0:
        raise InvalidRequest("Revision allowance and fee must not be negative.")
    return {
        "revisions_free": policy.free,
        "revisions_limited": policy.limited,
        "extra_revisions_allowed": policy.extra_allowed,
        "extra_revision_fee_cents": policy.fee_cents,
    }


# ──────────────────────────────────────────────────────────────────────────────
# Creation & lookup
# ──────────────────────────────────────────────────────────────────────────────
def create_contract(
    *,
    client,
    artist,
    deadline_at: datetime,
    base_price_cents: int,
    option_fees_cents: int = 0,
    addons_cents: int = 0,
    flow: str = ContractFlow.STANDARD,
    description: str = "",
    options: dict | None = None,
    reference_images: list | None = None,
    milestones: list[dict] | None = None,
    cancellation_fee_kind: str = CancellationFeeKind.FLAT,
    cancellation_fee_amount: int = 0,
    late_penalty_percent: int | None = None,
    grace_days: int | None = None,
    revision_type: str = RevisionType.NONE,
    revision_policy: RevisionPolicy | None = None,
    allow_contract_change: bool = False,
    changeable_fields: list[str] | None = None,
    now=None,
) -> Contract:
    """
    Finalize a proposal into an active contract and hold its total in escrow.

    ``milestones`` is a list of ``{"title", "percent", "description"?,
    "revision_policy"?}`` dicts for the milestone flow.
    """
    now = now or timezone.now()
    milestones = milestones or []

    if client.pk == artist.pk:
        raise InvalidRequest("Client and artist must be different users.")
    if flow == ContractFlow.MILESTONE:
        if not milestones:
            raise InvalidRequest("A milestone contract needs at least one milestone.")
        if any(int(m["percent"]) <= 0 for m in milestones):
            raise InvalidRequest("Every milestone needs a positive percentage.")
        if sum(int(m["percent"]) for m in milestones) != 100:
            raise InvalidRequest("Milestone percentages must add up to 100.")
    elif milestones:
        raise InvalidRequest("Only milestone contracts can have milestones.")
    if revision_type == RevisionType.MILESTONE and flow != ContractFlow.MILESTONE:
        raise InvalidRequest("Per-milestone revisions need the milestone flow.")
    if revision_type == RevisionType.STANDARD and revision_policy is None:
        raise InvalidRequest("A revision policy is required for contract-wide revisions.")
    if cancellation_fee_kind == CancellationFeeKind.PERCENTAGE and cancellation_fee_amount > 100:
        raise InvalidRequest("A percentage cancellation fee must be between 0 and 100.")

    penalty = conf.default_late_penalty_percent() if late_penalty_percent is None else late_penalty_percent
    if not 0 <= penalty <= 100:
        raise InvalidRequest("Late penalty must be between 0 and 100.")
    grace = conf.default_grace_days() if grace_days is None else grace_days

    changeable = list(changeable_fields or [])
    unknown = set(changeable) - set(CHANGEABLE_FIELDS)
    if unknown:
        raise InvalidRequest("Unknown changeable fields.", fields=sorted(unknown))

    with transaction.atomic():
        contract = Contract(
            client=client,
            artist=artist,
            flow=flow,
            description=description,
            options=options or {},
            reference_images=reference_images or [],
            base_price_cents=base_price_cents,
            option_fees_cents=option_fees_cents,
            addons_cents=addons_cents,
            total_cents=base_price_cents + option_fees_cents + addons_cents,
            cancellation_fee_kind=cancellation_fee_kind,
            cancellation_fee_amount=cancellation_fee_amount,
            late_penalty_percent=penalty,
            grace_days=grace,
            revision_type=revision_type,
            allow_contract_change=allow_contract_change,
            changeable_fields=changeable,
            deadline_at=deadline_at,
            **_policy_fields(revision_policy if revision_type == RevisionType.STANDARD else None),
        )
        contract.grace_ends_at = contract.grace_end_for(deadline_at)
        if milestones:
            contract.current_milestone_index = 0
        contract.save()

        for index, item in enumerate(milestones):
            contract.milestones.create(
                index=index,
                title=item["title"],
                description=item.get("description", ""),
                percent=int(item["percent"]),
                status=MilestoneStatus.IN_PROGRESS if index == 0 else MilestoneStatus.PENDING,
                started_at=now if index == 0 else None,
                **_policy_fields(item.get("revision_policy")),
            )

        escrow.hold(contract, contract.total_cents, key=f"contract:{contract.pk}:funding", note="Contract funding")

    logger.info("Contract %s created (client=%s, artist=%s, total=%s)",
                contract.number, client.pk, artist.pk, contract.total_cents)
    return contract


def get_contract(contract_id) -> Contract:
    try:
        return Contract.objects.select_related("client", "artist").get(pk=contract_id)
    except Contract.DoesNotExist:
        raise NotFound("Contract not found.", contract=contract_id)


def lock_contract(contract_id) -> Contract:
    """
    Row-lock the contract. Every ticket, upload, resolution and escrow
    mutation takes this lock before locking its own row.
    """
    try:
        return Contract.objects.select_for_update().get(pk=contract_id)
    except Contract.DoesNotExist:
        raise NotFound("Contract not found.", contract=contract_id)


def lock_entity(model, entity_id, *, contract_id=None):
    """Lock the contract, then the ticket/upload row; returns ``(entity, contract)``."""
    filters = {"pk": entity_id}
    if contract_id is not None:
        filters["contract_id"] = contract_id
    owner_id = model.objects.filter(**filters).values_list("contract_id", flat=True).first()
    if owner_id is None:
        raise NotFound(f"{model._meta.verbose_name.capitalize()} not found.", id=entity_id)
    contract = lock_contract(owner_id)
    entity = model.objects.select_for_update().get(pk=entity_id)
    entity.contract = contract
    return entity, contract


def create_exclusive(model, conflict_message: str, **fields):
    """Create a row guarded by a partial unique constraint; a concurrent duplicate is a ``Conflict``."""
    try:
        with transaction.atomic():
            return model.objects.create(**fields)
    except IntegrityError as exc:
        raise Conflict(conflict_message) from exc


# ──────────────────────────────────────────────────────────────────────────────
# Guards
# ──────────────────────────────────────────────────────────────────────────────
def ensure_active(contract: Contract) -> None:
    if not contract.is_active:
        raise InvalidState("Contract is no longer active.", contract=contract.pk, status=contract.status)


def has_open_resolution(contract: Contract) -> bool:
    return ResolutionTicket.objects.filter(contract=contract, status__in=OPEN_RESOLUTION_STATUSES).exists()


def ensure_no_open_resolution(contract: Contract) -> None:
    if has_open_resolution(contract):
        raise Conflict("Contract has an open resolution ticket.", contract=contract.pk)


def is_under_dispute(entity) -> bool:
    if not entity.RESOLUTION_TARGET_TYPE:
        return False
    return ResolutionTicket.objects.filter(
        target_type=entity.RESOLUTION_TARGET_TYPE,
        target_id=entity.pk,
        status__in=OPEN_RESOLUTION_STATUSES,
    ).exists()


def ensure_not_disputed(entity) -> None:
    if is_under_dispute(entity):
        raise Conflict(
            "This item is under dispute and waits for an admin decision.",
            target_type=entity.RESOLUTION_TARGET_TYPE,
            target_id=entity.pk,
        )


def require_images(images) -> list:
    if not isinstance(images, list) or not images:
        raise InvalidRequest("At least one image is required.")
    return images


def require_text(value, what: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidRequest(f"{what} is required.")
    return value


# ──────────────────────────────────────────────────────────────────────────────
# Milestones & runtime fees
# ──────────────────────────────────────────────────────────────────────────────
def accept_milestone(contract: Contract, milestone, *, now) -> int:
    """Mark the milestone accepted, release its share and start the next one."""
    milestone.status = MilestoneStatus.ACCEPTED
    milestone.completed_at = now
    milestone.save(update_fields=["status", "completed_at"])

    accepted = contract.milestones.filter(status=MilestoneStatus.ACCEPTED).aggregate(p=Sum("percent"))["p"] or 0
    contract.work_percentage = min(accepted, 100)

    # rounded shares may overshoot the total by a cent on the last milestone
    share = min(calculator.milestone_share(contract.total_cents, milestone.percent), escrow.balance(contract))
    escrow.release(contract, share, key=f"milestone:{milestone.pk}:release", note=f"Milestone {milestone.index}")

    following = contract.milestones.filter(index__gt=milestone.index).order_by("index").first()
    if following is not None:
        following.status = MilestoneStatus.IN_PROGRESS
        following.started_at = now
        following.save(update_fields=["status", "started_at"])
        contract.current_milestone_index = following.index
    else:
        contract.current_milestone_index = None
    contract.save(update_fields=["work_percentage", "current_milestone_index", "updated_at"])

    logger.info("Milestone %s of contract %s accepted; released %s cents", milestone.index, contract.number, share)
    return share


def reopen_milestone(milestone) -> None:
    milestone.status = MilestoneStatus.IN_PROGRESS
    milestone.save(update_fields=["status"])


def add_runtime_fee(contract: Contract, amount: int, *, key: str, note: str = "") -> None:
    """Hold a fee paid during the contract and add it to the contract total."""
    escrow.hold(contract, amount, key=key, note=note)
    contract.runtime_fees_cents += amount
    contract.total_cents += amount
    contract.save(update_fields=["runtime_fees_cents", "total_cents", "updated_at"])


# ──────────────────────────────────────────────────────────────────────────────
# Change sets
# ──────────────────────────────────────────────────────────────────────────────
def _parse_deadline(value) -> datetime:
    parsed = value if isinstance(value, datetime) else parse_datetime(str(value))
    if parsed is None:
        raise InvalidRequest("deadline_at must be an ISO-8601 datetime.", value=str(value))
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def validate_change_set(contract: Contract, change_set) -> dict:
    """Return a JSON-safe copy of ``change_set`` restricted to what the contract allows."""
    if not isinstance(change_set, dict) or not change_set:
        raise InvalidRequest("A change set with at least one field is required.")
    unknown = set(change_set) - set(CHANGEABLE_FIELDS)
    if unknown:
        raise InvalidRequest("Unknown contract fields in change set.", fields=sorted(unknown))
    forbidden = set(change_set) - set(contract.changeable_fields or [])
    if forbidden:
        raise PolicyViolation("These fields cannot be changed on this contract.", fields=sorted(forbidden))

    cleaned = dict(change_set)
    if "deadline_at" in cleaned:
        cleaned["deadline_at"] = _parse_deadline(cleaned["deadline_at"]).isoformat()
    return cleaned


def apply_change_set(contract: Contract, change_set: dict) -> tuple[int, int]:
    """Apply an agreed change set; returns ``(version_before, version_after)``."""
    before = contract.contract_version
    for field, value in change_set.items():
        if field == "deadline_at":
            contract.deadline_at = _parse_deadline(value)
            contract.grace_ends_at = contract.grace_end_for(contract.deadline_at)
        else:
            setattr(contract, field, value)
    contract.contract_version = before + 1
    contract.save()
    logger.info("Contract %s changed to version %s (%s)", contract.number, contract.contract_version,
                ", ".join(sorted(change_set)))
    return before, contract.contract_version


# ──────────────────────────────────────────────────────────────────────────────
# Settlement
# ──────────────────────────────────────────────────────────────────────────────
def _settle(contract: Contract, payout: calculator.Payout, status: str, *, now) -> Contract:
    ensure_active(contract)
    released, refunded = escrow.settle(contract, payout.artist_amount)

    contract.status = status
    contract.closed_at = now
    contract.artist_payout_cents = escrow.released_to_artist(contract)
    contract.client_payout_cents = contract.total_cents - contract.artist_payout_cents
    contract.save(update_fields=[
        "status", "closed_at", "work_percentage", "artist_payout_cents", "client_payout_cents", "updated_at",
    ])
    logger.info("Contract %s settled as %s (artist +%s, client +%s)", contract.number, status, released, refunded)
    return contract


def complete_contract(contract: Contract, *, now=None) -> Contract:
    now = now or timezone.now()
    late = contract.is_late(now)
    payout = calculator.completion_split(contract.total_cents, contract.late_penalty_percent, late)
    contract.work_percentage = 100
    status = ContractStatus.COMPLETED_LATE if late else ContractStatus.COMPLETED
    return _settle(contract, payout, status, now=now)


def cancel_contract(contract: Contract, *, initiated_by: str, work_progress: int, now=None) -> Contract:
    now = now or timezone.now()
    late = contract.is_late(now)
    payout = calculator.cancellation_split(
        contract.total_cents,
        work_progress,
        contract.cancellation_fee,
        contract.late_penalty_percent,
        late,
        initiated_by,
    )
    contract.work_percentage = work_progress
    return _settle(contract, payout, CANCELLED_STATUS[(initiated_by, late)], now=now)


def mark_not_completed(contract: Contract, *, now=None) -> Contract:
    now = now or timezone.now()
    payout = calculator.not_completed_split(contract.total_cents)
    return _settle(contract, payout, ContractStatus.NOT_COMPLETED, now=now)


def payout_preview(contract: Contract, *, initiated_by: str, work_progress: int | None = None, as_of=None) -> dict:
    """What a cancellation initiated by ``initiated_by`` would pay out at ``as_of``."""
    ensure_active(contract)
    as_of = as_of or timezone.now()
    progress = contract.work_percentage if work_progress is None else work_progress
    late = contract.is_late(as_of)
    try:
        payout = calculator.cancellation_split(
            contract.total_cents,
            progress,
            contract.cancellation_fee,
            contract.late_penalty_percent,
            late,
            initiated_by,
        )
    except ValueError as exc:
        raise InvalidRequest(str(exc)) from exc
    return {
        **payout.as_dict(),
        "initiated_by": initiated_by,
        "work_progress": progress,
        "is_late": late,
        "already_released": escrow.released_to_artist(contract),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Sweeps
# ──────────────────────────────────────────────────────────────────────────────
def sweep_expired(model, as_of, on_timeout) -> int:
    """
    Apply ``on_timeout(entity, as_of)`` to every expired, undisputed row of
    ``model``. Each row gets its own transaction; one failure does not stop
    the sweep.
    """
    moved = 0
    candidates = model.objects.expired(as_of).order_by("expires_at").values_list("pk", "contract_id")
    for pk, contract_id in list(candidates):
        try:
            with transaction.atomic():
                contract = lock_contract(contract_id)
                entity = model.objects.select_for_update().get(pk=pk)
                entity.contract = contract
                if not entity.is_expired(as_of) or is_under_dispute(entity):
                    continue
                on_timeout(entity, as_of)
            moved += 1
        except (LifecycleError, DatabaseError):
            logger.exception("Timeout sweep failed for %s #%s", model.__name__, pk)
    return moved


def expire_overdue_contracts(as_of=None) -> int:
    """Close active contracts whose grace period ended without delivery."""
    as_of = as_of or timezone.now()
    moved = 0
    candidates = (
        Contract.objects.filter(status=ContractStatus.ACTIVE, grace_ends_at__lt=as_of)
        .order_by("grace_ends_at")
        .values_list("pk", flat=True)
    )
    for pk in list(candidates):
        try:
            with transaction.atomic():
                contract = lock_contract(pk)
                if not contract.is_active or contract.grace_ends_at >= as_of or has_open_resolution(contract):
                    continue
                mark_not_completed(contract, now=as_of)
            moved += 1
        except (LifecycleError, DatabaseError):
            logger.exception("Overdue sweep failed for contract #%s", pk)
    if moved:
        logger.info("Marked %s overdue contract(s) not completed", moved)
    return moved
