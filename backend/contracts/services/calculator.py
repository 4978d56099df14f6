# backend/contracts/services/calculator.py
"""
Financial outcome calculator.

Pure functions over integer cents. Nothing here touches the database; callers
pass the contract terms in and get a ``Payout`` back. Percentages are applied
with ``Decimal`` arithmetic and rounded half-up to whole cents once, at the
end, and the client share is always derived as ``total - artist`` so the two
sides sum to the total exactly.

Cancellation policy (the initiator pays the fee to the other party):

    on time, client cancels:  artist = total * progress + fee
    on time, artist cancels:  artist = total * progress - fee
    late,    client cancels:  artist = total * progress - total * penalty
    late,    artist cancels:  artist = total * progress - total * penalty - fee

A negative artist share is clamped to zero (the client gets everything).
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

CLIENT = "client"
ARTIST = "artist"

FEE_FLAT = "flat"
FEE_PERCENTAGE = "percentage"

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class CancellationFee:
    kind: str
    amount: int


@dataclass(frozen=True)
class Payout:
    total_amount: int
    artist_amount: int
    client_amount: int

    def as_dict(self) -> dict:
        return asdict(self)


def _cents(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _check_percent(name: str, value) -> None:
    if value < 0 or value > 100:
        raise ValueError(f"{name} must be between 0 and 100, got {value}")


def _check_total(total: int) -> None:
    if total < 0:
        raise ValueError(f"total must not be negative, got {total}")


def _split(total: int, artist: Decimal) -> Payout:
    artist_cents = _cents(artist)
    if artist_cents < 0:
        return Payout(total_amount=total, artist_amount=0, client_amount=total)
    if artist_cents > total:
        return Payout(total_amount=total, artist_amount=total, client_amount=0)
    return Payout(total_amount=total, artist_amount=artist_cents, client_amount=total - artist_cents)


def fee_amount(total: int, fee: CancellationFee | None) -> Decimal:
    if fee is None or not fee.amount:
        return Decimal(0)
    if fee.kind == FEE_FLAT:
        return Decimal(fee.amount)
    if fee.kind == FEE_PERCENTAGE:
        return Decimal(total) * Decimal(fee.amount) / HUNDRED
    raise ValueError(f"unknown cancellation fee kind: {fee.kind!r}")


def cancellation_split(
    total: int,
    work_progress: int,
    fee: CancellationFee | None,
    late_penalty_percent: int,
    is_late: bool,
    initiated_by: str,
) -> Payout:
    _check_total(total)
    _check_percent("work_progress", work_progress)
    _check_percent("late_penalty_percent", late_penalty_percent)
    if initiated_by not in (CLIENT, ARTIST):
        raise ValueError(f"initiated_by must be 'client' or 'artist', got {initiated_by!r}")

    earned = Decimal(total) * Decimal(work_progress) / HUNDRED
    fee_value = fee_amount(total, fee)

    if is_late:
        artist = earned - Decimal(total) * Decimal(late_penalty_percent) / HUNDRED
        if initiated_by == ARTIST:
            artist -= fee_value
    elif initiated_by == CLIENT:
        artist = earned + fee_value
    else:
        artist = earned - fee_value

    return _split(total, artist)


def completion_split(total: int, late_penalty_percent: int, is_late: bool) -> Payout:
    _check_total(total)
    _check_percent("late_penalty_percent", late_penalty_percent)
    if not is_late:
        return Payout(total_amount=total, artist_amount=total, client_amount=0)
    penalty = Decimal(total) * Decimal(late_penalty_percent) / HUNDRED
    return _split(total, Decimal(total) - penalty)


def not_completed_split(total: int) -> Payout:
    _check_total(total)
    return Payout(total_amount=total, artist_amount=0, client_amount=total)


def milestone_share(total: int, percent: int) -> int:
    _check_total(total)
    _check_percent("percent", percent)
    return _cents(Decimal(total) * Decimal(percent) / HUNDRED)
