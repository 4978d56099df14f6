# backend/payments/escrow.py
"""
Escrow ledger operations.

Each movement is written once under its idempotency key. Replaying a key with
the same kind, party and amount returns the existing row; replaying it with
different values is a ``Conflict``. Callers run these inside the transaction
that performs the status change which triggered the movement.
"""
from __future__ import annotations

import logging

from django.db import transaction

from contracts.errors import Conflict, InvalidState
from payments.models import EscrowKind, EscrowParty, EscrowTransaction

logger = logging.getLogger(__name__)


def balance(contract) -> int:
    return EscrowTransaction.objects.filter(contract=contract).balance()


def released_to_artist(contract) -> int:
    return EscrowTransaction.objects.filter(contract=contract).total(EscrowKind.RELEASE)


def _record(contract, *, kind, party, amount, key, note=""):
    if amount < 0:
        raise ValueError(f"escrow amount must not be negative, got {amount}")
    if amount == 0:
        return None

    with transaction.atomic():
        existing = EscrowTransaction.objects.filter(idempotency_key=key).first()
        if existing is not None:
            same = (
                existing.contract_id == contract.pk
                and existing.kind == kind
                and existing.party == party
                and existing.amount_cents == amount
            )
            if not same:
                raise Conflict(
                    "Escrow key was already used for a different movement.",
                    idempotency_key=key,
                )
            return existing

        if kind != EscrowKind.HOLD:
            available = balance(contract)
            if amount > available:
                raise InvalidState(
                    "Escrow balance is too low for this payout.",
                    requested=amount,
                    available=available,
                )

        entry = EscrowTransaction.objects.create(
            contract=contract,
            kind=kind,
            party=party,
            amount_cents=amount,
            idempotency_key=key,
            note=note,
        )
    logger.info("Escrow %s of %s cents on contract %s (%s)", kind, amount, contract.pk, key)
    return entry


def hold(contract, amount: int, *, key: str, note: str = ""):
    return _record(contract, kind=EscrowKind.HOLD, party=EscrowParty.CLIENT, amount=amount, key=key, note=note)


def release(contract, amount: int, *, key: str, note: str = ""):
    return _record(contract, kind=EscrowKind.RELEASE, party=EscrowParty.ARTIST, amount=amount, key=key, note=note)


def refund(contract, amount: int, *, key: str, note: str = ""):
    return _record(contract, kind=EscrowKind.REFUND, party=EscrowParty.CLIENT, amount=amount, key=key, note=note)


def settle(contract, artist_amount: int) -> tuple[int, int]:
    """
    Pay out whatever is still held: the artist gets ``artist_amount`` minus
    what earlier milestone releases already paid, the client gets the rest.
    Returns ``(released, refunded)`` for this settlement.
    """
    with transaction.atomic():
        already_released = released_to_artist(contract)
        available = balance(contract)
        to_artist = min(max(0, artist_amount - already_released), available)
        to_client = available - to_artist
        release(contract, to_artist, key=f"contract:{contract.pk}:settle:release", note="Settlement")
        refund(contract, to_client, key=f"contract:{contract.pk}:settle:refund", note="Settlement")
    return to_artist, to_client
