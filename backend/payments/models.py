# backend/payments/models.py
from __future__ import annotations

from django.db import models
from django.db.models import Sum


class EscrowKind(models.TextChoices):
    HOLD = "hold", "Hold"
    RELEASE = "release", "Release to artist"
    REFUND = "refund", "Refund to client"


class EscrowParty(models.TextChoices):
    CLIENT = "client", "Client"
    ARTIST = "artist", "Artist"


class EscrowTransactionQuerySet(models.QuerySet):
    def total(self, kind: str) -> int:
        return self.filter(kind=kind).aggregate(total=Sum("amount_cents"))["total"] or 0

    def balance(self) -> int:
        return (
            self.total(EscrowKind.HOLD)
            - self.total(EscrowKind.RELEASE)
            - self.total(EscrowKind.REFUND)
        )


class EscrowTransaction(models.Model):
    """
    Append-only ledger of money held for a contract and paid out of it.
    ``idempotency_key`` makes every movement safe to replay.
    """
    contract = models.ForeignKey(
        "contracts.Contract", on_delete=models.PROTECT, related_name="escrow_transactions"
    )
    kind = models.CharField(max_length=10, choices=EscrowKind.choices, db_index=True)
    party = models.CharField(max_length=10, choices=EscrowParty.choices)
    amount_cents = models.PositiveBigIntegerField()
    idempotency_key = models.CharField(max_length=120, unique=True)
    note = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = EscrowTransactionQuerySet.as_manager()

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.get_kind_display()} {self.amount_cents}c ({self.idempotency_key})"
