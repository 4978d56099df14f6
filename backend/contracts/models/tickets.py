# backend/contracts/models/tickets.py
from __future__ import annotations

from django.db import models
from django.db.models import Q

from contracts.models.base import LifecycleModel, PartyRole


class CancelTicketStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    FORCED_ACCEPTED = "forced_accepted", "Forced accepted"


class RevisionTicketStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    PAID = "paid", "Paid"
    FORCED_ACCEPTED_ARTIST = "forced_accepted_artist", "Forced accepted (artist)"
    CANCELLED = "cancelled", "Cancelled"


class ChangeTicketStatus(models.TextChoices):
    PENDING_ARTIST = "pending_artist", "Awaiting artist"
    PENDING_CLIENT = "pending_client", "Awaiting client payment"
    ACCEPTED_ARTIST = "accepted_artist", "Accepted by artist"
    REJECTED_ARTIST = "rejected_artist", "Rejected by artist"
    REJECTED_CLIENT = "rejected_client", "Rejected by client"
    PAID = "paid", "Paid"
    FORCED_ACCEPTED_ARTIST = "forced_accepted_artist", "Forced accepted (artist)"
    FORCED_ACCEPTED_CLIENT = "forced_accepted_client", "Forced accepted (client)"
    CANCELLED = "cancelled", "Cancelled"


UNRESOLVED_CANCEL_STATUSES = (
    CancelTicketStatus.PENDING,
    CancelTicketStatus.ACCEPTED,
    CancelTicketStatus.FORCED_ACCEPTED,
)
UNRESOLVED_REVISION_STATUSES = (
    RevisionTicketStatus.PENDING,
    RevisionTicketStatus.ACCEPTED,
    RevisionTicketStatus.FORCED_ACCEPTED_ARTIST,
    RevisionTicketStatus.PAID,
)
UNRESOLVED_CHANGE_STATUSES = (
    ChangeTicketStatus.PENDING_ARTIST,
    ChangeTicketStatus.PENDING_CLIENT,
)


class CancelTicket(LifecycleModel):
    S = CancelTicketStatus
    TRANSITIONS = {
        S.PENDING: frozenset({S.ACCEPTED, S.REJECTED, S.FORCED_ACCEPTED}),
        S.REJECTED: frozenset({S.FORCED_ACCEPTED}),
    }
    TERMINAL_STATUSES = frozenset({S.ACCEPTED, S.REJECTED, S.FORCED_ACCEPTED})
    AWAITING_STATUSES = frozenset({S.PENDING})
    DISPUTABLE_STATUSES = frozenset({S.PENDING, S.REJECTED})
    RESOLUTION_TARGET_TYPE = "cancel_ticket"

    contract = models.ForeignKey("contracts.Contract", on_delete=models.CASCADE, related_name="cancel_tickets")
    requested_by = models.CharField(max_length=10, choices=PartyRole.choices)
    reason = models.TextField()
    status = models.CharField(max_length=20, choices=S.choices, default=S.PENDING, db_index=True)
    rejection_reason = models.TextField(blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["contract"],
                condition=Q(status__in=UNRESOLVED_CANCEL_STATUSES),
                name="one_unresolved_cancel_ticket_per_contract",
            ),
        ]

    def __str__(self):
        return f"Cancel ticket #{self.pk} ({self.status}) on contract #{self.contract_id}"

    @property
    def responder_role(self) -> str:
        return PartyRole.opposite(self.requested_by)


class RevisionTicket(LifecycleModel):
    S = RevisionTicketStatus
    TRANSITIONS = {
        S.PENDING: frozenset({S.ACCEPTED, S.REJECTED, S.FORCED_ACCEPTED_ARTIST, S.CANCELLED}),
        S.ACCEPTED: frozenset({S.PAID}),
        S.FORCED_ACCEPTED_ARTIST: frozenset({S.PAID}),
        S.REJECTED: frozenset({S.FORCED_ACCEPTED_ARTIST}),
    }
    TERMINAL_STATUSES = frozenset({S.ACCEPTED, S.REJECTED, S.PAID, S.FORCED_ACCEPTED_ARTIST, S.CANCELLED})
    AWAITING_STATUSES = frozenset({S.PENDING})
    DISPUTABLE_STATUSES = frozenset({S.PENDING, S.REJECTED})
    RESOLUTION_TARGET_TYPE = "revision_ticket"

    contract = models.ForeignKey("contracts.Contract", on_delete=models.CASCADE, related_name="revision_tickets")
    milestone_index = models.PositiveIntegerField(null=True, blank=True)
    description = models.TextField()
    reference_images = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=30, choices=S.choices, default=S.PENDING, db_index=True)
    fee_cents = models.PositiveBigIntegerField(default=0, help_text="Quoted fee; 0 for a free revision.")
    paid_fee_cents = models.PositiveBigIntegerField(null=True, blank=True)
    escrow_reference = models.CharField(max_length=120, blank=True)
    artist_rejection_reason = models.TextField(blank=True)
    resolved = models.BooleanField(default=False)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["contract"],
                condition=Q(status__in=UNRESOLVED_REVISION_STATUSES, resolved=False),
                name="one_unresolved_revision_ticket_per_contract",
            ),
        ]

    def __str__(self):
        return f"Revision ticket #{self.pk} ({self.status}) on contract #{self.contract_id}"

    @property
    def awaiting_payment(self) -> bool:
        return (
            self.fee_cents > 0
            and self.status in (self.S.ACCEPTED, self.S.FORCED_ACCEPTED_ARTIST)
        )

    @property
    def ready_for_delivery(self) -> bool:
        if self.resolved:
            return False
        if self.status == self.S.PAID:
            return True
        return self.status in (self.S.ACCEPTED, self.S.FORCED_ACCEPTED_ARTIST) and self.fee_cents == 0


class ChangeTicket(LifecycleModel):
    S = ChangeTicketStatus
    TRANSITIONS = {
        S.PENDING_ARTIST: frozenset({
            S.ACCEPTED_ARTIST, S.PENDING_CLIENT, S.REJECTED_ARTIST,
            S.FORCED_ACCEPTED_ARTIST, S.CANCELLED,
        }),
        S.PENDING_CLIENT: frozenset({S.PAID, S.REJECTED_CLIENT, S.FORCED_ACCEPTED_CLIENT, S.CANCELLED}),
        S.REJECTED_ARTIST: frozenset({S.FORCED_ACCEPTED_ARTIST}),
        S.REJECTED_CLIENT: frozenset({S.FORCED_ACCEPTED_CLIENT}),
    }
    TERMINAL_STATUSES = frozenset({
        S.ACCEPTED_ARTIST, S.REJECTED_ARTIST, S.REJECTED_CLIENT, S.PAID,
        S.FORCED_ACCEPTED_ARTIST, S.FORCED_ACCEPTED_CLIENT, S.CANCELLED,
    })
    AWAITING_STATUSES = frozenset({S.PENDING_ARTIST, S.PENDING_CLIENT})
    DISPUTABLE_STATUSES = frozenset({S.PENDING_ARTIST, S.PENDING_CLIENT, S.REJECTED_ARTIST, S.REJECTED_CLIENT})
    RESOLUTION_TARGET_TYPE = "change_ticket"

    contract = models.ForeignKey("contracts.Contract", on_delete=models.CASCADE, related_name="change_tickets")
    reason = models.TextField()
    change_set = models.JSONField(default=dict)
    status = models.CharField(max_length=30, choices=S.choices, default=S.PENDING_ARTIST, db_index=True)
    is_paid_change = models.BooleanField(default=False)
    fee_cents = models.PositiveBigIntegerField(default=0)
    escrow_reference = models.CharField(max_length=120, blank=True)
    rejection_reason = models.TextField(blank=True)
    contract_version_before = models.PositiveIntegerField(null=True, blank=True)
    contract_version_after = models.PositiveIntegerField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["contract"],
                condition=Q(status__in=UNRESOLVED_CHANGE_STATUSES),
                name="one_unresolved_change_ticket_per_contract",
            ),
        ]

    def __str__(self):
        return f"Change ticket #{self.pk} ({self.status}) on contract #{self.contract_id}"
