# backend/contracts/models/resolution.py
from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from contracts.models.base import LifecycleModel, PartyRole


class ResolutionTargetType(models.TextChoices):
    CANCEL_TICKET = "cancel_ticket", "Cancel ticket"
    REVISION_TICKET = "revision_ticket", "Revision ticket"
    CHANGE_TICKET = "change_ticket", "Change ticket"
    FINAL_UPLOAD = "final_upload", "Final upload"
    PROGRESS_MILESTONE_UPLOAD = "progress_milestone_upload", "Milestone upload"
    REVISION_UPLOAD = "revision_upload", "Revision upload"


class ResolutionStatus(models.TextChoices):
    OPEN = "open", "Open"
    AWAITING_REVIEW = "awaiting_review", "Awaiting Review"
    RESOLVED = "resolved", "Resolved"
    CANCELLED = "cancelled", "Cancelled"


class ResolutionDecision(models.TextChoices):
    FAVOR_CLIENT = "favor_client", "In favour of the client"
    FAVOR_ARTIST = "favor_artist", "In favour of the artist"

    @classmethod
    def favoured_role(cls, decision: str) -> str:
        return PartyRole.CLIENT if decision == cls.FAVOR_CLIENT else PartyRole.ARTIST


OPEN_RESOLUTION_STATUSES = (ResolutionStatus.OPEN, ResolutionStatus.AWAITING_REVIEW)


class ResolutionTicket(LifecycleModel):
    """
    A dispute over one ticket or upload, arbitrated by a platform admin.

    ``target_type``/``target_id`` is a lookup key into the matching ticket or
    upload table (see ``contracts.services.resolution.TARGETS``), not a foreign
    key. ``expires_at`` is the counterproof deadline.
    """
    S = ResolutionStatus
    TRANSITIONS = {
        S.OPEN: frozenset({S.AWAITING_REVIEW, S.CANCELLED}),
        S.AWAITING_REVIEW: frozenset({S.RESOLVED, S.CANCELLED}),
    }
    TERMINAL_STATUSES = frozenset({S.RESOLVED, S.CANCELLED})
    AWAITING_STATUSES = frozenset({S.OPEN})

    contract = models.ForeignKey("contracts.Contract", on_delete=models.CASCADE, related_name="resolution_tickets")
    submitted_by = models.CharField(max_length=10, choices=PartyRole.choices)
    submitted_by_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="resolution_tickets_submitted"
    )
    counterparty = models.CharField(max_length=10, choices=PartyRole.choices)
    target_type = models.CharField(max_length=40, choices=ResolutionTargetType.choices)
    target_id = models.PositiveBigIntegerField()

    description = models.TextField()
    proof_images = models.JSONField(default=list)
    counter_description = models.TextField(blank=True)
    counter_proof_images = models.JSONField(default=list, blank=True)
    counter_submitted_at = models.DateTimeField(null=True, blank=True)

    status = models.CharField(max_length=20, choices=S.choices, default=S.OPEN, db_index=True)
    decision = models.CharField(max_length=20, choices=ResolutionDecision.choices, blank=True)
    resolution_note = models.TextField(blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name="resolution_tickets_resolved"
    )
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["target_type", "target_id"],
                condition=Q(status__in=OPEN_RESOLUTION_STATUSES),
                name="one_open_resolution_per_target",
            ),
        ]

    def __str__(self):
        return f"Resolution #{self.pk} on {self.target_type} #{self.target_id} ({self.status})"

    @property
    def counter_expires_at(self):
        return self.expires_at
