# backend/contracts/models/uploads.py
from __future__ import annotations

from django.db import models
from django.db.models import Q

from contracts.models.base import LifecycleModel


class UploadStatus(models.TextChoices):
    SUBMITTED = "submitted", "Submitted"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    FORCED_ACCEPTED = "forced_accepted", "Forced accepted"


class ProgressUploadStandard(models.Model):
    """Informational work-in-progress post on a standard-flow contract. Never reviewed."""
    contract = models.ForeignKey("contracts.Contract", on_delete=models.CASCADE, related_name="progress_uploads")
    images = models.JSONField(default=list)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Progress upload #{self.pk} on contract #{self.contract_id}"


class ReviewedUpload(LifecycleModel):
    S = UploadStatus
    TRANSITIONS = {
        S.SUBMITTED: frozenset({S.ACCEPTED, S.REJECTED, S.FORCED_ACCEPTED}),
        S.REJECTED: frozenset({S.FORCED_ACCEPTED}),
    }
    TERMINAL_STATUSES = frozenset({S.ACCEPTED, S.REJECTED, S.FORCED_ACCEPTED})
    AWAITING_STATUSES = frozenset({S.SUBMITTED})
    DISPUTABLE_STATUSES = frozenset({S.SUBMITTED, S.REJECTED})
    closing_field = "closed_at"

    images = models.JSONField(default=list)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=S.choices, default=S.SUBMITTED, db_index=True)
    rejection_reason = models.TextField(blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]


class ProgressUploadMilestone(ReviewedUpload):
    """
    Upload against a milestone. Intermediate posts (``is_final=False``) are
    informational and carry no status; the final one is reviewed.
    """
    RESOLUTION_TARGET_TYPE = "progress_milestone_upload"

    contract = models.ForeignKey("contracts.Contract", on_delete=models.CASCADE, related_name="milestone_uploads")
    milestone = models.ForeignKey("contracts.Milestone", on_delete=models.CASCADE, related_name="uploads")
    is_final = models.BooleanField(default=False)
    status = models.CharField(
        max_length=20, choices=UploadStatus.choices, null=True, blank=True, db_index=True
    )

    class Meta(ReviewedUpload.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["milestone"],
                condition=Q(status=UploadStatus.SUBMITTED),
                name="one_submitted_upload_per_milestone",
            ),
        ]

    def __str__(self):
        return f"Milestone upload #{self.pk} (milestone {self.milestone_id}, {self.status or 'progress'})"


class RevisionUpload(ReviewedUpload):
    RESOLUTION_TARGET_TYPE = "revision_upload"

    contract = models.ForeignKey("contracts.Contract", on_delete=models.CASCADE, related_name="revision_uploads")
    revision_ticket = models.ForeignKey(
        "contracts.RevisionTicket", on_delete=models.CASCADE, related_name="uploads"
    )

    class Meta(ReviewedUpload.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["revision_ticket"],
                condition=Q(status=UploadStatus.SUBMITTED),
                name="one_submitted_upload_per_revision_ticket",
            ),
        ]

    def __str__(self):
        return f"Revision upload #{self.pk} for ticket #{self.revision_ticket_id} ({self.status})"


class FinalUpload(ReviewedUpload):
    """
    Final delivery. ``work_progress`` 100 completes the contract; anything
    lower is the cancellation proof for an accepted cancel ticket.
    """
    RESOLUTION_TARGET_TYPE = "final_upload"

    contract = models.ForeignKey("contracts.Contract", on_delete=models.CASCADE, related_name="final_uploads")
    work_progress = models.PositiveSmallIntegerField(default=100)
    cancel_ticket = models.ForeignKey(
        "contracts.CancelTicket", on_delete=models.SET_NULL, null=True, blank=True, related_name="final_uploads"
    )

    class Meta(ReviewedUpload.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["contract"],
                condition=Q(status=UploadStatus.SUBMITTED),
                name="one_submitted_final_upload_per_contract",
            ),
        ]

    def __str__(self):
        return f"Final upload #{self.pk} ({self.work_progress}%, {self.status})"

    @property
    def is_cancellation_proof(self) -> bool:
        return self.work_progress < 100
