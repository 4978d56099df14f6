# backend/contracts/models/contract.py
from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from contracts.models.base import PartyRole
from contracts.policies import RevisionPolicy
from contracts.services.calculator import CancellationFee


# --- TextChoices for status fields ---
class ContractStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    COMPLETED_LATE = "completed_late", "Completed (late)"
    CANCELLED_CLIENT = "cancelled_client", "Cancelled by client"
    CANCELLED_CLIENT_LATE = "cancelled_client_late", "Cancelled by client (late)"
    CANCELLED_ARTIST = "cancelled_artist", "Cancelled by artist"
    CANCELLED_ARTIST_LATE = "cancelled_artist_late", "Cancelled by artist (late)"
    NOT_COMPLETED = "not_completed", "Not completed"


class ContractFlow(models.TextChoices):
    STANDARD = "standard", "Standard"
    MILESTONE = "milestone", "Milestone"


class RevisionType(models.TextChoices):
    NONE = "none", "No revisions"
    STANDARD = "standard", "Contract-wide policy"
    MILESTONE = "milestone", "Per-milestone policy"


class CancellationFeeKind(models.TextChoices):
    FLAT = "flat", "Flat amount (cents)"
    PERCENTAGE = "percentage", "Percentage of total"


class MilestoneStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    SUBMITTED = "submitted", "Submitted"
    ACCEPTED = "accepted", "Accepted"


CHANGEABLE_FIELDS = ("deadline_at", "description", "options", "reference_images")


class RevisionPolicyFields(models.Model):
    """Optional revision allowance; ``revisions_free`` NULL means no policy."""
    revisions_free = models.PositiveIntegerField(null=True, blank=True)
    revisions_limited = models.BooleanField(default=True)
    extra_revisions_allowed = models.BooleanField(default=False)
    extra_revision_fee_cents = models.PositiveBigIntegerField(default=0)
    revisions_done = models.PositiveIntegerField(default=0)

    class Meta:
        abstract = True

    @property
    def revision_policy(self) -> RevisionPolicy | None:
        if self.revisions_free is None:
            return None
        return RevisionPolicy(
            free=self.revisions_free,
            limited=self.revisions_limited,
            extra_allowed=self.extra_revisions_allowed,
            fee_cents=self.extra_revision_fee_cents,
        )


class Contract(RevisionPolicyFields):
    number = models.CharField(max_length=30, unique=True, editable=False, db_index=True)
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="contracts_as_client"
    )
    artist = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="contracts_as_artist"
    )
    flow = models.CharField(max_length=20, choices=ContractFlow.choices, default=ContractFlow.STANDARD)
    status = models.CharField(
        max_length=30, choices=ContractStatus.choices,
        default=ContractStatus.ACTIVE, db_index=True
    )

    # Terms (mutable only through applied change tickets)
    description = models.TextField(blank=True)
    options = models.JSONField(default=dict, blank=True)
    reference_images = models.JSONField(default=list, blank=True)
    contract_version = models.PositiveIntegerField(default=1)

    # Finance snapshot, integer cents
    base_price_cents = models.PositiveBigIntegerField(default=0)
    option_fees_cents = models.PositiveBigIntegerField(default=0)
    addons_cents = models.PositiveBigIntegerField(default=0)
    runtime_fees_cents = models.PositiveBigIntegerField(default=0)
    total_cents = models.PositiveBigIntegerField(default=0)
    artist_payout_cents = models.PositiveBigIntegerField(null=True, blank=True)
    client_payout_cents = models.PositiveBigIntegerField(null=True, blank=True)

    # Policy snapshot from the listing
    cancellation_fee_kind = models.CharField(
        max_length=20, choices=CancellationFeeKind.choices, default=CancellationFeeKind.FLAT
    )
    cancellation_fee_amount = models.PositiveBigIntegerField(
        default=0, help_text="Cents for a flat fee, percent (0-100) for a percentage fee."
    )
    late_penalty_percent = models.PositiveSmallIntegerField(default=10)
    grace_days = models.PositiveSmallIntegerField(default=7)
    revision_type = models.CharField(max_length=20, choices=RevisionType.choices, default=RevisionType.NONE)
    allow_contract_change = models.BooleanField(default=False)
    changeable_fields = models.JSONField(default=list, blank=True)

    # Progress & timeline
    work_percentage = models.PositiveSmallIntegerField(default=0)
    current_milestone_index = models.PositiveIntegerField(null=True, blank=True)
    deadline_at = models.DateTimeField()
    grace_ends_at = models.DateTimeField(db_index=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"[{self.number}] {self.get_status_display()}"

    def save(self, *args, **kwargs):
        if not self.number:
            self.number = self._generate_contract_number()
        super().save(*args, **kwargs)

    def _generate_contract_number(self):
        prefix = f'CTR-{timezone.now().strftime("%Y%m%d")}-'
        with transaction.atomic():
            last_contract = Contract.objects.filter(number__startswith=prefix).order_by("number").last()
            if last_contract:
                new_suffix = int(last_contract.number.split("-")[-1]) + 1
            else:
                new_suffix = 1
            return f"{prefix}{new_suffix:04d}"

    # --- parties ---
    def role_of(self, user) -> str | None:
        user_id = getattr(user, "pk", None)
        if user_id is None:
            return None
        if user_id == self.client_id:
            return PartyRole.CLIENT
        if user_id == self.artist_id:
            return PartyRole.ARTIST
        return None

    def user_for(self, role: str):
        return self.client if role == PartyRole.CLIENT else self.artist

    # --- lifecycle helpers ---
    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE

    def is_late(self, as_of=None) -> bool:
        return (as_of or timezone.now()) > self.deadline_at

    def grace_end_for(self, deadline_at):
        return deadline_at + timedelta(days=self.grace_days)

    @property
    def cancellation_fee(self) -> CancellationFee:
        return CancellationFee(kind=self.cancellation_fee_kind, amount=self.cancellation_fee_amount)

    @property
    def current_milestone(self):
        if self.current_milestone_index is None:
            return None
        return self.milestones.filter(index=self.current_milestone_index).first()


class Milestone(RevisionPolicyFields):
    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name="milestones")
    index = models.PositiveIntegerField()
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    percent = models.PositiveSmallIntegerField()
    status = models.CharField(
        max_length=20, choices=MilestoneStatus.choices,
        default=MilestoneStatus.PENDING, db_index=True
    )
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["index"]
        unique_together = [("contract", "index")]

    def __str__(self):
        return f"{self.index}. {self.title} ({self.percent}%)"
