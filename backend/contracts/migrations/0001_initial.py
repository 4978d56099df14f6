import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

CANCEL_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("accepted", "Accepted"),
    ("rejected", "Rejected"),
    ("forced_accepted", "Forced accepted"),
]
REVISION_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("accepted", "Accepted"),
    ("rejected", "Rejected"),
    ("paid", "Paid"),
    ("forced_accepted_artist", "Forced accepted (artist)"),
    ("cancelled", "Cancelled"),
]
CHANGE_STATUS_CHOICES = [
    ("pending_artist", "Awaiting artist"),
    ("pending_client", "Awaiting client payment"),
    ("accepted_artist", "Accepted by artist"),
    ("rejected_artist", "Rejected by artist"),
    ("rejected_client", "Rejected by client"),
    ("paid", "Paid"),
    ("forced_accepted_artist", "Forced accepted (artist)"),
    ("forced_accepted_client", "Forced accepted (client)"),
    ("cancelled", "Cancelled"),
]
UPLOAD_STATUS_CHOICES = [
    ("submitted", "Submitted"),
    ("accepted", "Accepted"),
    ("rejected", "Rejected"),
    ("forced_accepted", "Forced accepted"),
]
PARTY_CHOICES = [("client", "Client"), ("artist", "Artist")]


def revision_policy_fields():
    return [
        ("revisions_free", models.PositiveIntegerField(blank=True, null=True)),
        ("revisions_limited", models.BooleanField(default=True)),
        ("extra_revisions_allowed", models.BooleanField(default=False)),
        ("extra_revision_fee_cents", models.PositiveBigIntegerField(default=0)),
        ("revisions_done", models.PositiveIntegerField(default=0)),
    ]


def lifecycle_fields():
    return [
        ("expires_at", models.DateTimeField(blank=True, db_index=True, null=True)),
        ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


def reviewed_upload_fields(status_field):
    return [
        *lifecycle_fields(),
        ("images", models.JSONField(default=list)),
        ("description", models.TextField(blank=True)),
        ("status", status_field),
        ("rejection_reason", models.TextField(blank=True)),
        ("closed_at", models.DateTimeField(blank=True, null=True)),
    ]


def pk():
    return ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"))


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Contract",
            fields=[
                pk(),
                *revision_policy_fields(),
                ("number", models.CharField(db_index=True, editable=False, max_length=30, unique=True)),
                ("flow", models.CharField(choices=[("standard", "Standard"), ("milestone", "Milestone")], default="standard", max_length=20)),
                ("status", models.CharField(
                    choices=[
                        ("active", "Active"),
                        ("completed", "Completed"),
                        ("completed_late", "Completed (late)"),
                        ("cancelled_client", "Cancelled by client"),
                        ("cancelled_client_late", "Cancelled by client (late)"),
                        ("cancelled_artist", "Cancelled by artist"),
                        ("cancelled_artist_late", "Cancelled by artist (late)"),
                        ("not_completed", "Not completed"),
                    ],
                    db_index=True, default="active", max_length=30,
                )),
                ("description", models.TextField(blank=True)),
                ("options", models.JSONField(blank=True, default=dict)),
                ("reference_images", models.JSONField(blank=True, default=list)),
                ("contract_version", models.PositiveIntegerField(default=1)),
                ("base_price_cents", models.PositiveBigIntegerField(default=0)),
                ("option_fees_cents", models.PositiveBigIntegerField(default=0)),
                ("addons_cents", models.PositiveBigIntegerField(default=0)),
                ("runtime_fees_cents", models.PositiveBigIntegerField(default=0)),
                ("total_cents", models.PositiveBigIntegerField(default=0)),
                ("artist_payout_cents", models.PositiveBigIntegerField(blank=True, null=True)),
                ("client_payout_cents", models.PositiveBigIntegerField(blank=True, null=True)),
                ("cancellation_fee_kind", models.CharField(choices=[("flat", "Flat amount (cents)"), ("percentage", "Percentage of total")], default="flat", max_length=20)),
                ("cancellation_fee_amount", models.PositiveBigIntegerField(default=0, help_text="Cents for a flat fee, percent (0-100) for a percentage fee.")),
                ("late_penalty_percent", models.PositiveSmallIntegerField(default=10)),
                ("grace_days", models.PositiveSmallIntegerField(default=7)),
                ("revision_type", models.CharField(choices=[("none", "No revisions"), ("standard", "Contract-wide policy"), ("milestone", "Per-milestone policy")], default="none", max_length=20)),
                ("allow_contract_change", models.BooleanField(default=False)),
                ("changeable_fields", models.JSONField(blank=True, default=list)),
                ("work_percentage", models.PositiveSmallIntegerField(default=0)),
                ("current_milestone_index", models.PositiveIntegerField(blank=True, null=True)),
                ("deadline_at", models.DateTimeField()),
                ("grace_ends_at", models.DateTimeField(db_index=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("artist", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="contracts_as_artist", to=settings.AUTH_USER_MODEL)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="contracts_as_client", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Milestone",
            fields=[
                pk(),
                *revision_policy_fields(),
                ("index", models.PositiveIntegerField()),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("percent", models.PositiveSmallIntegerField()),
                ("status", models.CharField(
                    choices=[("pending", "Pending"), ("in_progress", "In Progress"), ("submitted", "Submitted"), ("accepted", "Accepted")],
                    db_index=True, default="pending", max_length=20,
                )),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="milestones", to="contracts.contract")),
            ],
            options={
                "ordering": ["index"],
                "unique_together": {("contract", "index")},
            },
        ),
        migrations.CreateModel(
            name="CancelTicket",
            fields=[
                pk(),
                *lifecycle_fields(),
                ("requested_by", models.CharField(choices=PARTY_CHOICES, max_length=10)),
                ("reason", models.TextField()),
                ("status", models.CharField(choices=CANCEL_STATUS_CHOICES, db_index=True, default="pending", max_length=20)),
                ("rejection_reason", models.TextField(blank=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="cancel_tickets", to="contracts.contract")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="RevisionTicket",
            fields=[
                pk(),
                *lifecycle_fields(),
                ("milestone_index", models.PositiveIntegerField(blank=True, null=True)),
                ("description", models.TextField()),
                ("reference_images", models.JSONField(blank=True, default=list)),
                ("status", models.CharField(choices=REVISION_STATUS_CHOICES, db_index=True, default="pending", max_length=30)),
                ("fee_cents", models.PositiveBigIntegerField(default=0, help_text="Quoted fee; 0 for a free revision.")),
                ("paid_fee_cents", models.PositiveBigIntegerField(blank=True, null=True)),
                ("escrow_reference", models.CharField(blank=True, max_length=120)),
                ("artist_rejection_reason", models.TextField(blank=True)),
                ("resolved", models.BooleanField(default=False)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="revision_tickets", to="contracts.contract")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ChangeTicket",
            fields=[
                pk(),
                *lifecycle_fields(),
                ("reason", models.TextField()),
                ("change_set", models.JSONField(default=dict)),
                ("status", models.CharField(choices=CHANGE_STATUS_CHOICES, db_index=True, default="pending_artist", max_length=30)),
                ("is_paid_change", models.BooleanField(default=False)),
                ("fee_cents", models.PositiveBigIntegerField(default=0)),
                ("escrow_reference", models.CharField(blank=True, max_length=120)),
                ("rejection_reason", models.TextField(blank=True)),
                ("contract_version_before", models.PositiveIntegerField(blank=True, null=True)),
                ("contract_version_after", models.PositiveIntegerField(blank=True, null=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="change_tickets", to="contracts.contract")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ProgressUploadStandard",
            fields=[
                pk(),
                ("images", models.JSONField(default=list)),
                ("description", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="progress_uploads", to="contracts.contract")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ProgressUploadMilestone",
            fields=[
                pk(),
                *reviewed_upload_fields(
                    models.CharField(blank=True, choices=UPLOAD_STATUS_CHOICES, db_index=True, max_length=20, null=True)
                ),
                ("is_final", models.BooleanField(default=False)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="milestone_uploads", to="contracts.contract")),
                ("milestone", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="uploads", to="contracts.milestone")),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="RevisionUpload",
            fields=[
                pk(),
                *reviewed_upload_fields(
                    models.CharField(choices=UPLOAD_STATUS_CHOICES, db_index=True, default="submitted", max_length=20)
                ),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="revision_uploads", to="contracts.contract")),
                ("revision_ticket", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="uploads", to="contracts.revisionticket")),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="FinalUpload",
            fields=[
                pk(),
                *reviewed_upload_fields(
                    models.CharField(choices=UPLOAD_STATUS_CHOICES, db_index=True, default="submitted", max_length=20)
                ),
                ("work_progress", models.PositiveSmallIntegerField(default=100)),
                ("cancel_ticket", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="final_uploads", to="contracts.cancelticket")),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="final_uploads", to="contracts.contract")),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="ResolutionTicket",
            fields=[
                pk(),
                *lifecycle_fields(),
                ("submitted_by", models.CharField(choices=PARTY_CHOICES, max_length=10)),
                ("counterparty", models.CharField(choices=PARTY_CHOICES, max_length=10)),
                ("target_type", models.CharField(
                    choices=[
                        ("cancel_ticket", "Cancel ticket"),
                        ("revision_ticket", "Revision ticket"),
                        ("change_ticket", "Change ticket"),
                        ("final_upload", "Final upload"),
                        ("progress_milestone_upload", "Milestone upload"),
                        ("revision_upload", "Revision upload"),
                    ],
                    max_length=40,
                )),
                ("target_id", models.PositiveBigIntegerField()),
                ("description", models.TextField()),
                ("proof_images", models.JSONField(default=list)),
                ("counter_description", models.TextField(blank=True)),
                ("counter_proof_images", models.JSONField(blank=True, default=list)),
                ("counter_submitted_at", models.DateTimeField(blank=True, null=True)),
                ("status", models.CharField(
                    choices=[("open", "Open"), ("awaiting_review", "Awaiting Review"), ("resolved", "Resolved"), ("cancelled", "Cancelled")],
                    db_index=True, default="open", max_length=20,
                )),
                ("decision", models.CharField(blank=True, choices=[("favor_client", "In favour of the client"), ("favor_artist", "In favour of the artist")], max_length=20)),
                ("resolution_note", models.TextField(blank=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="resolution_tickets", to="contracts.contract")),
                ("resolved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="resolution_tickets_resolved", to=settings.AUTH_USER_MODEL)),
                ("submitted_by_user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="resolution_tickets_submitted", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="cancelticket",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ("pending", "accepted", "forced_accepted"))),
                fields=("contract",),
                name="one_unresolved_cancel_ticket_per_contract",
            ),
        ),
        migrations.AddConstraint(
            model_name="revisionticket",
            constraint=models.UniqueConstraint(
                condition=models.Q(("resolved", False), ("status__in", ("pending", "accepted", "forced_accepted_artist", "paid"))),
                fields=("contract",),
                name="one_unresolved_revision_ticket_per_contract",
            ),
        ),
        migrations.AddConstraint(
            model_name="changeticket",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ("pending_artist", "pending_client"))),
                fields=("contract",),
                name="one_unresolved_change_ticket_per_contract",
            ),
        ),
        migrations.AddConstraint(
            model_name="progressuploadmilestone",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status", "submitted")),
                fields=("milestone",),
                name="one_submitted_upload_per_milestone",
            ),
        ),
        migrations.AddConstraint(
            model_name="revisionupload",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status", "submitted")),
                fields=("revision_ticket",),
                name="one_submitted_upload_per_revision_ticket",
            ),
        ),
        migrations.AddConstraint(
            model_name="finalupload",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status", "submitted")),
                fields=("contract",),
                name="one_submitted_final_upload_per_contract",
            ),
        ),
        migrations.AddConstraint(
            model_name="resolutionticket",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ("open", "awaiting_review"))),
                fields=("target_type", "target_id"),
                name="one_open_resolution_per_target",
            ),
        ),
    ]
