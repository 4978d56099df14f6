# backend/contracts/admin.py
from __future__ import annotations

from django.contrib import admin, messages

from .errors import LifecycleError
from .models import (
    CancelTicket,
    ChangeTicket,
    Contract,
    FinalUpload,
    Milestone,
    ProgressUploadMilestone,
    ProgressUploadStandard,
    ResolutionDecision,
    ResolutionTicket,
    RevisionTicket,
    RevisionUpload,
)
from .services import resolution


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0
    fields = ("index", "title", "percent", "status", "revisions_free", "revisions_done", "completed_at")
    readonly_fields = ("status", "revisions_done", "completed_at")


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "client", "artist", "flow", "status", "total_cents", "deadline_at", "created_at")
    search_fields = ("number", "client__email", "artist__email")
    list_filter = ("status", "flow", "revision_type")
    readonly_fields = (
        "number", "status", "total_cents", "runtime_fees_cents", "artist_payout_cents", "client_payout_cents",
        "work_percentage", "current_milestone_index", "contract_version", "closed_at", "created_at", "updated_at",
    )
    inlines = [MilestoneInline]


class LifecycleAdmin(admin.ModelAdmin):
    list_filter = ("status",)
    search_fields = ("contract__number",)
    readonly_fields = ("status", "expires_at", "created_at", "updated_at")


@admin.register(CancelTicket)
class CancelTicketAdmin(LifecycleAdmin):
    list_display = ("id", "contract", "requested_by", "status", "expires_at", "resolved_at")


@admin.register(RevisionTicket)
class RevisionTicketAdmin(LifecycleAdmin):
    list_display = ("id", "contract", "milestone_index", "status", "fee_cents", "resolved", "expires_at")


@admin.register(ChangeTicket)
class ChangeTicketAdmin(LifecycleAdmin):
    list_display = ("id", "contract", "status", "is_paid_change", "fee_cents", "contract_version_after", "expires_at")


@admin.register(ProgressUploadStandard)
class ProgressUploadStandardAdmin(admin.ModelAdmin):
    list_display = ("id", "contract", "created_at")
    search_fields = ("contract__number",)


@admin.register(ProgressUploadMilestone)
class ProgressUploadMilestoneAdmin(LifecycleAdmin):
    list_display = ("id", "contract", "milestone", "is_final", "status", "expires_at", "closed_at")


@admin.register(RevisionUpload)
class RevisionUploadAdmin(LifecycleAdmin):
    list_display = ("id", "contract", "revision_ticket", "status", "expires_at", "closed_at")


@admin.register(FinalUpload)
class FinalUploadAdmin(LifecycleAdmin):
    list_display = ("id", "contract", "work_progress", "cancel_ticket", "status", "expires_at", "closed_at")


@admin.register(ResolutionTicket)
class ResolutionTicketAdmin(LifecycleAdmin):
    list_display = ("id", "contract", "target_type", "target_id", "submitted_by", "status", "decision", "expires_at")
    list_filter = ("status", "target_type", "decision")
    readonly_fields = (
        "status", "decision", "resolved_by", "resolved_at", "counter_submitted_at",
        "expires_at", "created_at", "updated_at",
    )
    actions = ("action_favor_client", "action_favor_artist")

    def _resolve(self, request, queryset, decision):
        done = 0
        for ticket in queryset:
            try:
                resolution.resolve(ticket.pk, request.user, decision=decision,
                                   resolution_note=f"Resolved from admin by {request.user}")
                done += 1
            except LifecycleError as e:
                self.message_user(request, f"Resolution {ticket.pk}: {e}", level=messages.ERROR)
        if done:
            self.message_user(request, f"Resolved {done} dispute(s).", level=messages.SUCCESS)

    @admin.action(description="Resolve in favour of the client")
    def action_favor_client(self, request, queryset):
        self._resolve(request, queryset, ResolutionDecision.FAVOR_CLIENT)

    @admin.action(description="Resolve in favour of the artist")
    def action_favor_artist(self, request, queryset):
        self._resolve(request, queryset, ResolutionDecision.FAVOR_ARTIST)
