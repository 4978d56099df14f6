# backend/payments/admin.py
from django.contrib import admin

from .models import EscrowTransaction


@admin.register(EscrowTransaction)
class EscrowTransactionAdmin(admin.ModelAdmin):
    list_display = (
        "idempotency_key",
        "contract",
        "kind",
        "party",
        "amount_cents",
        "created_at",
    )
    list_filter = ("kind", "party")
    search_fields = ("idempotency_key", "contract__number", "note")
    readonly_fields = ("contract", "kind", "party", "amount_cents", "idempotency_key", "note", "created_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
