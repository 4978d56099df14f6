# backend/payments/serializers.py
from rest_framework import serializers

from .models import EscrowTransaction


class EscrowTransactionSerializer(serializers.ModelSerializer):
    contract_number = serializers.CharField(source="contract.number", read_only=True)

    class Meta:
        model = EscrowTransaction
        fields = [
            "id",
            "contract",
            "contract_number",
            "kind",
            "party",
            "amount_cents",
            "idempotency_key",
            "note",
            "created_at",
        ]
        read_only_fields = fields
