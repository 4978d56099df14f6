from rest_framework import serializers

from ..models import CHANGEABLE_FIELDS, CancelTicket, ChangeTicket, ResponseDecision, RevisionTicket

LIFECYCLE_FIELDS = ["status", "expires_at", "resolved_at", "created_at", "updated_at"]


class CancelTicketSerializer(serializers.ModelSerializer):
    class Meta:
        model = CancelTicket
        fields = ["id", "contract", "requested_by", "reason", "rejection_reason", *LIFECYCLE_FIELDS]
        read_only_fields = fields


class CancelTicketCreateSerializer(serializers.Serializer):
    contract = serializers.IntegerField()
    reason = serializers.CharField()


class RevisionTicketSerializer(serializers.ModelSerializer):
    awaiting_payment = serializers.BooleanField(read_only=True)

    class Meta:
        model = RevisionTicket
        fields = [
            "id", "contract", "milestone_index", "description", "reference_images",
            "fee_cents", "paid_fee_cents", "awaiting_payment", "escrow_reference",
            "artist_rejection_reason", "resolved", *LIFECYCLE_FIELDS,
        ]
        read_only_fields = fields


class RevisionTicketCreateSerializer(serializers.Serializer):
    contract = serializers.IntegerField()
    description = serializers.CharField()
    milestone_index = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    reference_images = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class ChangeTicketSerializer(serializers.ModelSerializer):
    class Meta:
        model = ChangeTicket
        fields = [
            "id", "contract", "reason", "change_set", "is_paid_change", "fee_cents",
            "escrow_reference", "rejection_reason",
            "contract_version_before", "contract_version_after", *LIFECYCLE_FIELDS,
        ]
        read_only_fields = fields


class ChangeTicketCreateSerializer(serializers.Serializer):
    contract = serializers.IntegerField()
    reason = serializers.CharField()
    change_set = serializers.DictField()

    def validate_change_set(self, value):
        unknown = set(value) - set(CHANGEABLE_FIELDS)
        if unknown:
            raise serializers.ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        return value


class RespondSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=ResponseDecision.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    fee_cents = serializers.IntegerField(min_value=0, required=False, default=0)


class PaySerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField(min_value=1)
