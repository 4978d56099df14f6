from rest_framework import serializers

from ..models import ResolutionDecision, ResolutionTargetType, ResolutionTicket


class ResolutionTicketSerializer(serializers.ModelSerializer):
    counter_expires_at = serializers.DateTimeField(read_only=True)

    class Meta:
        model = ResolutionTicket
        fields = [
            "id", "contract", "submitted_by", "submitted_by_user", "counterparty",
            "target_type", "target_id", "description", "proof_images",
            "counter_description", "counter_proof_images", "counter_submitted_at", "counter_expires_at",
            "status", "decision", "resolution_note", "resolved_by", "resolved_at",
            "created_at", "updated_at",
        ]
        read_only_fields = fields


class EscalateSerializer(serializers.Serializer):
    contract = serializers.IntegerField()
    target_type = serializers.ChoiceField(choices=ResolutionTargetType.choices)
    target_id = serializers.IntegerField()
    description = serializers.CharField()
    proof_images = serializers.ListField(child=serializers.CharField(), allow_empty=False)


class CounterproofSerializer(serializers.Serializer):
    description = serializers.CharField()
    images = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class ResolveSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=ResolutionDecision.choices)
    resolution_note = serializers.CharField(required=False, allow_blank=True, default="")
