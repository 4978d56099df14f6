from rest_framework import serializers

from ..models import FinalUpload, ProgressUploadMilestone, ProgressUploadStandard, ResponseDecision, RevisionUpload

REVIEW_FIELDS = ["status", "rejection_reason", "expires_at", "closed_at", "created_at", "updated_at"]


def images_field():
    return serializers.ListField(child=serializers.CharField(), allow_empty=False)


class ProgressUploadStandardSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProgressUploadStandard
        fields = ["id", "contract", "images", "description", "created_at"]
        read_only_fields = fields


class ProgressUploadMilestoneSerializer(serializers.ModelSerializer):
    milestone_index = serializers.IntegerField(source="milestone.index", read_only=True)

    class Meta:
        model = ProgressUploadMilestone
        fields = ["id", "contract", "milestone", "milestone_index", "is_final", "images", "description", *REVIEW_FIELDS]
        read_only_fields = fields


class RevisionUploadSerializer(serializers.ModelSerializer):
    class Meta:
        model = RevisionUpload
        fields = ["id", "contract", "revision_ticket", "images", "description", *REVIEW_FIELDS]
        read_only_fields = fields


class FinalUploadSerializer(serializers.ModelSerializer):
    class Meta:
        model = FinalUpload
        fields = ["id", "contract", "work_progress", "cancel_ticket", "images", "description", *REVIEW_FIELDS]
        read_only_fields = fields


class ProgressUploadCreateSerializer(serializers.Serializer):
    contract = serializers.IntegerField()
    images = images_field()
    description = serializers.CharField(required=False, allow_blank=True, default="")


class MilestoneUploadCreateSerializer(ProgressUploadCreateSerializer):
    milestone_index = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    is_final = serializers.BooleanField(default=False)


class RevisionUploadCreateSerializer(serializers.Serializer):
    revision_ticket = serializers.IntegerField()
    images = images_field()
    description = serializers.CharField(required=False, allow_blank=True, default="")


class FinalUploadCreateSerializer(ProgressUploadCreateSerializer):
    work_progress = serializers.IntegerField(min_value=0, max_value=100, default=100)
    cancel_ticket = serializers.IntegerField(required=False, allow_null=True)


class ReviewSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=ResponseDecision.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
