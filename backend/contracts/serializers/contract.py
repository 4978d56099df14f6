from django.contrib.auth import get_user_model
from rest_framework import serializers

from accounts.serializers import PublicUserSerializer

from ..models import (
    CHANGEABLE_FIELDS,
    CancellationFeeKind,
    Contract,
    ContractFlow,
    Milestone,
    PartyRole,
    RevisionType,
)
from ..policies import RevisionPolicy

User = get_user_model()


class RevisionPolicySerializer(serializers.Serializer):
    free = serializers.IntegerField(min_value=0)
    limited = serializers.BooleanField(default=True)
    extra_allowed = serializers.BooleanField(default=False)
    fee_cents = serializers.IntegerField(min_value=0, default=0)

    def to_policy(self, data) -> RevisionPolicy:
        return RevisionPolicy(**data)


class MilestoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = Milestone
        fields = [
            "id", "index", "title", "description", "percent", "status",
            "revisions_free", "revisions_limited", "extra_revisions_allowed",
            "extra_revision_fee_cents", "revisions_done",
            "started_at", "completed_at",
        ]
        read_only_fields = fields


class MilestoneInputSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    percent = serializers.IntegerField(min_value=1, max_value=100)
    revision_policy = RevisionPolicySerializer(required=False, allow_null=True)


class ContractSerializer(serializers.ModelSerializer):
    client = PublicUserSerializer(read_only=True)
    artist = PublicUserSerializer(read_only=True)
    milestones = MilestoneSerializer(many=True, read_only=True)
    my_role = serializers.SerializerMethodField()

    class Meta:
        model = Contract
        fields = [
            "id", "number", "client", "artist", "my_role", "flow", "status",
            "description", "options", "reference_images", "contract_version",
            "base_price_cents", "option_fees_cents", "addons_cents", "runtime_fees_cents", "total_cents",
            "artist_payout_cents", "client_payout_cents",
            "cancellation_fee_kind", "cancellation_fee_amount", "late_penalty_percent", "grace_days",
            "revision_type", "revisions_free", "revisions_limited", "extra_revisions_allowed",
            "extra_revision_fee_cents", "revisions_done",
            "allow_contract_change", "changeable_fields",
            "work_percentage", "current_milestone_index", "milestones",
            "deadline_at", "grace_ends_at", "closed_at", "created_at", "updated_at",
        ]
        read_only_fields = fields

    def get_my_role(self, obj):
        request = self.context.get("request")
        return obj.role_of(request.user) if request else None


class ContractCreateSerializer(serializers.Serializer):
    """Proposal finalization payload. The caller must be the client or the artist."""
    client = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    artist = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    flow = serializers.ChoiceField(choices=ContractFlow.choices, default=ContractFlow.STANDARD)
    deadline_at = serializers.DateTimeField()
    base_price_cents = serializers.IntegerField(min_value=0)
    option_fees_cents = serializers.IntegerField(min_value=0, default=0)
    addons_cents = serializers.IntegerField(min_value=0, default=0)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    options = serializers.DictField(required=False, default=dict)
    reference_images = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    milestones = MilestoneInputSerializer(many=True, required=False, default=list)
    cancellation_fee_kind = serializers.ChoiceField(choices=CancellationFeeKind.choices, default=CancellationFeeKind.FLAT)
    cancellation_fee_amount = serializers.IntegerField(min_value=0, default=0)
    late_penalty_percent = serializers.IntegerField(min_value=0, max_value=100, required=False)
    grace_days = serializers.IntegerField(min_value=0, required=False)
    revision_type = serializers.ChoiceField(choices=RevisionType.choices, default=RevisionType.NONE)
    revision_policy = RevisionPolicySerializer(required=False, allow_null=True)
    allow_contract_change = serializers.BooleanField(default=False)
    changeable_fields = serializers.ListField(
        child=serializers.ChoiceField(choices=CHANGEABLE_FIELDS), required=False, default=list
    )

    def to_service_kwargs(self) -> dict:
        data = dict(self.validated_data)
        policy = data.pop("revision_policy", None)
        data["revision_policy"] = RevisionPolicy(**policy) if policy else None
        milestones = []
        for item in data.pop("milestones", []):
            item = dict(item)
            item_policy = item.pop("revision_policy", None)
            item["revision_policy"] = RevisionPolicy(**item_policy) if item_policy else None
            milestones.append(item)
        data["milestones"] = milestones
        return data


class PayoutPreviewQuerySerializer(serializers.Serializer):
    initiated_by = serializers.ChoiceField(choices=PartyRole.choices)
    work_progress = serializers.IntegerField(min_value=0, max_value=100, required=False)
