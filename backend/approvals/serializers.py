from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from .conditions import validate_conditions
from .models import Approval, ApprovalAction, ApprovalActionLog, ApprovalRequest, ApprovalRule

RECIPIENT_REQUIRED = {
    ApprovalAction.ActionType.SEND_EMAIL,
    ApprovalAction.ActionType.SEND_NOTIFICATION,
}


class ApprovalActionSerializer(serializers.ModelSerializer):
    class Meta:
        model = ApprovalAction
        fields = ("id", "phase", "action_type", "action_title", "action_config", "is_active", "created_at")


class ApprovalRuleSerializer(serializers.ModelSerializer):
    owner_profile_ids = serializers.PrimaryKeyRelatedField(source="owner_profiles", many=True, read_only=True)
    approver_ids = serializers.PrimaryKeyRelatedField(source="approvers", many=True, read_only=True)

    class Meta:
        model = ApprovalRule
        fields = ("id", "rule_number", "conditions", "owner_profile_ids", "approver_ids", "created_at")


class ApprovalListSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    rule_count = serializers.IntegerField(source="rules.count", read_only=True)

    class Meta:
        model = Approval
        fields = ("id", "name", "module", "is_active", "trigger", "apply_on", "created_by", "rule_count", "created_at")


class ApprovalDetailSerializer(serializers.ModelSerializer):
    rules = ApprovalRuleSerializer(many=True, read_only=True)
    actions = ApprovalActionSerializer(many=True, read_only=True)
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Approval
        fields = (
            "id", "name", "module", "is_active", "description", "trigger",
            "entry_criteria_all", "entry_criteria_any", "apply_on", "rules",
            "actions", "created_by", "created_at", "updated_at",
        )


class ApprovalRuleWriteSerializer(serializers.Serializer):
    rule_number = serializers.IntegerField(min_value=1, default=1)
    conditions = serializers.JSONField(default=list)
    owner_profile_ids = serializers.ListField(child=serializers.IntegerField(), default=list)
    approver_ids = serializers.ListField(child=serializers.IntegerField(), default=list)

    def validate_conditions(self, value):
        errors = validate_conditions(value)
        if errors:
            raise serializers.ValidationError(errors)
        return value

    def validate(self, attrs):
        if not attrs.get("owner_profile_ids") and not attrs.get("approver_ids"):
            raise serializers.ValidationError("A rule needs at least one approver or owner profile.")
        return attrs


class ApprovalActionWriteSerializer(serializers.Serializer):
    phase = serializers.ChoiceField(choices=ApprovalAction.Phase.choices)
    action_type = serializers.ChoiceField(choices=ApprovalAction.ActionType.choices)
    action_title = serializers.CharField(max_length=255)
    action_config = serializers.JSONField(default=dict)
    is_active = serializers.BooleanField(default=True)

    def validate(self, attrs):
        config = attrs.get("action_config") or {}
        if not isinstance(config, dict):
            raise serializers.ValidationError({"action_config": "Must be an object."})
        action_type = attrs["action_type"]
        if action_type == ApprovalAction.ActionType.UPDATE_FIELD and not config.get("field"):
            raise serializers.ValidationError({"action_config": "update_field needs a 'field'."})
        if action_type in RECIPIENT_REQUIRED and not config.get("recipient"):
            raise serializers.ValidationError({"action_config": f"{action_type} needs a 'recipient'."})
        return attrs


class ApprovalWriteSerializer(serializers.Serializer):
    """Nested payload for creating or replacing a definition."""

    name = serializers.CharField(max_length=255)
    module = serializers.ChoiceField(choices=Approval.Module.choices)
    is_active = serializers.BooleanField(required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    trigger = serializers.ChoiceField(choices=Approval.TriggerType.choices, required=False)
    entry_criteria_all = serializers.JSONField(required=False)
    entry_criteria_any = serializers.JSONField(required=False)
    apply_on = serializers.ChoiceField(choices=Approval.ApplyOn.choices, required=False)
    rules = ApprovalRuleWriteSerializer(many=True, required=False)
    actions = ApprovalActionWriteSerializer(many=True, required=False)

    def validate_entry_criteria_all(self, value):
        errors = validate_conditions(value)
        if errors:
            raise serializers.ValidationError(errors)
        return value

    def validate_entry_criteria_any(self, value):
        errors = validate_conditions(value)
        if errors:
            raise serializers.ValidationError(errors)
        return value


class SubmitSerializer(serializers.Serializer):
    module = serializers.ChoiceField(choices=Approval.Module.choices)
    object_id = serializers.CharField(max_length=64)


class DecisionSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default="")


class ApprovalActionLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ApprovalActionLog
        fields = ("id", "action_type", "action_title", "result", "detail", "created_at")


class ApprovalRequestSerializer(serializers.ModelSerializer):
    approvers = UserSummarySerializer(many=True, read_only=True)
    submitted_by = UserSummarySerializer(read_only=True)
    decided_by = UserSummarySerializer(read_only=True)
    action_logs = ApprovalActionLogSerializer(many=True, read_only=True)

    class Meta:
        model = ApprovalRequest
        fields = (
            "id", "approval", "approval_name", "rule", "module", "object_id",
            "object_repr", "status", "approvers", "submitted_by", "decided_by",
            "decided_at", "comment", "action_logs", "created_at",
        )
