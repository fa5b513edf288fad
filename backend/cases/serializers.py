from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from clients.serializers import CorporationRefSerializer
from .models import Task, TaxCase, TaxCaseNote


class ContactRefSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    contact_number = serializers.CharField()
    full_name = serializers.CharField()


class TaxCaseSerializer(serializers.ModelSerializer):
    contact = ContactRefSerializer(read_only=True)
    corporation = CorporationRefSerializer(read_only=True)
    assigned_preparer = UserSummarySerializer(read_only=True)
    reviewer = UserSummarySerializer(read_only=True)
    created_by = UserSummarySerializer(read_only=True)
    is_locked = serializers.BooleanField(read_only=True)
    allowed_transitions = serializers.ListField(read_only=True)

    class Meta:
        model = TaxCase
        fields = (
            "id", "case_number", "title", "case_type", "fiscal_year", "status",
            "priority", "contact", "corporation", "assigned_preparer", "reviewer",
            "created_by", "estimated_fee", "actual_fee", "due_date",
            "extension_date", "filed_date", "completed_date", "closed_date",
            "description", "is_locked", "allowed_transitions",
            "created_at", "updated_at",
        )


class TaxCaseWriteSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    case_type = serializers.ChoiceField(choices=TaxCase.CaseType.choices)
    fiscal_year = serializers.IntegerField(min_value=1900, max_value=2100)
    contact_id = serializers.IntegerField()
    corporation_id = serializers.IntegerField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=TaxCase.Priority.choices, required=False)
    assigned_preparer_id = serializers.IntegerField(required=False, allow_null=True)
    reviewer_id = serializers.IntegerField(required=False, allow_null=True)
    estimated_fee = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    actual_fee = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)
    extension_date = serializers.DateField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True)


class TaxCaseUpdateSerializer(TaxCaseWriteSerializer):
    contact_id = None


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaxCase.Status.choices)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class TaxCaseNoteSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = TaxCaseNote
        fields = ("id", "content", "is_internal", "author", "created_at")
        read_only_fields = ("id", "author", "created_at")


class TaskSerializer(serializers.ModelSerializer):
    assigned_to = UserSummarySerializer(read_only=True)
    created_by = UserSummarySerializer(read_only=True)
    case_number = serializers.CharField(source="case.case_number", read_only=True, default=None)

    class Meta:
        model = Task
        fields = (
            "id", "title", "description", "status", "priority", "due_date",
            "completed_at", "assigned_to", "created_by", "case", "case_number",
            "contact", "created_at", "updated_at",
        )


class TaskWriteSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=Task.Priority.choices, required=False)
    due_date = serializers.DateField(required=False, allow_null=True)
    assigned_to_id = serializers.IntegerField(required=False, allow_null=True)


class TaskCreateSerializer(TaskWriteSerializer):
    case_id = serializers.IntegerField(required=False, allow_null=True)
    contact_id = serializers.IntegerField(required=False, allow_null=True)


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Task.Status.choices)
