from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from cases.serializers import ContactRefSerializer
from .models import Appointment


class AppointmentSerializer(serializers.ModelSerializer):
    contact = ContactRefSerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    created_by = UserSummarySerializer(read_only=True)
    case_number = serializers.CharField(source="case.case_number", read_only=True, default=None)

    class Meta:
        model = Appointment
        fields = (
            "id", "title", "description", "start_datetime", "end_datetime",
            "location", "status", "contact", "case", "case_number",
            "assigned_to", "created_by", "notes", "cancellation_reason",
            "created_at", "updated_at",
        )


class AppointmentCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    contact_id = serializers.IntegerField()
    start_datetime = serializers.DateTimeField()
    end_datetime = serializers.DateTimeField()
    description = serializers.CharField(required=False, allow_blank=True)
    location = serializers.ChoiceField(choices=Appointment.Location.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    case_id = serializers.IntegerField(required=False, allow_null=True)
    assigned_to_id = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs["end_datetime"] <= attrs["start_datetime"]:
            raise serializers.ValidationError({"end_datetime": "End time must be after the start time."})
        return attrs


class AppointmentUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    location = serializers.ChoiceField(choices=Appointment.Location.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    case_id = serializers.IntegerField(required=False, allow_null=True)
    assigned_to_id = serializers.IntegerField(required=False, allow_null=True)


class RescheduleSerializer(serializers.Serializer):
    start_datetime = serializers.DateTimeField()
    end_datetime = serializers.DateTimeField()
    assigned_to_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class AppointmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Appointment.Status.choices)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
