from rest_framework import serializers

from cases.models import TaxCase
from clients.models import Contact
from .models import ClientPortalAccess, PortalMessage


class PortalLoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class PortalRefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class PortalContactSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Contact
        fields = ("id", "contact_number", "first_name", "last_name", "full_name", "email", "phone")


class PortalMeSerializer(serializers.ModelSerializer):
    contact = PortalContactSerializer(read_only=True)

    class Meta:
        model = ClientPortalAccess
        fields = ("id", "email", "last_login", "contact")


class PortalCaseSerializer(serializers.ModelSerializer):
    """Client-facing case view; fees, reviewers and internal notes stay hidden."""

    class Meta:
        model = TaxCase
        fields = ("id", "case_number", "title", "case_type", "fiscal_year", "status", "due_date", "filed_date")


class PortalMessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.SerializerMethodField()

    class Meta:
        model = PortalMessage
        fields = (
            "id", "case", "message_type", "subject", "body", "sender_name",
            "parent_message", "is_read", "created_at",
        )

    def get_sender_name(self, obj):
        if obj.message_type == PortalMessage.MessageType.STAFF:
            return obj.sender_user.full_name if obj.sender_user else "Staff"
        return obj.contact.full_name


class PortalMessageCreateSerializer(serializers.Serializer):
    subject = serializers.CharField(max_length=255)
    body = serializers.CharField()
    case_id = serializers.IntegerField(required=False, allow_null=True)
    parent_message_id = serializers.IntegerField(required=False, allow_null=True)


class PortalAccessGrantSerializer(serializers.Serializer):
    contact_id = serializers.IntegerField()
    email = serializers.EmailField(required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True, min_length=8)
    send_welcome = serializers.BooleanField(required=False, default=True)


class PortalAccessSerializer(serializers.ModelSerializer):
    contact = PortalContactSerializer(read_only=True)

    class Meta:
        model = ClientPortalAccess
        fields = ("id", "email", "is_active", "last_login", "contact", "created_at")
