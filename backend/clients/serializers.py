"""
Serializers for the clients API.

Output serializers format records; the *Create/*Update serializers only
validate input. Writes happen in commands.py.
"""

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from .models import Contact, Corporation


class CorporationRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Corporation
        fields = ("id", "name", "entity_type", "status")


class CorporationSerializer(serializers.ModelSerializer):
    member_of = CorporationRefSerializer(read_only=True)
    related_corporations = CorporationRefSerializer(many=True, read_only=True)
    subsidiaries = serializers.SerializerMethodField()
    ein_masked = serializers.SerializerMethodField()
    assigned_to = UserSummarySerializer(read_only=True)
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Corporation
        fields = (
            "id", "name", "legal_name", "entity_type", "ein_masked", "status",
            "fiscal_year_end", "email", "phone", "street_address", "city",
            "state", "zip_code", "country", "description", "member_of",
            "subsidiaries", "related_corporations", "assigned_to",
            "created_by", "created_at", "updated_at",
        )

    def get_subsidiaries(self, obj):
        return CorporationRefSerializer(obj.subsidiaries.filter(deleted_at__isnull=True), many=True).data

    def get_ein_masked(self, obj):
        if not obj.ein:
            return ""
        return f"**-***{obj.ein[-4:]}"


class CorporationWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    legal_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    entity_type = serializers.ChoiceField(choices=Corporation.EntityType.choices, required=False)
    ein = serializers.RegexField(r"^\d{2}-?\d{7}$", required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=Corporation.Status.choices, required=False)
    fiscal_year_end = serializers.CharField(max_length=10, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    street_address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    zip_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    member_of_id = serializers.IntegerField(required=False, allow_null=True)
    assigned_to_id = serializers.IntegerField(required=False, allow_null=True)


class CorporationCreateSerializer(CorporationWriteSerializer):
    related_ids = serializers.ListField(child=serializers.IntegerField(), required=False)


class ContactSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    corporations = CorporationRefSerializer(many=True, read_only=True)
    primary_corporation = CorporationRefSerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Contact
        fields = (
            "id", "contact_number", "salutation", "first_name", "last_name",
            "full_name", "email", "phone", "mobile", "date_of_birth",
            "ssn_last_four", "street_address", "city", "state", "zip_code",
            "country", "status", "description", "corporations",
            "primary_corporation", "assigned_to", "created_by",
            "created_at", "updated_at",
        )


class ContactWriteSerializer(serializers.Serializer):
    salutation = serializers.ChoiceField(choices=Contact.Salutation.choices, required=False, allow_blank=True)
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    mobile = serializers.CharField(max_length=30, required=False, allow_blank=True)
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    ssn_last_four = serializers.RegexField(r"^\d{4}$", required=False, allow_blank=True)
    street_address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    zip_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=Contact.Status.choices, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    assigned_to_id = serializers.IntegerField(required=False, allow_null=True)
    primary_corporation_id = serializers.IntegerField(required=False, allow_null=True)


class ContactCreateSerializer(ContactWriteSerializer):
    corporation_ids = serializers.ListField(child=serializers.IntegerField(), required=False)


class ContactCorporationSerializer(serializers.Serializer):
    corporation_id = serializers.IntegerField()
    make_primary = serializers.BooleanField(required=False, default=False)


class RelatedCorporationSerializer(serializers.Serializer):
    related_id = serializers.IntegerField()
