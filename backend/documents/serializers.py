from rest_framework import serializers

from accounts.serializers import DepartmentSerializer, UserSummarySerializer
from cases.serializers import ContactRefSerializer
from clients.serializers import CorporationRefSerializer
from .models import DepartmentClientFolder, Document


class FolderSerializer(serializers.ModelSerializer):
    department = DepartmentSerializer(read_only=True)
    contact = ContactRefSerializer(read_only=True)
    corporation = CorporationRefSerializer(read_only=True)
    client_name = serializers.CharField(read_only=True)
    document_count = serializers.SerializerMethodField()

    class Meta:
        model = DepartmentClientFolder
        fields = (
            "id", "name", "department", "parent", "contact", "corporation",
            "client_name", "description", "is_default", "document_count",
            "created_at", "updated_at",
        )

    def get_document_count(self, obj):
        return obj.documents.count()


class FolderTreeSerializer(serializers.ModelSerializer):
    children = serializers.SerializerMethodField()

    class Meta:
        model = DepartmentClientFolder
        fields = ("id", "name", "is_default", "children")

    def get_children(self, obj):
        return FolderTreeSerializer(obj.children.all(), many=True).data


class FolderCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    department_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    contact_id = serializers.IntegerField(required=False, allow_null=True)
    corporation_id = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if not attrs.get("parent_id") and not attrs.get("department_id"):
            raise serializers.ValidationError({"department_id": "Required for a top-level folder."})
        return attrs


class FolderInitializeSerializer(serializers.Serializer):
    department_id = serializers.IntegerField()
    contact_id = serializers.IntegerField(required=False, allow_null=True)
    corporation_id = serializers.IntegerField(required=False, allow_null=True)


class DocumentSerializer(serializers.ModelSerializer):
    contact = ContactRefSerializer(read_only=True)
    corporation = CorporationRefSerializer(read_only=True)
    uploaded_by = UserSummarySerializer(read_only=True)
    file_name = serializers.SerializerMethodField()

    class Meta:
        model = Document
        fields = (
            "id", "title", "doc_type", "status", "description", "file_name",
            "file_size", "mime_type", "contact", "corporation", "case", "folder",
            "uploaded_by", "created_at", "updated_at",
        )

    def get_file_name(self, obj):
        return obj.file.name.rsplit("/", 1)[-1] if obj.file else ""


class DocumentUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    title = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    doc_type = serializers.ChoiceField(choices=Document.DocType.choices, required=False,
                                       default=Document.DocType.OTHER)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    contact_id = serializers.IntegerField(required=False, allow_null=True)
    corporation_id = serializers.IntegerField(required=False, allow_null=True)
    case_id = serializers.IntegerField(required=False, allow_null=True)
    folder_id = serializers.IntegerField(required=False, allow_null=True)


class DocumentUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    doc_type = serializers.ChoiceField(choices=Document.DocType.choices, required=False)
    status = serializers.ChoiceField(choices=Document.Status.choices, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    folder_id = serializers.IntegerField(required=False, allow_null=True)
