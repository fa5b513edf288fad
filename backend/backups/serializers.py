from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from clients.serializers import CorporationRefSerializer
from .models import AutoBackupConfiguration, Backup


class BackupSerializer(serializers.ModelSerializer):
    corporation = CorporationRefSerializer(read_only=True)
    created_by = UserSummarySerializer(read_only=True)
    file_size_human = serializers.CharField(read_only=True)

    class Meta:
        model = Backup
        fields = (
            "id", "name", "backup_type", "corporation", "include_media", "status",
            "source", "file_size", "file_size_human", "checksum", "error_message",
            "trigger_reason", "created_by", "created_at", "completed_at", "restored_at",
        )


class BackupCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    backup_type = serializers.ChoiceField(choices=Backup.BackupType.choices)
    corporation_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    include_media = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs["backup_type"] == Backup.BackupType.TENANT and not attrs.get("corporation_id"):
            raise serializers.ValidationError({"corporation_id": "Required for tenant backups."})
        if attrs["backup_type"] == Backup.BackupType.GLOBAL:
            attrs["corporation_id"] = None
        return attrs


class BackupRestoreSerializer(serializers.Serializer):
    confirm = serializers.BooleanField(required=False, default=False)


class BackupUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    restore = serializers.BooleanField(required=False, default=False)


class AnalyzeSerializer(serializers.Serializer):
    create_backup = serializers.BooleanField(required=False, default=False)


class AutoBackupConfigurationSerializer(serializers.ModelSerializer):
    class Meta:
        model = AutoBackupConfiguration
        fields = (
            "auto_backup_enabled", "contacts_threshold", "cases_threshold",
            "documents_threshold", "corporations_threshold", "activity_threshold",
            "days_since_last", "include_media", "retention_days", "updated_at",
        )
        read_only_fields = ("updated_at",)
        extra_kwargs = {
            "days_since_last": {"min_value": 1},
            "retention_days": {"min_value": 1},
        }
