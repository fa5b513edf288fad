from django.contrib import admin

from .models import AutoBackupConfiguration, Backup


@admin.register(Backup)
class BackupAdmin(admin.ModelAdmin):
    list_display = ("name", "backup_type", "corporation", "status", "source", "file_size", "created_at", "completed_at")
    list_filter = ("backup_type", "status", "source")
    search_fields = ("name",)
    readonly_fields = ("file_path", "file_size", "checksum", "completed_at", "restored_at")


@admin.register(AutoBackupConfiguration)
class AutoBackupConfigurationAdmin(admin.ModelAdmin):
    list_display = ("auto_backup_enabled", "days_since_last", "retention_days", "updated_at")

    def has_add_permission(self, request):
        return not AutoBackupConfiguration.objects.exists()
