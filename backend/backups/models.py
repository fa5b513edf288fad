from pathlib import Path

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import TimeStampedModel


class Backup(TimeStampedModel):
    """
    One encrypted backup archive under BACKUP_ROOT.

    file_path is relative to BACKUP_ROOT. The archive is a Fernet-encrypted
    zip; checksum is the SHA-256 of the encrypted bytes.
    """

    audit_module = "backups"

    class BackupType(models.TextChoices):
        GLOBAL = "global", _("Global")
        TENANT = "tenant", _("Tenant")

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        IN_PROGRESS = "in_progress", _("In Progress")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")

    class Source(models.TextChoices):
        MANUAL = "manual", _("Manual")
        AUTOMATED = "automated", _("Automated")
        UPLOAD = "upload", _("Upload")

    name = models.CharField(max_length=255)
    backup_type = models.CharField(max_length=10, choices=BackupType.choices, db_index=True)
    corporation = models.ForeignKey(
        "clients.Corporation", null=True, blank=True, on_delete=models.SET_NULL, related_name="backups"
    )
    include_media = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    source = models.CharField(max_length=10, choices=Source.choices, default=Source.MANUAL)

    file_path = models.CharField(max_length=500, blank=True, default="")
    file_size = models.PositiveBigIntegerField(default=0)
    checksum = models.CharField(max_length=64, blank=True, default="")
    error_message = models.TextField(blank=True, default="")
    trigger_reason = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_backups",
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    restored_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} ({self.backup_type}, {self.status})"

    @property
    def absolute_path(self) -> Path:
        return Path(settings.BACKUP_ROOT) / self.file_path

    @property
    def file_size_human(self) -> str:
        size = float(self.file_size or 0)
        for unit in ("B", "KB", "MB", "GB"):
            if size < 1024 or unit == "GB":
                return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} GB"


class AutoBackupConfiguration(models.Model):
    """
    Singleton (pk=1) holding the automated-backup thresholds.

    Counts are over the last 24 hours; any threshold reached, or
    days_since_last elapsed since the last global backup, triggers a backup.
    """

    auto_backup_enabled = models.BooleanField(default=False)
    contacts_threshold = models.PositiveIntegerField(default=10)
    cases_threshold = models.PositiveIntegerField(default=5)
    documents_threshold = models.PositiveIntegerField(default=10)
    corporations_threshold = models.PositiveIntegerField(default=5)
    activity_threshold = models.PositiveIntegerField(default=100)
    days_since_last = models.PositiveIntegerField(default=7)
    include_media = models.BooleanField(default=False)
    retention_days = models.PositiveIntegerField(default=30)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("automated backup configuration")

    def __str__(self):
        return "Automated backup configuration"

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls) -> "AutoBackupConfiguration":
        config, _ = cls.objects.get_or_create(pk=1)
        return config
