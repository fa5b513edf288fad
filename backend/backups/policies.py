"""
Business policy functions for backups.

They return (bool, reason) tuples; commands compose them.
"""
from .models import Backup

ACTIVE_STATUSES = (Backup.Status.PENDING, Backup.Status.IN_PROGRESS)


def can_request_backup(backup_type, corporation) -> tuple[bool, str]:
    if backup_type == Backup.BackupType.TENANT and corporation is None:
        return False, "Tenant backups need a corporation."
    if backup_type == Backup.BackupType.GLOBAL and corporation is not None:
        return False, "Global backups cannot be scoped to a corporation."
    if Backup.objects.filter(backup_type=backup_type, corporation=corporation, status__in=ACTIVE_STATUSES).exists():
        return False, "A backup with the same scope is already running."
    return True, ""


def can_restore(backup) -> tuple[bool, str]:
    if backup.status != Backup.Status.COMPLETED:
        return False, "Only completed backups can be restored."
    if not backup.file_path:
        return False, "Backup has no archive file."
    return True, ""


def can_delete_backup(backup) -> tuple[bool, str]:
    if backup.status == Backup.Status.IN_PROGRESS:
        return False, "A running backup cannot be deleted."
    return True, ""
