"""
Celery tasks for backups.

create_backup_task and restore_backup_task are queued by the API;
run_automated_backup_check and cleanup_automated_backups are scheduled by
django-celery-beat (see the seed_periodic_tasks command).
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def create_backup_task(self, backup_id: int) -> dict:
    """Build the archive for a pending backup."""
    from .models import Backup
    from .services import BackupError, BackupService

    backup = Backup.objects.select_related("corporation").filter(pk=backup_id).first()
    if backup is None:
        logger.warning("Backup vanished before it could run", extra={"backup_id": backup_id})
        return {"status": "missing", "backup_id": backup_id}

    try:
        BackupService().create_backup(backup)
    except BackupError as e:
        logger.error("Backup task failed", extra={"backup_id": backup_id, "error": str(e)})
        return {"status": Backup.Status.FAILED, "backup_id": backup_id, "error": str(e)}
    return {"status": backup.status, "backup_id": backup_id, "file_size": backup.file_size}


@shared_task(bind=True)
def restore_backup_task(self, backup_id: int, user_id: int = None) -> dict:
    """Restore a completed backup. Queuing the task is the confirmation."""
    from accounts.models import User
    from audit.models import AuditLog
    from audit.services import record_audit

    from .models import Backup
    from .services import BackupError, BackupService

    backup = Backup.objects.filter(pk=backup_id).first()
    if backup is None:
        return {"status": "missing", "backup_id": backup_id}

    try:
        summary = BackupService().restore(backup, confirm=True)
    except BackupError as e:
        logger.error("Restore task failed", extra={"backup_id": backup_id, "error": str(e)})
        return {"status": "failed", "backup_id": backup_id, "error": str(e)}

    user = User.objects.filter(pk=user_id).first() if user_id else None
    record_audit(user, AuditLog.Action.RESTORE, backup, changes={"objects_restored": summary["objects_restored"]})
    return {"status": "restored", **summary}


@shared_task
def run_automated_backup_check() -> dict:
    """Queue a global backup when the workload analysis asks for one."""
    from .analyzer import BackupAnalyzer
    from .models import AutoBackupConfiguration, Backup

    config = AutoBackupConfiguration.load()
    if not config.auto_backup_enabled:
        return {"status": "disabled"}

    busy = Backup.objects.filter(
        source=Backup.Source.AUTOMATED,
        status__in=[Backup.Status.PENDING, Backup.Status.IN_PROGRESS],
    ).exists()
    if busy:
        return {"status": "skipped", "reason": "An automated backup is already running"}

    metrics, decision = BackupAnalyzer(config).run()
    if not decision.should_backup:
        return {"status": "not_needed", "decision": decision.to_dict()}

    with transaction.atomic():
        backup = Backup.objects.create(
            name=f"Automated backup {timezone.now():%Y-%m-%d %H:%M}",
            backup_type=Backup.BackupType.GLOBAL,
            include_media=config.include_media,
            source=Backup.Source.AUTOMATED,
            trigger_reason=decision.reason,
        )
        transaction.on_commit(lambda: create_backup_task.delay(backup.pk))

    logger.info("Automated backup queued", extra={"backup_id": backup.pk, "reason": decision.reason})
    return {"status": "queued", "backup_id": backup.pk, "decision": decision.to_dict()}


@shared_task
def cleanup_automated_backups() -> dict:
    """Delete automated backups older than the configured retention."""
    from .models import AutoBackupConfiguration, Backup
    from .services import BackupService

    config = AutoBackupConfiguration.load()
    cutoff = timezone.now() - timedelta(days=config.retention_days)
    expired = Backup.objects.filter(
        source=Backup.Source.AUTOMATED,
        status__in=[Backup.Status.COMPLETED, Backup.Status.FAILED],
        created_at__lt=cutoff,
    )

    service = BackupService()
    deleted = 0
    for backup in expired:
        service.delete_backup_file(backup)
        backup.delete()
        deleted += 1

    if deleted:
        logger.info("Expired automated backups removed", extra={"deleted": deleted, "retention_days": config.retention_days})
    return {"deleted": deleted}
