"""
Command layer for backups.

Creation only records a pending Backup and queues create_backup_task;
clients poll the detail endpoint until the status settles. Restores run
in the request and are audited.
"""
import logging

from django.db import transaction

from accounts.authz import ActorContext, require
from audit.models import AuditLog
from audit.services import diff_fields, record_audit
from core.commands import CommandResult

from .analyzer import BackupAnalyzer
from .models import AutoBackupConfiguration, Backup
from .policies import can_delete_backup, can_request_backup, can_restore
from .services import BackupError, BackupService

logger = logging.getLogger(__name__)

CONFIG_FIELDS = {
    "auto_backup_enabled", "contacts_threshold", "cases_threshold", "documents_threshold",
    "corporations_threshold", "activity_threshold", "days_since_last", "include_media",
    "retention_days",
}


def _queue_backup(backup):
    from .tasks import create_backup_task

    transaction.on_commit(lambda: create_backup_task.delay(backup.pk))


@transaction.atomic
def request_backup(actor: ActorContext, backup_type: str, name: str = "", corporation_id: int = None,
                   include_media: bool = False, source: str = Backup.Source.MANUAL,
                   trigger_reason: str = "") -> CommandResult:
    """Record a pending backup and queue the job that builds it."""
    from clients.models import Corporation

    require(actor, "backups.manage")

    corporation = None
    if corporation_id:
        corporation = Corporation.objects.filter(pk=corporation_id).first()
        if corporation is None:
            return CommandResult.fail("Corporation not found.")

    allowed, reason = can_request_backup(backup_type, corporation)
    if not allowed:
        return CommandResult.fail(reason)

    if not name:
        scope = corporation.name if corporation else "Global"
        name = f"{scope} backup"

    backup = Backup.objects.create(
        name=name,
        backup_type=backup_type,
        corporation=corporation,
        include_media=include_media,
        source=source,
        trigger_reason=trigger_reason,
        created_by=actor.user,
    )
    record_audit(actor, AuditLog.Action.BACKUP, backup, changes={"backup_type": backup_type})
    _queue_backup(backup)

    logger.info(
        "Backup requested",
        extra={"backup_id": backup.pk, "backup_type": backup_type, "corporation_id": corporation_id},
    )
    return CommandResult.ok(backup)


def restore_backup(actor: ActorContext, backup_id: int, confirm: bool = False) -> CommandResult:
    """Restore a completed backup over the live database."""
    require(actor, "backups.manage")

    backup = Backup.objects.filter(pk=backup_id).first()
    if backup is None:
        return CommandResult.fail("Backup not found.")
    if not confirm:
        return CommandResult.fail("Restore must be explicitly confirmed.")

    allowed, reason = can_restore(backup)
    if not allowed:
        return CommandResult.fail(reason)

    try:
        summary = BackupService().restore(backup, confirm=True)
    except BackupError as e:
        logger.warning("Restore refused", extra={"backup_id": backup_id, "error": str(e)})
        return CommandResult.fail(str(e))

    record_audit(actor, AuditLog.Action.RESTORE, backup, changes={"objects_restored": summary["objects_restored"]})
    logger.info("Backup restored by user", extra={"backup_id": backup_id, "user_id": actor.user.pk})
    return CommandResult.ok(summary)


def upload_backup(actor: ActorContext, file, name: str = "", restore: bool = False) -> CommandResult:
    """Register an uploaded .enc archive, optionally restoring it straight away."""
    require(actor, "backups.manage")

    if not file.name.endswith(".enc"):
        return CommandResult.fail("Only .enc backup files can be uploaded.")

    try:
        backup = BackupService().import_uploaded(file, name=name, user=actor.user)
    except BackupError as e:
        return CommandResult.fail(str(e))

    record_audit(actor, AuditLog.Action.CREATE, backup, changes={"source": Backup.Source.UPLOAD})

    summary = None
    if restore:
        result = restore_backup(actor, backup.pk, confirm=True)
        if not result.success:
            return CommandResult.fail(f"Backup uploaded but restore failed: {result.error}")
        summary = result.data
        backup.refresh_from_db()
    return CommandResult.ok({"backup": backup, "restore": summary})


@transaction.atomic
def delete_backup(actor: ActorContext, backup_id: int) -> CommandResult:
    require(actor, "backups.manage")

    backup = Backup.objects.filter(pk=backup_id).first()
    if backup is None:
        return CommandResult.fail("Backup not found.")

    allowed, reason = can_delete_backup(backup)
    if not allowed:
        return CommandResult.fail(reason)

    record_audit(actor, AuditLog.Action.DELETE, backup)
    backup.delete()
    service = BackupService()
    transaction.on_commit(lambda: service.delete_backup_file(backup))

    logger.info("Backup deleted", extra={"backup_id": backup_id})
    return CommandResult.ok({"id": backup_id})


@transaction.atomic
def update_auto_backup_config(actor: ActorContext, **updates) -> CommandResult:
    require(actor, "backups.manage")

    unknown = set(updates) - CONFIG_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    config = AutoBackupConfiguration.load()
    changes = diff_fields(config, updates)
    for field, value in updates.items():
        setattr(config, field, value)
    config.save()

    if changes:
        record_audit(actor, AuditLog.Action.UPDATE, config, changes=changes, module="backups")
    return CommandResult.ok(config)


def analyze_workload(actor: ActorContext, create_backup: bool = False) -> CommandResult:
    """Run the workload analysis; with create_backup, queue a backup when one is recommended."""
    require(actor, "backups.manage")

    metrics, decision = BackupAnalyzer(AutoBackupConfiguration.load()).run()
    backup = None
    if create_backup and decision.should_backup:
        result = request_backup(
            actor,
            Backup.BackupType.GLOBAL,
            include_media=AutoBackupConfiguration.load().include_media,
            source=Backup.Source.AUTOMATED,
            trigger_reason=decision.reason,
        )
        if not result.success:
            return result
        backup = result.data
    return CommandResult.ok({"metrics": metrics, "decision": decision, "backup": backup})
