"""
Backup and restore of the TaxDesk database.

Archive layout (zip, then Fernet-encrypted with FIELD_ENCRYPTION_KEY):

    metadata.json       type, scope, created_at, model counts
    database.json       global backups: `dumpdata` output
    tenant_data.json    tenant backups: serialized scope objects
    media/...           uploaded files, when include_media is set

The stored checksum is the SHA-256 of the encrypted bytes, so a damaged
or swapped file is refused before decryption is attempted.
"""
import hashlib
import io
import json
import logging
import os
import re
import shutil
import tempfile
import uuid
import zipfile
from pathlib import Path

from cryptography.fernet import InvalidToken
from django.conf import settings
from django.core import serializers
from django.core.management import call_command
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from core.context import approval_triggers_suppressed
from core.encryption import decrypt_bytes, encrypt_bytes

from ..models import Backup

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

# Left out of global dumps: rebuilt by migrate, tied to this server's disk,
# or transient.
GLOBAL_EXCLUDES = [
    "contenttypes",
    "auth.permission",
    "sessions",
    "admin.logentry",
    "backups.backup",
    "django_celery_results",
    "token_blacklist",
]


class BackupError(Exception):
    """A backup or restore could not be carried out."""


class BackupIntegrityError(BackupError):
    """The archive does not match its checksum or is not a valid archive."""


class BackupDecryptionError(BackupError):
    """The archive could not be decrypted with the configured key."""


class RestoreNotConfirmed(BackupError):
    """Restore was requested without explicit confirmation."""


def compute_checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _safe_name(value: str) -> str:
    return re.sub(r"[^\w-]+", "_", value).strip("_")[:50] or "tenant"


class BackupService:
    def __init__(self, backup_root=None, media_root=None):
        self.backup_root = Path(backup_root or settings.BACKUP_ROOT)
        self.media_root = Path(media_root or settings.MEDIA_ROOT)

    # =========================================================================
    # Create
    # =========================================================================

    def create_backup(self, backup: Backup) -> Backup:
        """Build the archive for a pending Backup row. Marks it failed on error."""
        backup.status = Backup.Status.IN_PROGRESS
        backup.error_message = ""
        backup.save(update_fields=["status", "error_message", "updated_at"])

        try:
            if backup.backup_type == Backup.BackupType.TENANT:
                if backup.corporation is None:
                    raise BackupError("Tenant backups need a corporation.")
                archive, prefix = self._tenant_archive(backup), f"tenant_{_safe_name(backup.corporation.name)}"
            else:
                archive, prefix = self._global_archive(backup), "global_backup"
            encrypted = self._encrypt(archive)
        except BackupError as e:
            self._mark_failed(backup, str(e))
            raise
        except Exception as e:
            logger.exception("Backup failed", extra={"backup_id": backup.pk})
            self._mark_failed(backup, str(e))
            raise BackupError(str(e)) from e

        # pk keeps two backups started in the same second apart
        filename = f"{prefix}_{timezone.now():%Y%m%d_%H%M%S}_{backup.pk}.enc"
        self.backup_root.mkdir(parents=True, exist_ok=True)
        (self.backup_root / filename).write_bytes(encrypted)

        backup.file_path = filename
        backup.file_size = len(encrypted)
        backup.checksum = compute_checksum(encrypted)
        backup.status = Backup.Status.COMPLETED
        backup.completed_at = timezone.now()
        backup.save(update_fields=[
            "file_path", "file_size", "checksum", "status", "completed_at", "updated_at",
        ])
        logger.info(
            "Backup completed",
            extra={"backup_id": backup.pk, "backup_type": backup.backup_type, "file_size": backup.file_size},
        )
        return backup

    def _mark_failed(self, backup: Backup, message: str):
        backup.status = Backup.Status.FAILED
        backup.error_message = message
        backup.save(update_fields=["status", "error_message", "updated_at"])

    def _metadata(self, backup: Backup, **extra) -> dict:
        return {
            "format_version": FORMAT_VERSION,
            "backup_type": backup.backup_type,
            "name": backup.name,
            "created_at": timezone.now().isoformat(),
            "include_media": backup.include_media,
            **extra,
        }

    def _global_archive(self, backup: Backup) -> bytes:
        out = io.StringIO()
        call_command(
            "dumpdata",
            "--natural-foreign",
            "--all",
            *[f"--exclude={label}" for label in GLOBAL_EXCLUDES],
            stdout=out,
        )
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("database.json", out.getvalue())
            zf.writestr("metadata.json", json.dumps(self._metadata(backup)))
            if backup.include_media:
                self._add_media_tree(zf)
        return buffer.getvalue()

    def _add_media_tree(self, zf: zipfile.ZipFile):
        if not self.media_root.exists():
            return
        backup_root = self.backup_root.resolve()
        for path in self.media_root.rglob("*"):
            if not path.is_file():
                continue
            if backup_root in path.resolve().parents:
                continue
            zf.write(path, f"media/{path.relative_to(self.media_root).as_posix()}")

    def tenant_querysets(self, corporation) -> list:
        """(label, queryset) pairs for everything in a corporation's scope, parents first."""
        from appointments.models import Appointment
        from cases.models import Task, TaxCase, TaxCaseNote
        from clients.models import Contact, Corporation
        from documents.models import DepartmentClientFolder, Document

        scope = corporation.scope_ids()
        corporations = Corporation.all_objects.filter(pk__in=scope).order_by("pk")
        contacts = Contact.all_objects.filter(
            Q(corporations__in=scope) | Q(primary_corporation__in=scope)
        ).distinct()
        contact_ids = list(contacts.values_list("pk", flat=True))
        cases = TaxCase.all_objects.filter(Q(corporation__in=scope) | Q(contact__in=contact_ids)).distinct()
        case_ids = list(cases.values_list("pk", flat=True))

        return [
            ("corporations", self._parents_first(corporations, corporation)),
            ("contacts", contacts.order_by("pk")),
            ("cases", cases.order_by("pk")),
            ("case_notes", TaxCaseNote.objects.filter(case__in=case_ids).order_by("pk")),
            ("tasks", Task.objects.filter(Q(case__in=case_ids) | Q(contact__in=contact_ids)).distinct().order_by("pk")),
            ("folders", DepartmentClientFolder.objects.filter(
                Q(corporation__in=scope) | Q(contact__in=contact_ids)
            ).distinct().order_by("pk")),
            ("documents", Document.objects.filter(
                Q(corporation__in=scope) | Q(contact__in=contact_ids) | Q(case__in=case_ids)
            ).distinct().order_by("pk")),
            ("appointments", Appointment.objects.filter(
                Q(contact__in=contact_ids) | Q(case__in=case_ids)
            ).distinct().order_by("pk")),
        ]

    @staticmethod
    def _parents_first(corporations, root) -> list:
        by_parent = {}
        for corp in corporations:
            by_parent.setdefault(corp.member_of_id, []).append(corp)
        ordered = [root]
        queue = [root.pk]
        while queue:
            for child in by_parent.get(queue.pop(0), []):
                if child.pk != root.pk:
                    ordered.append(child)
                    queue.append(child.pk)
        return ordered

    def _tenant_archive(self, backup: Backup) -> bytes:
        objects = []
        counts = {}
        documents = []
        for label, queryset in self.tenant_querysets(backup.corporation):
            rows = list(queryset)
            counts[label] = len(rows)
            objects.extend(rows)
            if label == "documents":
                documents = rows

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("tenant_data.json", serializers.serialize("json", objects))
            zf.writestr("metadata.json", json.dumps(self._metadata(
                backup,
                corporation_id=backup.corporation_id,
                corporation_name=backup.corporation.name,
                model_counts=counts,
            )))
            if backup.include_media:
                for document in documents:
                    if not document.file:
                        continue
                    path = self.media_root / document.file.name
                    if path.is_file():
                        zf.write(path, f"media/{document.file.name}")
        return buffer.getvalue()

    def _encrypt(self, data: bytes) -> bytes:
        try:
            return encrypt_bytes(data)
        except ValueError as e:
            raise BackupError("Backups need FIELD_ENCRYPTION_KEY to be configured.") from e

    # =========================================================================
    # Read back
    # =========================================================================

    def open_archive(self, encrypted: bytes, expected_checksum: str = None) -> zipfile.ZipFile:
        if expected_checksum and compute_checksum(encrypted) != expected_checksum:
            raise BackupIntegrityError("Backup checksum does not match; the file is damaged or was replaced.")
        try:
            data = decrypt_bytes(encrypted)
        except ValueError as e:
            raise BackupError("Backups need FIELD_ENCRYPTION_KEY to be configured.") from e
        except InvalidToken as e:
            raise BackupDecryptionError("Backup could not be decrypted with the configured key.") from e
        try:
            return zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as e:
            raise BackupIntegrityError("Backup archive is not a valid zip file.") from e

    @staticmethod
    def read_metadata(zf: zipfile.ZipFile) -> dict:
        try:
            return json.loads(zf.read("metadata.json"))
        except (KeyError, ValueError) as e:
            raise BackupIntegrityError("Backup archive has no readable metadata.") from e

    def read_backup_file(self, backup: Backup) -> bytes:
        path = backup.absolute_path
        if not backup.file_path or not path.is_file():
            raise BackupError("Backup file is missing.")
        return path.read_bytes()

    # =========================================================================
    # Restore
    # =========================================================================

    def restore(self, backup: Backup, confirm: bool = False) -> dict:
        """Restore a completed backup over the current database."""
        if not confirm:
            raise RestoreNotConfirmed("Restore must be explicitly confirmed.")
        if backup.status != Backup.Status.COMPLETED:
            raise BackupError("Only completed backups can be restored.")

        zf = self.open_archive(self.read_backup_file(backup), backup.checksum)
        metadata = self.read_metadata(zf)

        with approval_triggers_suppressed():
            if metadata.get("backup_type") == Backup.BackupType.TENANT:
                restored = self._restore_tenant(zf)
            else:
                restored = self._restore_global(zf)
        media_files = self._restore_media(zf)

        backup.restored_at = timezone.now()
        backup.save(update_fields=["restored_at", "updated_at"])
        logger.info(
            "Backup restored",
            extra={"backup_id": backup.pk, "objects": restored, "media_files": media_files},
        )
        return {
            "backup_id": backup.pk,
            "backup_type": metadata.get("backup_type"),
            "objects_restored": restored,
            "media_files_restored": media_files,
        }

    def _restore_global(self, zf: zipfile.ZipFile) -> int:
        try:
            payload = zf.read("database.json")
        except KeyError as e:
            raise BackupIntegrityError("Global backup has no database dump.") from e

        with tempfile.TemporaryDirectory() as tmp:
            fixture = os.path.join(tmp, "database.json")
            with open(fixture, "wb") as f:
                f.write(payload)
            call_command("loaddata", fixture, verbosity=0)
        return len(json.loads(payload))

    def _restore_tenant(self, zf: zipfile.ZipFile) -> int:
        try:
            payload = zf.read("tenant_data.json")
        except KeyError as e:
            raise BackupIntegrityError("Tenant backup has no data file.") from e

        count = 0
        with transaction.atomic():
            for obj in serializers.deserialize("json", payload):
                obj.save()
                count += 1
        return count

    def _restore_media(self, zf: zipfile.ZipFile) -> int:
        media_root = self.media_root.resolve()
        count = 0
        for name in zf.namelist():
            if not name.startswith("media/") or name.endswith("/"):
                continue
            target = (media_root / name[len("media/"):]).resolve()
            if media_root not in target.parents:
                logger.warning("Skipping media entry outside MEDIA_ROOT", extra={"entry": name})
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(name) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            count += 1
        return count

    # =========================================================================
    # Upload and delete
    # =========================================================================

    def import_uploaded(self, uploaded_file, name: str = "", user=None) -> Backup:
        """Register an externally produced .enc archive as a completed backup."""
        from clients.models import Corporation

        encrypted = uploaded_file.read()
        metadata = self.read_metadata(self.open_archive(encrypted))

        backup_type = metadata.get("backup_type")
        if backup_type not in Backup.BackupType.values:
            raise BackupIntegrityError("Backup metadata has an unknown backup type.")
        corporation = None
        if backup_type == Backup.BackupType.TENANT and metadata.get("corporation_id"):
            corporation = Corporation.all_objects.filter(pk=metadata["corporation_id"]).first()

        stem = _safe_name(Path(uploaded_file.name).stem)
        filename = f"uploaded_{timezone.now():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}_{stem}.enc"
        self.backup_root.mkdir(parents=True, exist_ok=True)
        (self.backup_root / filename).write_bytes(encrypted)

        backup = Backup.objects.create(
            name=name or metadata.get("name") or Path(uploaded_file.name).stem,
            backup_type=backup_type,
            corporation=corporation,
            include_media=bool(metadata.get("include_media")),
            status=Backup.Status.COMPLETED,
            source=Backup.Source.UPLOAD,
            file_path=filename,
            file_size=len(encrypted),
            checksum=compute_checksum(encrypted),
            created_by=user,
            completed_at=timezone.now(),
        )
        logger.info("Backup uploaded", extra={"backup_id": backup.pk, "backup_type": backup_type})
        return backup

    def delete_backup_file(self, backup: Backup) -> bool:
        if not backup.file_path:
            return False
        path = backup.absolute_path
        if path.is_file():
            path.unlink()
            return True
        return False
