# tests/test_backups.py
"""
Tests for encrypted backups.

Covers:
- BackupService: tenant and global archives, restore, checksum/key errors
- Upload of .enc archives
- Backup commands and policies
- Workload analyzer and automated backup tasks
- backup_db / seed_periodic_tasks management commands
- Backups API permissions
"""

import datetime
import io
import json
import zipfile
from io import StringIO

import pytest
from cryptography.fernet import Fernet
from django.core.exceptions import PermissionDenied
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import CommandError, call_command
from django.utils import timezone
from django_celery_beat.models import PeriodicTask

from backups.analyzer import BackupAnalyzer, WorkloadMetrics
from backups.commands import (
    analyze_workload,
    delete_backup,
    request_backup,
    restore_backup,
    update_auto_backup_config,
    upload_backup,
)
from backups.models import AutoBackupConfiguration, Backup
from backups.services import BackupError, BackupService
from backups.services.backup_service import (
    BackupDecryptionError,
    BackupIntegrityError,
    RestoreNotConfirmed,
)
from backups.tasks import cleanup_automated_backups, run_automated_backup_check
from cases.models import TaxCase, TaxCaseNote
from clients.models import Contact, Corporation
from core.encryption import decrypt_bytes


def _pending(backup_type=Backup.BackupType.TENANT, corporation=None, **fields):
    return Backup.objects.create(
        name="test", backup_type=backup_type, corporation=corporation, **fields
    )


def _archive(backup):
    return zipfile.ZipFile(io.BytesIO(decrypt_bytes(backup.absolute_path.read_bytes())))


@pytest.fixture
def tenant_backup(fernet_key, corporation, subsidiary, contact, tax_case):
    TaxCaseNote.objects.create(case=tax_case, content="Called about K-1")
    return BackupService().create_backup(_pending(corporation=corporation))


# =============================================================================
# Service: create
# =============================================================================

@pytest.mark.django_db
class TestCreate:
    def test_tenant_archive_contents(self, tenant_backup, corporation, subsidiary):
        assert tenant_backup.status == Backup.Status.COMPLETED
        assert tenant_backup.file_path.startswith("tenant_Acme_Holdings_")
        assert tenant_backup.file_size == tenant_backup.absolute_path.stat().st_size
        assert len(tenant_backup.checksum) == 64

        zf = _archive(tenant_backup)
        metadata = json.loads(zf.read("metadata.json"))
        assert metadata["backup_type"] == "tenant"
        assert metadata["corporation_id"] == corporation.pk
        assert metadata["model_counts"]["corporations"] == 2
        assert metadata["model_counts"]["contacts"] == 1
        assert metadata["model_counts"]["cases"] == 1
        assert metadata["model_counts"]["case_notes"] == 1

        labels = [row["model"] for row in json.loads(zf.read("tenant_data.json"))]
        assert labels[:2] == ["clients.corporation", "clients.corporation"]

    def test_tenant_scope_excludes_other_clients(self, fernet_key, corporation, contact):
        stranger = Corporation.objects.create(name="Unrelated LLC")
        Contact.objects.create(first_name="Other", last_name="Person", primary_corporation=stranger)

        backup = BackupService().create_backup(_pending(corporation=corporation))
        names = {
            row["fields"].get("name")
            for row in json.loads(_archive(backup).read("tenant_data.json"))
            if row["model"] == "clients.corporation"
        }
        assert names == {"Acme Holdings"}

    def test_include_media(self, fernet_key, settings, corporation):
        from documents.models import Document

        document = Document.objects.create(
            title="W-2", corporation=corporation, file=SimpleUploadedFile("w2.pdf", b"%PDF")
        )
        backup = BackupService().create_backup(_pending(corporation=corporation, include_media=True))

        assert f"media/{document.file.name}" in _archive(backup).namelist()

    def test_global_archive(self, fernet_key, corporation):
        backup = BackupService().create_backup(_pending(Backup.BackupType.GLOBAL))

        zf = _archive(backup)
        assert backup.file_path.startswith("global_backup_")
        models = {row["model"] for row in json.loads(zf.read("database.json"))}
        assert "clients.corporation" in models
        assert "backups.backup" not in models
        assert "contenttypes.contenttype" not in models

    def test_back_to_back_backups_get_their_own_files(self, fernet_key, corporation):
        service = BackupService()
        first = service.create_backup(_pending(Backup.BackupType.GLOBAL))
        second = service.create_backup(_pending(Backup.BackupType.GLOBAL))

        assert first.file_path != second.file_path
        assert first.absolute_path.exists() and second.absolute_path.exists()
        assert _archive(first).read("database.json")

    def test_missing_key_marks_failed(self, settings, corporation):
        settings.FIELD_ENCRYPTION_KEY = ""
        backup = _pending(corporation=corporation)

        with pytest.raises(BackupError, match="FIELD_ENCRYPTION_KEY"):
            BackupService().create_backup(backup)

        backup.refresh_from_db()
        assert backup.status == Backup.Status.FAILED
        assert "FIELD_ENCRYPTION_KEY" in backup.error_message


# =============================================================================
# Service: restore
# =============================================================================

@pytest.mark.django_db
class TestRestore:
    def test_tenant_restore_rolls_back_changes(self, tenant_backup, corporation, tax_case):
        Corporation.objects.filter(pk=corporation.pk).update(name="Renamed Inc")
        TaxCase.objects.filter(pk=tax_case.pk).update(title="Changed")

        summary = BackupService().restore(tenant_backup, confirm=True)

        assert summary["backup_type"] == "tenant"
        assert summary["objects_restored"] >= 5
        corporation.refresh_from_db()
        tax_case.refresh_from_db()
        assert corporation.name == "Acme Holdings"
        assert tax_case.title == "2025 corporate return"
        tenant_backup.refresh_from_db()
        assert tenant_backup.restored_at is not None

    def test_tenant_restore_brings_back_memberships(self, tenant_backup, corporation, contact):
        contact.corporations.clear()
        BackupService().restore(tenant_backup, confirm=True)
        assert list(contact.corporations.all()) == [corporation]

    def test_global_restore(self, fernet_key, corporation):
        backup = BackupService().create_backup(_pending(Backup.BackupType.GLOBAL))
        Corporation.objects.filter(pk=corporation.pk).update(name="Renamed Inc")

        summary = BackupService().restore(backup, confirm=True)

        assert summary["objects_restored"] > 0
        corporation.refresh_from_db()
        assert corporation.name == "Acme Holdings"

    def test_media_is_restored(self, fernet_key, settings, corporation):
        from documents.models import Document

        document = Document.objects.create(
            title="W-2", corporation=corporation, file=SimpleUploadedFile("w2.pdf", b"%PDF-original")
        )
        backup = BackupService().create_backup(_pending(corporation=corporation, include_media=True))
        path = settings.MEDIA_ROOT / document.file.name
        path.unlink()

        summary = BackupService().restore(backup, confirm=True)

        assert summary["media_files_restored"] == 1
        assert path.read_bytes() == b"%PDF-original"

    def test_requires_confirmation(self, tenant_backup):
        with pytest.raises(RestoreNotConfirmed):
            BackupService().restore(tenant_backup)

    def test_tampered_file_fails_checksum(self, tenant_backup):
        data = bytearray(tenant_backup.absolute_path.read_bytes())
        data[-1] ^= 1
        tenant_backup.absolute_path.write_bytes(bytes(data))

        with pytest.raises(BackupIntegrityError):
            BackupService().restore(tenant_backup, confirm=True)

    def test_wrong_key(self, tenant_backup, settings):
        settings.FIELD_ENCRYPTION_KEY = Fernet.generate_key().decode()
        with pytest.raises(BackupDecryptionError):
            BackupService().restore(tenant_backup, confirm=True)

    def test_missing_file(self, tenant_backup):
        tenant_backup.absolute_path.unlink()
        with pytest.raises(BackupError, match="missing"):
            BackupService().restore(tenant_backup, confirm=True)

    def test_not_a_zip(self, fernet_key):
        encrypted = Fernet(fernet_key.encode()).encrypt(b"plain bytes")
        with pytest.raises(BackupIntegrityError):
            BackupService().open_archive(encrypted)


# =============================================================================
# Commands & Policies
# =============================================================================

@pytest.mark.django_db
class TestBackupCommands:
    def test_request_queues_and_builds(self, admin_actor, fernet_key, corporation,
                                       django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            result = request_backup(admin_actor, Backup.BackupType.TENANT, corporation_id=corporation.pk)

        assert result.success
        backup = Backup.objects.get(pk=result.data.pk)
        assert backup.name == "Acme Holdings backup"
        assert backup.status == Backup.Status.COMPLETED

    def test_manager_cannot_request(self, manager_actor):
        with pytest.raises(PermissionDenied):
            request_backup(manager_actor, Backup.BackupType.GLOBAL)

    def test_scope_policies(self, admin_actor, corporation):
        assert request_backup(admin_actor, Backup.BackupType.TENANT).error == "Tenant backups need a corporation."
        assert request_backup(admin_actor, Backup.BackupType.GLOBAL, corporation_id=corporation.pk).error == (
            "Global backups cannot be scoped to a corporation."
        )

    def test_one_running_backup_per_scope(self, admin_actor, corporation):
        _pending(corporation=corporation, status=Backup.Status.IN_PROGRESS)
        result = request_backup(admin_actor, Backup.BackupType.TENANT, corporation_id=corporation.pk)
        assert result.error == "A backup with the same scope is already running."

    def test_restore_needs_confirmation_and_completed(self, admin_actor, tenant_backup, corporation):
        assert restore_backup(admin_actor, tenant_backup.pk).error == "Restore must be explicitly confirmed."

        failed = _pending(corporation=corporation, status=Backup.Status.FAILED)
        assert restore_backup(admin_actor, failed.pk, confirm=True).error == (
            "Only completed backups can be restored."
        )
        assert restore_backup(admin_actor, tenant_backup.pk, confirm=True).success

    def test_upload_and_restore(self, admin_actor, tenant_backup, corporation):
        encrypted = tenant_backup.absolute_path.read_bytes()
        Corporation.objects.filter(pk=corporation.pk).update(name="Renamed Inc")

        result = upload_backup(admin_actor, SimpleUploadedFile("offsite.enc", encrypted), restore=True)

        assert result.success
        uploaded = result.data["backup"]
        assert uploaded.source == Backup.Source.UPLOAD
        assert uploaded.backup_type == Backup.BackupType.TENANT
        assert uploaded.corporation == corporation
        assert result.data["restore"]["objects_restored"] > 0
        corporation.refresh_from_db()
        assert corporation.name == "Acme Holdings"

    def test_same_upload_twice_keeps_both_files(self, admin_actor, tenant_backup):
        encrypted = tenant_backup.absolute_path.read_bytes()

        first = upload_backup(admin_actor, SimpleUploadedFile("offsite.enc", encrypted)).data["backup"]
        second = upload_backup(admin_actor, SimpleUploadedFile("offsite.enc", encrypted)).data["backup"]

        assert first.file_path != second.file_path
        assert first.absolute_path.read_bytes() == second.absolute_path.read_bytes() == encrypted

    def test_upload_rejects_other_extensions(self, admin_actor):
        result = upload_backup(admin_actor, SimpleUploadedFile("dump.json", b"[]"))
        assert result.error == "Only .enc backup files can be uploaded."

    def test_upload_rejects_garbage(self, admin_actor, fernet_key):
        result = upload_backup(admin_actor, SimpleUploadedFile("dump.enc", b"not encrypted"))
        assert not result.success
        assert not Backup.objects.exists()

    def test_delete_removes_file(self, admin_actor, tenant_backup, django_capture_on_commit_callbacks):
        path = tenant_backup.absolute_path
        with django_capture_on_commit_callbacks(execute=True):
            assert delete_backup(admin_actor, tenant_backup.pk).success
        assert not path.exists()

    def test_running_backup_cannot_be_deleted(self, admin_actor, corporation):
        running = _pending(corporation=corporation, status=Backup.Status.IN_PROGRESS)
        assert delete_backup(admin_actor, running.pk).error == "A running backup cannot be deleted."

    def test_update_config(self, admin_actor):
        result = update_auto_backup_config(admin_actor, auto_backup_enabled=True, retention_days=14)
        assert result.success
        assert AutoBackupConfiguration.load().retention_days == 14
        assert update_auto_backup_config(admin_actor, bogus=1).error == "Unknown field(s): bogus."


# =============================================================================
# Analyzer & Tasks
# =============================================================================

@pytest.mark.django_db
class TestAnalyzer:
    def _completed_global(self, days_ago=0):
        return _pending(
            Backup.BackupType.GLOBAL,
            status=Backup.Status.COMPLETED,
            completed_at=timezone.now() - datetime.timedelta(days=days_ago),
        )

    def test_first_backup_is_forced(self, db):
        analyzer = BackupAnalyzer(AutoBackupConfiguration.load())
        decision = analyzer.should_backup(analyzer.analyze_workload())
        assert decision.should_backup and decision.forced
        assert decision.thresholds_exceeded == ["no_previous_backup"]

    def test_stale_backup_is_forced(self, db):
        self._completed_global(days_ago=8)
        analyzer = BackupAnalyzer(AutoBackupConfiguration.load())
        decision = analyzer.should_backup(analyzer.analyze_workload())
        assert decision.thresholds_exceeded == ["days_since_last_backup"]

    def test_quiet_day(self, db):
        self._completed_global()
        analyzer = BackupAnalyzer(AutoBackupConfiguration.load())
        assert not analyzer.should_backup(analyzer.analyze_workload()).should_backup

    def test_thresholds(self, contact, tax_case):
        self._completed_global()
        config = AutoBackupConfiguration.load()
        config.contacts_threshold = 1
        config.cases_threshold = 1

        metrics = BackupAnalyzer(config).analyze_workload()
        assert metrics.contacts_created == 1
        assert metrics.cases_created == 1
        decision = BackupAnalyzer(config).should_backup(metrics)
        assert decision.thresholds_exceeded == ["contacts", "cases"]
        assert decision.reason == "Thresholds reached: contacts 1/1, cases 1/1"

    def test_metrics_totals(self):
        metrics = WorkloadMetrics(contacts_created=2, contacts_updated=3, cases_updated=1, case_notes_created=4)
        data = metrics.to_dict()
        assert data["total_contacts_changes"] == 5
        assert data["total_cases_changes"] == 5

    def test_analyze_command_creates_automated_backup(self, admin_actor):
        result = analyze_workload(admin_actor, create_backup=True)
        backup = result.data["backup"]
        assert backup.source == Backup.Source.AUTOMATED
        assert backup.trigger_reason == "No completed global backup exists yet"


@pytest.mark.django_db
class TestAutomatedTasks:
    def test_disabled(self):
        assert run_automated_backup_check() == {"status": "disabled"}

    def test_queues_global_backup(self, fernet_key, django_capture_on_commit_callbacks):
        config = AutoBackupConfiguration.load()
        config.auto_backup_enabled = True
        config.save()

        with django_capture_on_commit_callbacks(execute=True):
            result = run_automated_backup_check()

        assert result["status"] == "queued"
        backup = Backup.objects.get(pk=result["backup_id"])
        assert backup.source == Backup.Source.AUTOMATED
        assert backup.status == Backup.Status.COMPLETED

    def test_skips_when_automated_backup_running(self):
        AutoBackupConfiguration.objects.create(auto_backup_enabled=True)
        _pending(Backup.BackupType.GLOBAL, source=Backup.Source.AUTOMATED)
        assert run_automated_backup_check()["status"] == "skipped"

    def test_cleanup_respects_retention(self, settings):
        old = _pending(
            Backup.BackupType.GLOBAL, source=Backup.Source.AUTOMATED,
            status=Backup.Status.COMPLETED, file_path="old.enc",
        )
        recent = _pending(Backup.BackupType.GLOBAL, source=Backup.Source.AUTOMATED, status=Backup.Status.COMPLETED)
        manual = _pending(Backup.BackupType.GLOBAL, status=Backup.Status.COMPLETED)
        Backup.objects.filter(pk__in=[old.pk, manual.pk]).update(
            created_at=timezone.now() - datetime.timedelta(days=45)
        )
        settings.BACKUP_ROOT.mkdir(parents=True, exist_ok=True)
        (settings.BACKUP_ROOT / "old.enc").write_bytes(b"x")

        assert cleanup_automated_backups() == {"deleted": 1}
        assert set(Backup.objects.values_list("pk", flat=True)) == {recent.pk, manual.pk}
        assert not (settings.BACKUP_ROOT / "old.enc").exists()


# =============================================================================
# Management Commands
# =============================================================================

@pytest.mark.django_db
class TestManagementCommands:
    def test_backup_db_writes_encrypted_dump(self, fernet_key, tmp_path, corporation):
        output = tmp_path / "dump.enc"
        out = StringIO()
        call_command("backup_db", output=str(output), stdout=out)

        rows = json.loads(Fernet(fernet_key.encode()).decrypt(output.read_bytes()))
        assert any(row["model"] == "clients.corporation" for row in rows)
        assert "sha256" in out.getvalue()

    def test_backup_db_without_key(self, settings, tmp_path):
        settings.FIELD_ENCRYPTION_KEY = ""
        with pytest.raises(CommandError):
            call_command("backup_db", output=str(tmp_path / "dump.enc"), stdout=StringIO())

    def test_generate_key(self):
        out = StringIO()
        call_command("backup_db", generate_key=True, stdout=out)
        key = out.getvalue().split("Generated key: ")[1].strip()
        Fernet(key.encode())

    def test_seed_periodic_tasks_is_idempotent(self):
        call_command("seed_periodic_tasks", stdout=StringIO())
        out = StringIO()
        call_command("seed_periodic_tasks", check_hour=1, stdout=out)

        tasks = {t.name: t for t in PeriodicTask.objects.all()}
        assert set(tasks) == {"Automated backup check", "Cleanup automated backups"}
        assert tasks["Automated backup check"].crontab.hour == "1"
        assert "Updated 'Automated backup check' at 01:00" in out.getvalue()

    def test_seed_periodic_tasks_rejects_bad_hour(self):
        with pytest.raises(CommandError):
            call_command("seed_periodic_tasks", cleanup_hour=24, stdout=StringIO())


# =============================================================================
# API
# =============================================================================

@pytest.mark.django_db
class TestBackupsAPI:
    def test_manager_can_view_but_not_manage(self, manager_api, tenant_backup):
        assert manager_api.get("/api/v1/backups/").data["count"] == 1
        assert manager_api.get("/api/v1/backups/workload/").status_code == 200
        assert manager_api.post("/api/v1/backups/", {"backup_type": "global"}, format="json").status_code == 403
        assert manager_api.get(f"/api/v1/backups/{tenant_backup.pk}/download/").status_code == 403

    def test_viewer_sees_nothing(self, viewer_api):
        assert viewer_api.get("/api/v1/backups/").status_code == 403

    def test_create_returns_accepted(self, admin_api, fernet_key, corporation):
        response = admin_api.post(
            "/api/v1/backups/", {"backup_type": "tenant", "corporation_id": corporation.pk}, format="json"
        )
        assert response.status_code == 202
        assert response.data["status"] == "pending"

    def test_tenant_needs_corporation(self, admin_api):
        response = admin_api.post("/api/v1/backups/", {"backup_type": "tenant"}, format="json")
        assert response.status_code == 400
        assert "corporation_id" in response.data["error"]["fields"]

    def test_download_and_restore(self, admin_api, tenant_backup):
        download = admin_api.get(f"/api/v1/backups/{tenant_backup.pk}/download/")
        assert download.status_code == 200
        assert b"".join(download.streaming_content) == tenant_backup.absolute_path.read_bytes()

        unconfirmed = admin_api.post(f"/api/v1/backups/{tenant_backup.pk}/restore/", {}, format="json")
        assert unconfirmed.status_code == 400

        restored = admin_api.post(f"/api/v1/backups/{tenant_backup.pk}/restore/", {"confirm": True}, format="json")
        assert restored.status_code == 200
        assert restored.data["backup_id"] == tenant_backup.pk

    def test_upload_endpoint(self, admin_api, tenant_backup):
        encrypted = tenant_backup.absolute_path.read_bytes()
        response = admin_api.post(
            "/api/v1/backups/upload/",
            {"file": SimpleUploadedFile("copy.enc", encrypted), "name": "Offsite copy"},
            format="multipart",
        )
        assert response.status_code == 201
        assert response.data["backup"]["name"] == "Offsite copy"
        assert response.data["restore"] is None

    def test_config(self, admin_api, manager_api):
        assert manager_api.get("/api/v1/backups/config/").data["retention_days"] == 30
        assert manager_api.patch("/api/v1/backups/config/", {"retention_days": 7}, format="json").status_code == 403

        response = admin_api.patch("/api/v1/backups/config/", {"retention_days": 7}, format="json")
        assert response.data["retention_days"] == 7
        assert admin_api.patch("/api/v1/backups/config/", {"retention_days": 0}, format="json").status_code == 400

    def test_analyze(self, admin_api):
        response = admin_api.post("/api/v1/backups/analyze/", {}, format="json")
        assert response.status_code == 200
        assert response.data["decision"]["should_backup"] is True
        assert response.data["backup"] is None
