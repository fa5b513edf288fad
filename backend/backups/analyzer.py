"""
Workload analysis for automated backups.

Counts what changed in the last 24 hours and compares it with the
AutoBackupConfiguration thresholds. A backup is forced when no global
backup exists yet or the last one is days_since_last days old.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import List, Optional

from django.db.models import Q
from django.utils import timezone

logger = logging.getLogger(__name__)


@dataclass
class WorkloadMetrics:
    contacts_created: int = 0
    contacts_updated: int = 0
    cases_created: int = 0
    cases_updated: int = 0
    case_notes_created: int = 0
    documents_created: int = 0
    corporations_created: int = 0
    corporations_updated: int = 0
    audit_activity: int = 0
    last_backup_at: Optional[str] = None
    days_since_last_backup: Optional[int] = None

    @property
    def total_contacts_changes(self) -> int:
        return self.contacts_created + self.contacts_updated

    @property
    def total_cases_changes(self) -> int:
        return self.cases_created + self.cases_updated + self.case_notes_created

    @property
    def total_corporations_changes(self) -> int:
        return self.corporations_created + self.corporations_updated

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total_contacts_changes"] = self.total_contacts_changes
        data["total_cases_changes"] = self.total_cases_changes
        data["total_corporations_changes"] = self.total_corporations_changes
        return data


@dataclass
class BackupDecision:
    should_backup: bool
    reason: str
    thresholds_exceeded: List[str] = field(default_factory=list)
    forced: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _created_and_updated(model, since):
    created = model.objects.filter(created_at__gte=since).count()
    touched = model.objects.filter(Q(created_at__gte=since) | Q(updated_at__gte=since)).count()
    return created, touched - created


class BackupAnalyzer:
    def __init__(self, config):
        self.config = config

    def analyze_workload(self, now=None) -> WorkloadMetrics:
        from audit.models import AuditLog
        from cases.models import TaxCase, TaxCaseNote
        from clients.models import Contact, Corporation
        from documents.models import Document

        from .models import Backup

        now = now or timezone.now()
        since = now - timedelta(days=1)
        metrics = WorkloadMetrics()

        metrics.contacts_created, metrics.contacts_updated = _created_and_updated(Contact, since)
        metrics.cases_created, metrics.cases_updated = _created_and_updated(TaxCase, since)
        metrics.corporations_created, metrics.corporations_updated = _created_and_updated(Corporation, since)
        metrics.case_notes_created = TaxCaseNote.objects.filter(created_at__gte=since).count()
        metrics.documents_created = Document.objects.filter(created_at__gte=since).count()
        metrics.audit_activity = AuditLog.objects.filter(timestamp__gte=since).count()

        last = (
            Backup.objects
            .filter(backup_type=Backup.BackupType.GLOBAL, status=Backup.Status.COMPLETED)
            .exclude(completed_at=None)
            .order_by("-completed_at")
            .first()
        )
        if last is not None:
            metrics.last_backup_at = last.completed_at.isoformat()
            metrics.days_since_last_backup = (now - last.completed_at).days
        return metrics

    def should_backup(self, metrics: WorkloadMetrics) -> BackupDecision:
        config = self.config
        if metrics.last_backup_at is None:
            return BackupDecision(
                should_backup=True,
                reason="No completed global backup exists yet",
                thresholds_exceeded=["no_previous_backup"],
                forced=True,
            )
        if metrics.days_since_last_backup >= config.days_since_last:
            return BackupDecision(
                should_backup=True,
                reason=(
                    f"{metrics.days_since_last_backup} days since the last backup "
                    f"(threshold {config.days_since_last})"
                ),
                thresholds_exceeded=["days_since_last_backup"],
                forced=True,
            )

        checks = [
            ("contacts", metrics.total_contacts_changes, config.contacts_threshold),
            ("cases", metrics.total_cases_changes, config.cases_threshold),
            ("documents", metrics.documents_created, config.documents_threshold),
            ("corporations", metrics.total_corporations_changes, config.corporations_threshold),
            ("audit_activity", metrics.audit_activity, config.activity_threshold),
        ]
        exceeded = [name for name, value, threshold in checks if value >= threshold]
        if not exceeded:
            return BackupDecision(should_backup=False, reason="Activity is below every threshold")

        details = ", ".join(f"{name} {value}/{threshold}" for name, value, threshold in checks if name in exceeded)
        return BackupDecision(
            should_backup=True,
            reason=f"Thresholds reached: {details}",
            thresholds_exceeded=exceeded,
        )

    def run(self) -> tuple:
        metrics = self.analyze_workload()
        decision = self.should_backup(metrics)
        logger.info(
            "Backup workload analyzed",
            extra={"should_backup": decision.should_backup, "thresholds": decision.thresholds_exceeded},
        )
        return metrics, decision
