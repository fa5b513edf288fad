from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import SoftDeleteModel, TimeStampedModel
from core.sequences import next_value


class TaxCase(SoftDeleteModel):
    """One engagement: a return (or filing) for a client and fiscal year."""

    audit_module = "cases"

    class CaseType(models.TextChoices):
        INDIVIDUAL_1040 = "individual_1040", _("Individual (1040)")
        CORPORATE_1120 = "corporate_1120", _("Corporate (1120)")
        S_CORP_1120S = "s_corp_1120s", _("S-Corp (1120-S)")
        PARTNERSHIP_1065 = "partnership_1065", _("Partnership (1065)")
        NONPROFIT_990 = "nonprofit_990", _("Nonprofit (990)")
        TRUST_1041 = "trust_1041", _("Trust (1041)")
        PAYROLL = "payroll", _("Payroll")
        SALES_TAX = "sales_tax", _("Sales Tax")
        AMENDMENT = "amendment", _("Amendment")
        OTHER = "other", _("Other")

    class Status(models.TextChoices):
        NEW = "new", _("New")
        WAITING_FOR_DOCUMENTS = "waiting_for_documents", _("Waiting for Documents")
        IN_PROGRESS = "in_progress", _("In Progress")
        UNDER_REVIEW = "under_review", _("Under Review")
        READY_TO_FILE = "ready_to_file", _("Ready to File")
        FILED = "filed", _("Filed")
        COMPLETED = "completed", _("Completed")
        CLOSED = "closed", _("Closed")

    class Priority(models.TextChoices):
        LOW = "low", _("Low")
        MEDIUM = "medium", _("Medium")
        HIGH = "high", _("High")
        URGENT = "urgent", _("Urgent")

    VALID_TRANSITIONS = {
        Status.NEW: [Status.IN_PROGRESS, Status.WAITING_FOR_DOCUMENTS],
        Status.WAITING_FOR_DOCUMENTS: [Status.IN_PROGRESS, Status.NEW],
        Status.IN_PROGRESS: [Status.UNDER_REVIEW, Status.WAITING_FOR_DOCUMENTS, Status.NEW],
        Status.UNDER_REVIEW: [Status.READY_TO_FILE, Status.IN_PROGRESS],
        Status.READY_TO_FILE: [Status.FILED, Status.UNDER_REVIEW],
        Status.FILED: [Status.COMPLETED, Status.UNDER_REVIEW],
        Status.COMPLETED: [Status.CLOSED],
        Status.CLOSED: [],
    }

    # Field edits are rejected in these statuses; only transitions apply
    LOCKED_STATUSES = {Status.FILED, Status.COMPLETED, Status.CLOSED}

    # Transition target -> date field stamped on entry
    STATUS_DATE_FIELDS = {
        Status.FILED: "filed_date",
        Status.COMPLETED: "completed_date",
        Status.CLOSED: "closed_date",
    }

    case_number = models.CharField(max_length=30, unique=True, editable=False)
    title = models.CharField(max_length=255)
    case_type = models.CharField(max_length=30, choices=CaseType.choices, db_index=True)
    fiscal_year = models.PositiveIntegerField(db_index=True)
    status = models.CharField(max_length=25, choices=Status.choices, default=Status.NEW, db_index=True)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)

    contact = models.ForeignKey("clients.Contact", on_delete=models.PROTECT, related_name="tax_cases")
    corporation = models.ForeignKey(
        "clients.Corporation", null=True, blank=True, on_delete=models.SET_NULL, related_name="tax_cases"
    )
    assigned_preparer = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="prepared_cases",
    )
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="reviewed_cases",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_cases",
    )

    estimated_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    actual_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    due_date = models.DateField(null=True, blank=True, db_index=True)
    extension_date = models.DateField(null=True, blank=True)
    filed_date = models.DateField(null=True, blank=True)
    completed_date = models.DateField(null=True, blank=True)
    closed_date = models.DateField(null=True, blank=True)

    description = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "assigned_preparer"], name="taxcase_status_preparer_idx"),
            models.Index(fields=["status", "due_date"], name="taxcase_status_due_idx"),
            models.Index(fields=["fiscal_year", "status"], name="taxcase_year_status_idx"),
        ]

    def __str__(self):
        return f"{self.case_number} - {self.title}"

    def save(self, *args, **kwargs):
        if not self.case_number:
            self.case_number = next_case_number()
        super().save(*args, **kwargs)

    @property
    def is_locked(self) -> bool:
        return self.status in self.LOCKED_STATUSES

    def allowed_transitions(self) -> list:
        return [str(s) for s in self.VALID_TRANSITIONS.get(self.status, [])]

    # Used by the approvals engine when resolving apply_on=assigned_to
    @property
    def assigned_to(self):
        return self.assigned_preparer


def next_case_number(year: int = None) -> str:
    """TC-<year>-<seq>, sequence restarting every calendar year."""
    year = year or timezone.now().year
    prefix = f"TC-{year}-"

    def floor():
        numbers = TaxCase.all_objects.filter(case_number__startswith=prefix).values_list("case_number", flat=True)
        last = 0
        for number in numbers:
            try:
                last = max(last, int(number[len(prefix):]))
            except ValueError:
                continue
        return last + 1

    return f"{prefix}{next_value(f'case_number:{year}', floor=floor):04d}"


class TaxCaseNote(TimeStampedModel):
    """Internal or client-visible note attached to a tax case."""

    case = models.ForeignKey(TaxCase, on_delete=models.CASCADE, related_name="notes")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, on_delete=models.SET_NULL, related_name="case_notes"
    )
    content = models.TextField()
    is_internal = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        label = "Internal" if self.is_internal else "Client"
        return f"[{label}] {self.case.case_number} - {self.pk}"


class Task(TimeStampedModel):
    audit_module = "tasks"

    class Status(models.TextChoices):
        TODO = "todo", _("To Do")
        IN_PROGRESS = "in_progress", _("In Progress")
        DONE = "done", _("Done")

    class Priority(models.TextChoices):
        LOW = "low", _("Low")
        MEDIUM = "medium", _("Medium")
        HIGH = "high", _("High")
        URGENT = "urgent", _("Urgent")

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.TODO, db_index=True)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    due_date = models.DateField(null=True, blank=True, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="assigned_tasks",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_tasks",
    )
    case = models.ForeignKey(TaxCase, null=True, blank=True, on_delete=models.CASCADE, related_name="tasks")
    contact = models.ForeignKey(
        "clients.Contact", null=True, blank=True, on_delete=models.SET_NULL, related_name="tasks"
    )

    class Meta:
        ordering = ["due_date", "-created_at"]

    def __str__(self):
        return self.title
