from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from core.models import TimeStampedModel


class Approval(TimeStampedModel):
    """
    An approval definition.

    When a record of `module` meets the entry criteria, the rules are
    scanned in order and the first matching rule names the approvers.
    """

    class Module(models.TextChoices):
        CASES = "cases", _("Cases")
        CONTACTS = "contacts", _("Contacts")
        CORPORATIONS = "corporations", _("Corporations")
        TASKS = "tasks", _("Tasks")
        DOCUMENTS = "documents", _("Documents")
        APPOINTMENTS = "appointments", _("Appointments")

    class TriggerType(models.TextChoices):
        ON_SAVE = "on_save", _("On Save")
        VIA_PROCESS = "via_process", _("Via Process")

    class ApplyOn(models.TextChoices):
        CREATED_BY = "created_by", _("Created By")
        ASSIGNED_TO = "assigned_to", _("Assigned To")

    name = models.CharField(max_length=255)
    module = models.CharField(max_length=30, choices=Module.choices, db_index=True)
    is_active = models.BooleanField(default=True)
    description = models.TextField(blank=True, default="")
    trigger = models.CharField(max_length=20, choices=TriggerType.choices, default=TriggerType.ON_SAVE)

    # Lists of {"field": ..., "operator": ..., "value": ...}
    entry_criteria_all = models.JSONField(default=list, blank=True)
    entry_criteria_any = models.JSONField(default=list, blank=True)

    apply_on = models.CharField(max_length=20, choices=ApplyOn.choices, default=ApplyOn.ASSIGNED_TO)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_approvals",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.name


class ApprovalRule(TimeStampedModel):
    approval = models.ForeignKey(Approval, on_delete=models.CASCADE, related_name="rules")
    rule_number = models.PositiveSmallIntegerField(default=1)
    conditions = models.JSONField(default=list, blank=True)
    owner_profiles = models.ManyToManyField("accounts.Role", blank=True, related_name="approval_rules")
    approvers = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="approval_rules")

    class Meta:
        ordering = ["rule_number", "id"]

    def __str__(self):
        return f"Rule #{self.rule_number} for {self.approval.name}"


class ApprovalAction(TimeStampedModel):
    """An action run when a request is finally approved or rejected."""

    class Phase(models.TextChoices):
        APPROVAL = "approval", _("Final Approval")
        REJECTION = "rejection", _("Final Rejection")

    class ActionType(models.TextChoices):
        UPDATE_FIELD = "update_field", _("Update Field")
        SEND_EMAIL = "send_email", _("Send Email")
        SEND_NOTIFICATION = "send_notification", _("Send Notification")
        CREATE_TASK = "create_task", _("Create Task")

    approval = models.ForeignKey(Approval, on_delete=models.CASCADE, related_name="actions")
    phase = models.CharField(max_length=10, choices=Phase.choices, db_index=True)
    action_type = models.CharField(max_length=30, choices=ActionType.choices)
    action_title = models.CharField(max_length=255)
    action_config = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["phase", "created_at", "id"]

    def __str__(self):
        return f"{self.get_phase_display()}: {self.action_title}"


class ApprovalRequest(TimeStampedModel):
    """One record waiting for (or having received) a decision."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")
        CANCELLED = "cancelled", _("Cancelled")

    approval = models.ForeignKey(
        Approval, null=True, blank=True, on_delete=models.SET_NULL, related_name="requests"
    )
    rule = models.ForeignKey(
        ApprovalRule, null=True, blank=True, on_delete=models.SET_NULL, related_name="requests"
    )
    approval_name = models.CharField(max_length=255)
    module = models.CharField(max_length=30, choices=Approval.Module.choices, db_index=True)
    object_id = models.CharField(max_length=64)
    object_repr = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)

    approvers = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name="approval_requests_to_decide"
    )
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="submitted_approval_requests",
    )
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="decided_approval_requests",
    )
    decided_at = models.DateTimeField(null=True, blank=True)
    comment = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["module", "object_id"], name="approvalrequest_object_idx")]
        constraints = [
            models.UniqueConstraint(
                fields=["approval", "module", "object_id"],
                condition=Q(status="pending"),
                name="one_pending_request_per_record",
            ),
        ]

    def __str__(self):
        return f"{self.approval_name}: {self.object_repr} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING

    def get_record(self):
        from .registry import get_record

        return get_record(self.module, self.object_id)


class ApprovalActionLog(models.Model):
    class Result(models.TextChoices):
        SUCCESS = "success", _("Success")
        ERROR = "error", _("Error")

    request = models.ForeignKey(ApprovalRequest, on_delete=models.CASCADE, related_name="action_logs")
    action = models.ForeignKey(
        ApprovalAction, null=True, blank=True, on_delete=models.SET_NULL, related_name="logs"
    )
    action_type = models.CharField(max_length=30, choices=ApprovalAction.ActionType.choices)
    action_title = models.CharField(max_length=255)
    result = models.CharField(max_length=10, choices=Result.choices)
    detail = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.action_title}: {self.result}"
