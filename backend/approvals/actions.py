"""
Handlers for approval actions.

Each handler takes (action, approval_request, record) and returns a short
detail string for the action log, or raises ActionError. Config strings may
contain {{field}} placeholders rendered from the record.

Recipients in config are "created_by", "assigned_to", "submitted_by",
"decided_by" or a user id.
"""
import datetime
import logging
import re

from django.core.exceptions import FieldDoesNotExist, ValidationError
from django.db import models, transaction
from django.utils import timezone

from accounts.models import Notification, User
from accounts.notifications import notify
from audit.models import AuditLog
from audit.services import record_audit

from .conditions import resolve_field
from .models import ApprovalAction
from .registry import module_registry

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")

# Fields an update_field action may never touch
PROTECTED_FIELDS = {"id", "created_at", "updated_at", "deleted_at", "created_by", "case_number", "contact_number"}


class ActionError(Exception):
    """An approval action could not be carried out."""


def render(template: str, record) -> str:
    def replace(match):
        value = resolve_field(record, match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER.sub(replace, template or "")


def resolve_recipient(target, approval_request, record):
    """Turn a recipient setting into an active User, or None."""
    if target in (None, ""):
        return None
    if target in ("submitted_by", "decided_by"):
        user = getattr(approval_request, target)
    elif target in ("created_by", "assigned_to"):
        module = module_registry.get(approval_request.module)
        user = module.owner(record, target) if module else getattr(record, target, None)
    else:
        try:
            user = User.objects.filter(pk=int(target)).first()
        except (TypeError, ValueError):
            raise ActionError(f"Unknown recipient '{target}'.")
    if user is not None and not user.is_active:
        return None
    return user


def _require_recipient(config, approval_request, record):
    recipient = resolve_recipient(config.get("recipient"), approval_request, record)
    if recipient is None:
        raise ActionError(f"Recipient '{config.get('recipient')}' could not be resolved.")
    return recipient


def update_field(action, approval_request, record) -> str:
    config = action.action_config
    field_name = config.get("field")
    if not field_name or field_name in PROTECTED_FIELDS:
        raise ActionError(f"Field '{field_name}' cannot be updated.")
    try:
        field = record._meta.get_field(field_name)
    except FieldDoesNotExist:
        raise ActionError(f"Unknown field '{field_name}'.")
    if not field.concrete or field.many_to_many or field.primary_key:
        raise ActionError(f"Field '{field_name}' cannot be updated.")

    raw = config.get("value")
    if isinstance(raw, str):
        raw = render(raw, record)
    attname = field.attname
    try:
        if isinstance(field, models.ForeignKey):
            value = field.target_field.to_python(raw) if raw not in (None, "") else None
        else:
            value = field.to_python(raw)
        if field.choices and value not in {c[0] for c in field.flatchoices}:
            raise ValidationError(f"'{value}' is not a valid choice.")
    except ValidationError as e:
        raise ActionError(f"Invalid value for '{field_name}': {'; '.join(e.messages)}")

    old = getattr(record, attname)
    update_fields = [attname]
    if field_name == "status":
        module = module_registry.get(approval_request.module)
        allowed, reason = module.check_transition(record, value) if module else (True, "")
        if not allowed:
            raise ActionError(reason)
        date_field = getattr(record, "STATUS_DATE_FIELDS", {}).get(value)
        if date_field and getattr(record, date_field) is None:
            setattr(record, date_field, timezone.localdate())
            update_fields.append(date_field)

    setattr(record, attname, value)
    if any(f.name == "updated_at" for f in record._meta.concrete_fields):
        update_fields.append("updated_at")
    record.save(update_fields=update_fields)

    record_audit(
        approval_request.decided_by, AuditLog.Action.UPDATE, record,
        changes={field_name: [old, value]},
    )
    return f"{field_name} set to {value!r}"


def send_email(action, approval_request, record) -> str:
    from .tasks import send_approval_email

    config = action.action_config
    target = config.get("recipient")
    if isinstance(target, str) and "@" in target:
        address = target
    else:
        recipient = _require_recipient(config, approval_request, record)
        if not recipient.email:
            raise ActionError("Recipient has no email address.")
        address = recipient.email

    subject = render(config.get("subject") or action.action_title, record)
    body = render(config.get("body", ""), record)
    transaction.on_commit(lambda: send_approval_email.delay([address], subject, body))
    return f"Email to {address} queued"


def send_notification(action, approval_request, record) -> str:
    config = action.action_config
    recipient = _require_recipient(config, approval_request, record)
    severity = config.get("severity", Notification.Severity.INFO)
    if severity not in Notification.Severity.values:
        severity = Notification.Severity.INFO

    notify(
        recipient,
        title=render(config.get("title") or action.action_title, record),
        message=render(config.get("message", ""), record),
        severity=severity,
        action_url=config.get("action_url", ""),
        related=record,
    )
    return f"Notification sent to {recipient.email}"


def create_task(action, approval_request, record) -> str:
    from cases.models import Task, TaxCase
    from clients.models import Contact

    config = action.action_config
    assignee = resolve_recipient(config.get("recipient"), approval_request, record)

    priority = config.get("priority", Task.Priority.MEDIUM)
    if priority not in Task.Priority.values:
        raise ActionError(f"Unknown priority '{priority}'.")

    due_date = None
    if config.get("due_in_days") not in (None, ""):
        try:
            due_date = timezone.localdate() + datetime.timedelta(days=int(config["due_in_days"]))
        except (TypeError, ValueError):
            raise ActionError("due_in_days must be a whole number.")

    case = record if isinstance(record, TaxCase) else getattr(record, "case", None)
    contact = record if isinstance(record, Contact) else getattr(record, "contact", None)
    if not isinstance(case, TaxCase):
        case = None
    if not isinstance(contact, Contact):
        contact = None

    task = Task.objects.create(
        title=render(config.get("title") or action.action_title, record)[:255],
        description=render(config.get("description", ""), record),
        priority=priority,
        due_date=due_date,
        assigned_to=assignee,
        created_by=approval_request.decided_by,
        case=case,
        contact=contact,
    )
    record_audit(approval_request.decided_by, AuditLog.Action.CREATE, task)
    return f"Task #{task.pk} created"


HANDLERS = {
    ApprovalAction.ActionType.UPDATE_FIELD: update_field,
    ApprovalAction.ActionType.SEND_EMAIL: send_email,
    ApprovalAction.ActionType.SEND_NOTIFICATION: send_notification,
    ApprovalAction.ActionType.CREATE_TASK: create_task,
}
