"""
Command layer for tax cases, case notes and tasks.

Pattern:
1. Validate permissions (require)
2. Apply business policies (can_*)
3. Perform the operation (model changes)
4. Record the audit entry
5. Return CommandResult
"""

import logging

from django.db import transaction
from django.utils import timezone

from accounts.authz import ActorContext, require
from audit.models import AuditLog
from audit.services import diff_fields, record_audit
from clients.models import Contact, Corporation
from core.commands import CommandResult

from .models import Task, TaxCase, TaxCaseNote
from .policies import can_delete_case, can_edit_case, can_transition

logger = logging.getLogger(__name__)

CASE_FIELDS = {
    "title", "case_type", "fiscal_year", "priority", "corporation_id",
    "assigned_preparer_id", "reviewer_id", "estimated_fee", "actual_fee",
    "due_date", "extension_date", "description",
}

TASK_FIELDS = {"title", "description", "priority", "due_date", "assigned_to_id"}


def _get_case(case_id):
    try:
        return TaxCase.objects.get(pk=case_id)
    except TaxCase.DoesNotExist:
        return None


# =============================================================================
# Tax Case Commands
# =============================================================================

@transaction.atomic
def create_case(actor: ActorContext, title: str, case_type: str, fiscal_year: int, contact_id: int,
                **fields) -> CommandResult:
    """
    Open a new tax case for a contact.

    The case number (TC-<year>-<seq>) is assigned on save.
    """
    require(actor, "cases.manage")

    unknown = set(fields) - CASE_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    contact = Contact.objects.filter(pk=contact_id).first()
    if contact is None:
        return CommandResult.fail("Contact not found.")
    corporation_id = fields.get("corporation_id")
    if corporation_id and not Corporation.objects.filter(pk=corporation_id).exists():
        return CommandResult.fail("Corporation not found.")

    case = TaxCase.objects.create(
        title=title,
        case_type=case_type,
        fiscal_year=fiscal_year,
        contact=contact,
        created_by=actor.user,
        **fields,
    )

    record_audit(actor, AuditLog.Action.CREATE, case)
    logger.info("Tax case created", extra={"case_id": case.pk, "case_number": case.case_number})
    return CommandResult.ok(case)


@transaction.atomic
def update_case(actor: ActorContext, case_id: int, **updates) -> CommandResult:
    require(actor, "cases.manage")

    case = _get_case(case_id)
    if case is None:
        return CommandResult.fail("Case not found.")

    allowed, reason = can_edit_case(case)
    if not allowed:
        return CommandResult.fail(reason)

    if "status" in updates:
        return CommandResult.fail("Use the transition endpoint to change a case status.")
    unknown = set(updates) - CASE_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    changes = diff_fields(case, updates)
    for field, value in updates.items():
        setattr(case, field, value)
    case.save()

    if changes:
        record_audit(actor, AuditLog.Action.UPDATE, case, changes=changes)
    return CommandResult.ok(case)


@transaction.atomic
def transition_case(actor: ActorContext, case_id: int, new_status: str, note: str = "") -> CommandResult:
    """
    Move a case to a new status along VALID_TRANSITIONS.

    Entering filed/completed/closed stamps the matching date when unset.
    An optional note is stored as an internal case note.
    """
    require(actor, "cases.transition")

    case = _get_case(case_id)
    if case is None:
        return CommandResult.fail("Case not found.")

    allowed, reason = can_transition(case, new_status)
    if not allowed:
        return CommandResult.fail(reason)

    old_status = case.status
    case.status = new_status
    update_fields = ["status", "updated_at"]

    date_field = TaxCase.STATUS_DATE_FIELDS.get(new_status)
    if date_field and getattr(case, date_field) is None:
        setattr(case, date_field, timezone.localdate())
        update_fields.append(date_field)
    case.save(update_fields=update_fields)

    if note:
        TaxCaseNote.objects.create(case=case, author=actor.user, content=note, is_internal=True)

    record_audit(actor, AuditLog.Action.UPDATE, case, changes={"status": [old_status, new_status]})
    logger.info(
        "Tax case transitioned",
        extra={"case_id": case.pk, "from_status": old_status, "to_status": new_status},
    )
    return CommandResult.ok(case)


@transaction.atomic
def add_case_note(actor: ActorContext, case_id: int, content: str, is_internal: bool = True) -> CommandResult:
    """Notes are allowed on locked cases."""
    require(actor, "cases.manage")

    case = _get_case(case_id)
    if case is None:
        return CommandResult.fail("Case not found.")
    if not content or not content.strip():
        return CommandResult.fail("Note content is required.")

    note = TaxCaseNote.objects.create(case=case, author=actor.user, content=content, is_internal=is_internal)
    record_audit(actor, AuditLog.Action.UPDATE, case, changes={"note_added": note.pk})
    return CommandResult.ok(note)


@transaction.atomic
def delete_case(actor: ActorContext, case_id: int) -> CommandResult:
    require(actor, "cases.delete")

    case = _get_case(case_id)
    if case is None:
        return CommandResult.fail("Case not found.")

    allowed, reason = can_delete_case(case)
    if not allowed:
        return CommandResult.fail(reason)

    case.soft_delete()
    record_audit(actor, AuditLog.Action.DELETE, case)
    logger.info("Tax case deleted", extra={"case_id": case.pk})
    return CommandResult.ok(case)


# =============================================================================
# Task Commands
# =============================================================================

@transaction.atomic
def create_task(actor: ActorContext, title: str, case_id: int = None, contact_id: int = None,
                **fields) -> CommandResult:
    require(actor, "tasks.manage")

    unknown = set(fields) - TASK_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    case = None
    if case_id:
        case = _get_case(case_id)
        if case is None:
            return CommandResult.fail("Case not found.")
    contact = None
    if contact_id:
        contact = Contact.objects.filter(pk=contact_id).first()
        if contact is None:
            return CommandResult.fail("Contact not found.")
    elif case is not None:
        contact = case.contact

    task = Task.objects.create(title=title, case=case, contact=contact, created_by=actor.user, **fields)
    record_audit(actor, AuditLog.Action.CREATE, task)
    return CommandResult.ok(task)


@transaction.atomic
def update_task(actor: ActorContext, task_id: int, **updates) -> CommandResult:
    require(actor, "tasks.manage")

    task = Task.objects.filter(pk=task_id).first()
    if task is None:
        return CommandResult.fail("Task not found.")
    unknown = set(updates) - TASK_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    changes = diff_fields(task, updates)
    for field, value in updates.items():
        setattr(task, field, value)
    task.save()

    if changes:
        record_audit(actor, AuditLog.Action.UPDATE, task, changes=changes)
    return CommandResult.ok(task)


@transaction.atomic
def update_task_status(actor: ActorContext, task_id: int, status: str) -> CommandResult:
    require(actor, "tasks.manage")

    task = Task.objects.filter(pk=task_id).first()
    if task is None:
        return CommandResult.fail("Task not found.")
    if status not in Task.Status.values:
        return CommandResult.fail(f"Unknown task status '{status}'.")
    if task.status == status:
        return CommandResult.ok(task)

    old_status = task.status
    task.status = status
    task.completed_at = timezone.now() if status == Task.Status.DONE else None
    task.save(update_fields=["status", "completed_at", "updated_at"])

    record_audit(actor, AuditLog.Action.UPDATE, task, changes={"status": [old_status, status]})
    return CommandResult.ok(task)
