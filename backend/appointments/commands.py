"""
Command layer for appointments.

Pattern:
1. Validate permissions (require)
2. Apply business policies (can_*)
3. Perform the operation (model changes)
4. Record the audit entry
5. Return CommandResult
"""

import logging

from django.db import transaction

from accounts.authz import ActorContext, require
from accounts.models import User
from audit.models import AuditLog
from audit.services import diff_fields, record_audit
from cases.models import TaxCase
from clients.models import Contact
from core.commands import CommandResult

from .models import Appointment
from .policies import can_change, can_occupy_slot

logger = logging.getLogger(__name__)

APPOINTMENT_FIELDS = {"description", "location", "notes", "case_id", "assigned_to_id"}

STATUS_UPDATES = {
    Appointment.Status.CONFIRMED,
    Appointment.Status.COMPLETED,
    Appointment.Status.NO_SHOW,
}


def _get_appointment(appointment_id):
    return Appointment.objects.select_for_update().filter(pk=appointment_id).first()


@transaction.atomic
def schedule_appointment(actor: ActorContext, title: str, contact_id: int, start_datetime, end_datetime,
                         **fields) -> CommandResult:
    """
    Book an appointment with a contact.

    Rejected when the end is not after the start or the assigned staff
    member already has an appointment in that slot.
    """
    require(actor, "appointments.manage")

    unknown = set(fields) - APPOINTMENT_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    contact = Contact.objects.filter(pk=contact_id).first()
    if contact is None:
        return CommandResult.fail("Contact not found.")
    if fields.get("case_id") and not TaxCase.objects.filter(pk=fields["case_id"]).exists():
        return CommandResult.fail("Tax case not found.")
    if fields.get("assigned_to_id") and not User.objects.filter(pk=fields["assigned_to_id"], is_active=True).exists():
        return CommandResult.fail("Assigned user not found.")

    appointment = Appointment(
        title=title,
        contact=contact,
        start_datetime=start_datetime,
        end_datetime=end_datetime,
        created_by=actor.user,
        **fields,
    )
    if appointment.assigned_to_id:
        # Serialize bookings for one staff member
        User.objects.select_for_update().filter(pk=appointment.assigned_to_id).first()
    allowed, reason = can_occupy_slot(appointment)
    if not allowed:
        return CommandResult.fail(reason)
    appointment.save()

    record_audit(actor, AuditLog.Action.CREATE, appointment)
    logger.info("Appointment scheduled", extra={"appointment_id": appointment.pk})
    return CommandResult.ok(appointment)


@transaction.atomic
def update_appointment(actor: ActorContext, appointment_id: int, **updates) -> CommandResult:
    require(actor, "appointments.manage")

    appointment = _get_appointment(appointment_id)
    if appointment is None:
        return CommandResult.fail("Appointment not found.")

    unknown = set(updates) - APPOINTMENT_FIELDS - {"title"}
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")
    allowed, reason = can_change(appointment)
    if not allowed:
        return CommandResult.fail(reason)

    changes = diff_fields(appointment, updates)
    for field, value in updates.items():
        setattr(appointment, field, value)
    if "assigned_to_id" in changes:
        allowed, reason = can_occupy_slot(appointment)
        if not allowed:
            return CommandResult.fail(reason)
    appointment.save()

    if changes:
        record_audit(actor, AuditLog.Action.UPDATE, appointment, changes=changes)
    return CommandResult.ok(appointment)


@transaction.atomic
def reschedule_appointment(actor: ActorContext, appointment_id: int, start_datetime, end_datetime,
                           assigned_to_id=None) -> CommandResult:
    """Move an appointment to a new slot, optionally to another staff member."""
    require(actor, "appointments.manage")

    appointment = _get_appointment(appointment_id)
    if appointment is None:
        return CommandResult.fail("Appointment not found.")

    allowed, reason = can_change(appointment)
    if not allowed:
        return CommandResult.fail(reason)

    updates = {"start_datetime": start_datetime, "end_datetime": end_datetime}
    if assigned_to_id is not None:
        updates["assigned_to_id"] = assigned_to_id
    changes = diff_fields(appointment, updates)
    for field, value in updates.items():
        setattr(appointment, field, value)

    allowed, reason = can_occupy_slot(appointment)
    if not allowed:
        return CommandResult.fail(reason)

    # A moved appointment needs confirming again
    appointment.status = Appointment.Status.SCHEDULED
    appointment.save()

    record_audit(actor, AuditLog.Action.UPDATE, appointment, changes=changes)
    logger.info("Appointment rescheduled", extra={"appointment_id": appointment.pk})
    return CommandResult.ok(appointment)


@transaction.atomic
def update_appointment_status(actor: ActorContext, appointment_id: int, new_status: str) -> CommandResult:
    """Confirm, complete or mark an appointment as a no-show."""
    require(actor, "appointments.manage")

    appointment = _get_appointment(appointment_id)
    if appointment is None:
        return CommandResult.fail("Appointment not found.")
    if new_status not in STATUS_UPDATES:
        return CommandResult.fail(f"Use the cancel endpoint or choose one of: {', '.join(sorted(STATUS_UPDATES))}.")

    allowed, reason = can_change(appointment)
    if not allowed:
        return CommandResult.fail(reason)

    old_status = appointment.status
    appointment.status = new_status
    appointment.save(update_fields=["status", "updated_at"])

    record_audit(actor, AuditLog.Action.UPDATE, appointment, changes={"status": [old_status, new_status]})
    return CommandResult.ok(appointment)


@transaction.atomic
def cancel_appointment(actor: ActorContext, appointment_id: int, reason: str = "") -> CommandResult:
    require(actor, "appointments.manage")

    appointment = _get_appointment(appointment_id)
    if appointment is None:
        return CommandResult.fail("Appointment not found.")

    allowed, why = can_change(appointment)
    if not allowed:
        return CommandResult.fail(why)

    old_status = appointment.status
    appointment.status = Appointment.Status.CANCELLED
    appointment.cancellation_reason = reason
    appointment.save(update_fields=["status", "cancellation_reason", "updated_at"])

    record_audit(
        actor, AuditLog.Action.UPDATE, appointment,
        changes={"status": [old_status, Appointment.Status.CANCELLED]},
    )
    logger.info("Appointment cancelled", extra={"appointment_id": appointment.pk})
    return CommandResult.ok(appointment)
