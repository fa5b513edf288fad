"""
Command layer for contacts and corporations.

Views call commands; commands check permissions and policies, write the
change, and record the audit entry.

Invariant kept here: a contact's primary corporation is always one of its
corporations. Setting a primary adds it to the set; removing the primary
from the set clears the pointer.
"""

import logging

from django.db import transaction

from accounts.authz import ActorContext, require
from audit.models import AuditLog
from audit.services import diff_fields, record_audit
from core.commands import CommandResult

from .models import Contact, Corporation
from .policies import (
    can_delete_contact,
    can_delete_corporation,
    can_link_related,
    can_set_parent,
)

logger = logging.getLogger(__name__)

CORPORATION_FIELDS = {
    "name", "legal_name", "entity_type", "ein", "status", "fiscal_year_end",
    "email", "phone", "street_address", "city", "state", "zip_code", "country",
    "description", "assigned_to_id",
}

CONTACT_FIELDS = {
    "salutation", "first_name", "last_name", "email", "phone", "mobile",
    "date_of_birth", "ssn_last_four", "street_address", "city", "state",
    "zip_code", "country", "status", "description", "assigned_to_id",
}


def _get_corporation(corporation_id):
    try:
        return Corporation.objects.get(pk=corporation_id)
    except Corporation.DoesNotExist:
        return None


def _get_contact(contact_id):
    try:
        return Contact.objects.get(pk=contact_id)
    except Contact.DoesNotExist:
        return None


def _redact(changes: dict) -> dict:
    # Encrypted fields never reach the audit trail in clear text
    for field in ("ein", "ssn_last_four"):
        if field in changes:
            changes[field] = ["***", "***"]
    return changes


# =============================================================================
# Corporation Commands
# =============================================================================

@transaction.atomic
def create_corporation(actor: ActorContext, name: str, member_of_id: int = None,
                       related_ids: list = None, **fields) -> CommandResult:
    """
    Create a corporation.

    Args:
        actor: The actor context
        name: Display name
        member_of_id: Optional parent corporation
        related_ids: Optional related corporations (symmetrical link)
        **fields: Any of CORPORATION_FIELDS
    """
    require(actor, "clients.manage")

    unknown = set(fields) - CORPORATION_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")
    if not name or not name.strip():
        return CommandResult.fail("Corporation name is required.")

    parent = None
    if member_of_id:
        parent = _get_corporation(member_of_id)
        if parent is None:
            return CommandResult.fail("Parent corporation not found.")

    corporation = Corporation.objects.create(
        name=name.strip(), member_of=parent, created_by=actor.user, **fields
    )

    if related_ids:
        related = list(Corporation.objects.filter(pk__in=related_ids).exclude(pk=corporation.pk))
        corporation.related_corporations.add(*related)

    record_audit(actor, AuditLog.Action.CREATE, corporation)
    logger.info("Corporation created", extra={"corporation_id": corporation.pk})
    return CommandResult.ok(corporation)


@transaction.atomic
def update_corporation(actor: ActorContext, corporation_id: int, **updates) -> CommandResult:
    require(actor, "clients.manage")

    corporation = _get_corporation(corporation_id)
    if corporation is None:
        return CommandResult.fail("Corporation not found.")

    member_of_given = "member_of_id" in updates
    member_of_id = updates.pop("member_of_id", None)
    unknown = set(updates) - CORPORATION_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    changes = diff_fields(corporation, updates)

    if member_of_given:
        parent = None
        if member_of_id:
            parent = _get_corporation(member_of_id)
            if parent is None:
                return CommandResult.fail("Parent corporation not found.")
        allowed, reason = can_set_parent(corporation, parent)
        if not allowed:
            return CommandResult.fail(reason)
        if corporation.member_of_id != (parent.pk if parent else None):
            changes["member_of"] = [corporation.member_of_id, parent.pk if parent else None]
        corporation.member_of = parent

    for field, value in updates.items():
        setattr(corporation, field, value)
    corporation.save()

    if changes:
        record_audit(actor, AuditLog.Action.UPDATE, corporation, changes=_redact(changes))
    return CommandResult.ok(corporation)


@transaction.atomic
def delete_corporation(actor: ActorContext, corporation_id: int) -> CommandResult:
    require(actor, "clients.delete")

    corporation = _get_corporation(corporation_id)
    if corporation is None:
        return CommandResult.fail("Corporation not found.")

    allowed, reason = can_delete_corporation(corporation)
    if not allowed:
        return CommandResult.fail(reason)

    # Contacts keep their membership rows; only the primary pointer is cleared
    Contact.objects.filter(primary_corporation=corporation).update(primary_corporation=None)
    corporation.soft_delete()

    record_audit(actor, AuditLog.Action.DELETE, corporation)
    logger.info("Corporation deleted", extra={"corporation_id": corporation.pk})
    return CommandResult.ok(corporation)


@transaction.atomic
def link_related_corporation(actor: ActorContext, corporation_id: int, related_id: int,
                             unlink: bool = False) -> CommandResult:
    """Link (or unlink) two corporations. The relation is symmetrical."""
    require(actor, "clients.manage")

    corporation = _get_corporation(corporation_id)
    other = _get_corporation(related_id)
    if corporation is None or other is None:
        return CommandResult.fail("Corporation not found.")

    allowed, reason = can_link_related(corporation, other)
    if not allowed:
        return CommandResult.fail(reason)

    if unlink:
        corporation.related_corporations.remove(other)
    else:
        corporation.related_corporations.add(other)

    record_audit(
        actor, AuditLog.Action.UPDATE, corporation,
        changes={"related_corporations": {"removed" if unlink else "added": other.pk}},
    )
    return CommandResult.ok(corporation)


# =============================================================================
# Contact Commands
# =============================================================================

@transaction.atomic
def create_contact(actor: ActorContext, first_name: str, last_name: str,
                   corporation_ids: list = None, primary_corporation_id: int = None,
                   **fields) -> CommandResult:
    """
    Create a contact, optionally linked to corporations.

    The primary corporation, when given, is added to the corporation set.
    """
    require(actor, "clients.manage")

    unknown = set(fields) - CONTACT_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    ids = set(corporation_ids or [])
    if primary_corporation_id:
        ids.add(primary_corporation_id)
    corporations = list(Corporation.objects.filter(pk__in=ids))
    if len(corporations) != len(ids):
        return CommandResult.fail("One or more corporations were not found.")

    primary = next((c for c in corporations if c.pk == primary_corporation_id), None)

    contact = Contact.objects.create(
        first_name=first_name,
        last_name=last_name,
        primary_corporation=primary,
        created_by=actor.user,
        **fields,
    )
    if corporations:
        contact.corporations.add(*corporations)

    record_audit(actor, AuditLog.Action.CREATE, contact)
    logger.info("Contact created", extra={"contact_id": contact.pk, "contact_number": contact.contact_number})
    return CommandResult.ok(contact)


@transaction.atomic
def update_contact(actor: ActorContext, contact_id: int, **updates) -> CommandResult:
    require(actor, "clients.manage")

    contact = _get_contact(contact_id)
    if contact is None:
        return CommandResult.fail("Contact not found.")

    primary_given = "primary_corporation_id" in updates
    primary_id = updates.pop("primary_corporation_id", None)
    unknown = set(updates) - CONTACT_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    changes = diff_fields(contact, updates)
    for field, value in updates.items():
        setattr(contact, field, value)
    contact.save()

    if primary_given and primary_id != contact.primary_corporation_id:
        result = _apply_primary(contact, primary_id)
        if not result.success:
            transaction.set_rollback(True)
            return result
        changes["primary_corporation"] = result.data

    if changes:
        record_audit(actor, AuditLog.Action.UPDATE, contact, changes=_redact(changes))
    return CommandResult.ok(contact)


def _apply_primary(contact, corporation_id) -> CommandResult:
    """Point contact at a new primary corporation; returns the [old, new] pair."""
    old = contact.primary_corporation_id
    if corporation_id is None:
        contact.primary_corporation = None
    else:
        corporation = _get_corporation(corporation_id)
        if corporation is None:
            return CommandResult.fail("Corporation not found.")
        contact.corporations.add(corporation)
        contact.primary_corporation = corporation
    contact.save(update_fields=["primary_corporation", "updated_at"])
    return CommandResult.ok([old, corporation_id])


@transaction.atomic
def set_primary_corporation(actor: ActorContext, contact_id: int, corporation_id) -> CommandResult:
    """Set (or clear, with None) the primary corporation of a contact."""
    require(actor, "clients.manage")

    contact = _get_contact(contact_id)
    if contact is None:
        return CommandResult.fail("Contact not found.")

    result = _apply_primary(contact, corporation_id)
    if not result.success:
        return result

    record_audit(actor, AuditLog.Action.UPDATE, contact, changes={"primary_corporation": result.data})
    return CommandResult.ok(contact)


@transaction.atomic
def add_contact_corporation(actor: ActorContext, contact_id: int, corporation_id: int,
                            make_primary: bool = False) -> CommandResult:
    require(actor, "clients.manage")

    contact = _get_contact(contact_id)
    if contact is None:
        return CommandResult.fail("Contact not found.")
    corporation = _get_corporation(corporation_id)
    if corporation is None:
        return CommandResult.fail("Corporation not found.")

    contact.corporations.add(corporation)
    changes = {"corporations": {"added": corporation.pk}}
    if make_primary or contact.primary_corporation_id is None:
        contact.primary_corporation = corporation
        contact.save(update_fields=["primary_corporation", "updated_at"])
        changes["primary_corporation"] = corporation.pk

    record_audit(actor, AuditLog.Action.UPDATE, contact, changes=changes)
    return CommandResult.ok(contact)


@transaction.atomic
def remove_contact_corporation(actor: ActorContext, contact_id: int, corporation_id: int) -> CommandResult:
    require(actor, "clients.manage")

    contact = _get_contact(contact_id)
    if contact is None:
        return CommandResult.fail("Contact not found.")
    if not contact.corporations.filter(pk=corporation_id).exists():
        return CommandResult.fail("Contact is not linked to this corporation.")

    contact.corporations.remove(corporation_id)
    changes = {"corporations": {"removed": corporation_id}}
    if contact.primary_corporation_id == corporation_id:
        contact.primary_corporation = None
        contact.save(update_fields=["primary_corporation", "updated_at"])
        changes["primary_corporation"] = [corporation_id, None]

    record_audit(actor, AuditLog.Action.UPDATE, contact, changes=changes)
    return CommandResult.ok(contact)


@transaction.atomic
def delete_contact(actor: ActorContext, contact_id: int) -> CommandResult:
    require(actor, "clients.delete")

    contact = _get_contact(contact_id)
    if contact is None:
        return CommandResult.fail("Contact not found.")

    allowed, reason = can_delete_contact(contact)
    if not allowed:
        return CommandResult.fail(reason)

    contact.soft_delete()
    record_audit(actor, AuditLog.Action.DELETE, contact)
    logger.info("Contact deleted", extra={"contact_id": contact.pk})
    return CommandResult.ok(contact)
