"""
Command layer for the client portal.

Staff-side commands take an ActorContext. Client-side commands take the
ClientPortalAccess resolved by IsPortalAuthenticated.
"""

import logging
import secrets

from django.db import transaction
from django.utils import timezone

from accounts.authz import ActorContext, require
from accounts.email_service import send_portal_welcome_email
from accounts.models import Role, User
from accounts.notifications import notify
from audit.models import AuditLog
from audit.services import record_audit
from cases.models import TaxCase
from clients.models import Contact
from core.commands import CommandResult

from .models import ClientPortalAccess, PortalMessage

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


# =============================================================================
# Access Management (staff)
# =============================================================================

@transaction.atomic
def grant_portal_access(actor: ActorContext, contact_id: int, email: str = None, password: str = None,
                        send_welcome: bool = True) -> CommandResult:
    """
    Create or re-enable a contact's portal account.

    Returns CommandResult.ok({"access": access, "temporary_password": str | None}).
    A temporary password is generated when none is supplied.
    """
    require(actor, "portal.manage")

    contact = Contact.objects.filter(pk=contact_id).first()
    if contact is None:
        return CommandResult.fail("Contact not found.")

    email = (email or contact.email or "").strip().lower()
    if not email:
        return CommandResult.fail("An email address is required for portal access.")
    if ClientPortalAccess.objects.filter(email__iexact=email).exclude(contact=contact).exists():
        return CommandResult.fail("This email is already used by another portal account.")

    temporary_password = None
    if not password:
        temporary_password = password = secrets.token_urlsafe(12)

    access = ClientPortalAccess.objects.filter(contact=contact).first()
    created = access is None
    if created:
        access = ClientPortalAccess(contact=contact, created_by=actor.user)
    access.email = email
    access.is_active = True
    access.set_password(password)
    access.save()

    record_audit(
        actor, AuditLog.Action.CREATE if created else AuditLog.Action.UPDATE, contact,
        changes={"portal_access": [None, email]},
    )
    if send_welcome:
        transaction.on_commit(lambda: send_portal_welcome_email(access))

    logger.info("Portal access granted", extra={"contact_id": contact.pk, "was_created": created})
    return CommandResult.ok({"access": access, "temporary_password": temporary_password})


@transaction.atomic
def revoke_portal_access(actor: ActorContext, contact_id: int) -> CommandResult:
    require(actor, "portal.manage")

    access = ClientPortalAccess.objects.filter(contact_id=contact_id).first()
    if access is None:
        return CommandResult.fail("Contact has no portal access.")

    access.is_active = False
    access.save(update_fields=["is_active", "updated_at"])

    record_audit(actor, AuditLog.Action.UPDATE, access.contact, changes={"portal_access": [access.email, None]})
    security_logger.info("Portal access revoked", extra={"contact_id": contact_id})
    return CommandResult.ok(access)


# =============================================================================
# Authentication (client)
# =============================================================================

def authenticate_portal_user(email: str, password: str) -> CommandResult:
    access = (
        ClientPortalAccess.objects
        .select_related("contact")
        .filter(email__iexact=(email or "").strip(), is_active=True)
        .first()
    )
    if access is None or not access.check_password(password):
        security_logger.warning("Portal login failed", extra={"email": email})
        return CommandResult.fail("Invalid credentials.")

    access.last_login = timezone.now()
    access.save(update_fields=["last_login", "updated_at"])
    logger.info("Portal login", extra={"portal_access_id": access.pk})
    return CommandResult.ok(access)


# =============================================================================
# Messaging
# =============================================================================

def _staff_recipients(contact):
    if contact.assigned_to_id and contact.assigned_to.is_active:
        return [contact.assigned_to]
    return list(User.objects.filter(is_active=True, role__slug=Role.Slug.ADMIN))


def _validate_thread(contact_id, case_id, parent_message_id):
    case = parent = None
    if case_id:
        case = TaxCase.objects.filter(pk=case_id, contact_id=contact_id).first()
        if case is None:
            return None, None, "Tax case not found."
    if parent_message_id:
        parent = PortalMessage.objects.filter(pk=parent_message_id, contact_id=contact_id).first()
        if parent is None:
            return None, None, "Message not found."
    return case, parent, None


@transaction.atomic
def send_client_message(access: ClientPortalAccess, subject: str, body: str, case_id: int = None,
                        parent_message_id: int = None) -> CommandResult:
    """Post a message from the portal and notify the contact's staff owner (or the admins)."""
    case, parent, error = _validate_thread(access.contact_id, case_id, parent_message_id)
    if error:
        return CommandResult.fail(error)

    message = PortalMessage.objects.create(
        contact=access.contact,
        case=case,
        message_type=PortalMessage.MessageType.CLIENT,
        subject=subject,
        body=body,
        parent_message=parent,
    )

    contact = access.contact
    preview = body if len(body) <= 200 else f"{body[:200]}..."
    for recipient in _staff_recipients(contact):
        notify(
            recipient,
            title=f"New message from {contact.full_name or 'client'}",
            message=f"Subject: {subject}\n\n{preview}",
            action_url=f"/contacts/{contact.pk}?tab=client-messages",
            related=contact,
        )

    logger.info("Portal message received", extra={"message_id": message.pk, "contact_id": contact.pk})
    return CommandResult.ok(message)


@transaction.atomic
def send_staff_message(actor: ActorContext, contact_id: int, subject: str, body: str, case_id: int = None,
                       parent_message_id: int = None) -> CommandResult:
    require(actor, "portal.manage")

    contact = Contact.objects.filter(pk=contact_id).first()
    if contact is None:
        return CommandResult.fail("Contact not found.")
    case, parent, error = _validate_thread(contact.pk, case_id, parent_message_id)
    if error:
        return CommandResult.fail(error)

    message = PortalMessage.objects.create(
        contact=contact,
        case=case,
        message_type=PortalMessage.MessageType.STAFF,
        subject=subject,
        body=body,
        sender_user=actor.user,
        parent_message=parent,
    )
    if parent is not None and parent.message_type == PortalMessage.MessageType.CLIENT and not parent.is_read:
        parent.is_read = True
        parent.save(update_fields=["is_read"])

    logger.info("Portal reply sent", extra={"message_id": message.pk, "contact_id": contact.pk})
    return CommandResult.ok(message)


def mark_message_read(access: ClientPortalAccess, message_id: int) -> CommandResult:
    message = PortalMessage.objects.filter(pk=message_id, contact_id=access.contact_id).first()
    if message is None:
        return CommandResult.fail("Message not found.")
    if not message.is_read:
        message.is_read = True
        message.save(update_fields=["is_read"])
    return CommandResult.ok(message)
