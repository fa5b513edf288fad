"""
Command layer for client folders and documents.

Pattern:
1. Validate permissions (require)
2. Apply business policies (can_*)
3. Perform the operation (model changes)
4. Record the audit entry
5. Return CommandResult
"""

import logging
import mimetypes

from django.conf import settings
from django.db import transaction

from accounts.authz import ActorContext, require
from accounts.models import Department
from audit.models import AuditLog
from audit.services import diff_fields, record_audit
from cases.models import TaxCase
from clients.models import Contact, Corporation
from core.commands import CommandResult

from .models import DepartmentClientFolder, Document
from .policies import can_delete_folder, can_file_into

logger = logging.getLogger(__name__)

DEFAULT_FOLDER_NAMES = ("Tax Returns", "Source Documents", "Correspondence")

DOCUMENT_FIELDS = {"title", "doc_type", "status", "description", "folder_id"}


def _max_upload_bytes() -> int:
    return getattr(settings, "DOCUMENT_MAX_UPLOAD_MB", 25) * 1024 * 1024


def _resolve_owner(contact_id, corporation_id):
    """Return (contact, corporation, error)."""
    contact = corporation = None
    if contact_id:
        contact = Contact.objects.filter(pk=contact_id).first()
        if contact is None:
            return None, None, "Contact not found."
    if corporation_id:
        corporation = Corporation.objects.filter(pk=corporation_id).first()
        if corporation is None:
            return None, None, "Corporation not found."
    return contact, corporation, None


# =============================================================================
# Folder Commands
# =============================================================================

@transaction.atomic
def create_folder(actor: ActorContext, department_id: int, name: str, parent_id: int = None,
                  contact_id: int = None, corporation_id: int = None, description: str = "",
                  is_default: bool = False) -> CommandResult:
    """
    Create a department folder for a client.

    A subfolder takes the department and client of its parent; any
    department or client passed alongside a parent must agree with it.
    """
    require(actor, "documents.manage")

    name = (name or "").strip()
    if not name:
        return CommandResult.fail("Folder name is required.")

    parent = None
    if parent_id:
        parent = DepartmentClientFolder.objects.filter(pk=parent_id).first()
        if parent is None:
            return CommandResult.fail("Parent folder not found.")
        if department_id and department_id != parent.department_id:
            return CommandResult.fail("Parent folder belongs to another department.")
        if (contact_id and contact_id != parent.contact_id) or (
            corporation_id and corporation_id != parent.corporation_id
        ):
            return CommandResult.fail("Parent folder belongs to another client.")
        department = parent.department
        contact, corporation = parent.contact, parent.corporation
    else:
        department = Department.objects.filter(pk=department_id).first()
        if department is None:
            return CommandResult.fail("Department not found.")
        contact, corporation, error = _resolve_owner(contact_id, corporation_id)
        if error:
            return CommandResult.fail(error)
        if contact is None and corporation is None:
            return CommandResult.fail("A client folder must be linked to a contact or a corporation.")

    duplicate = DepartmentClientFolder.objects.filter(
        department=department, parent=parent, contact=contact, corporation=corporation, name__iexact=name,
    )
    if duplicate.exists():
        return CommandResult.fail(f"A folder named '{name}' already exists here.")

    folder = DepartmentClientFolder(
        department=department,
        name=name,
        parent=parent,
        contact=contact,
        corporation=corporation,
        description=description,
        is_default=is_default,
        created_by=actor.user,
    )
    folder.full_clean()
    folder.save()

    logger.info("Client folder created", extra={"folder_id": folder.pk, "department_id": department.pk})
    return CommandResult.ok(folder)


@transaction.atomic
def initialize_client_folders(actor: ActorContext, department_id: int, contact_id: int = None,
                              corporation_id: int = None) -> CommandResult:
    """Create the default folder set for a client in a department. Existing ones are kept."""
    require(actor, "documents.manage")

    department = Department.objects.filter(pk=department_id).first()
    if department is None:
        return CommandResult.fail("Department not found.")
    contact, corporation, error = _resolve_owner(contact_id, corporation_id)
    if error:
        return CommandResult.fail(error)
    if contact is None and corporation is None:
        return CommandResult.fail("A client folder must be linked to a contact or a corporation.")

    folders = []
    for name in DEFAULT_FOLDER_NAMES:
        folder, _ = DepartmentClientFolder.objects.get_or_create(
            department=department,
            parent=None,
            contact=contact,
            corporation=corporation,
            name=name,
            defaults={"is_default": True, "created_by": actor.user},
        )
        folders.append(folder)
    return CommandResult.ok(folders)


@transaction.atomic
def delete_folder(actor: ActorContext, folder_id: int) -> CommandResult:
    require(actor, "documents.delete")

    folder = DepartmentClientFolder.objects.filter(pk=folder_id).first()
    if folder is None:
        return CommandResult.fail("Folder not found.")

    allowed, reason = can_delete_folder(folder)
    if not allowed:
        return CommandResult.fail(reason)

    folder.delete()
    logger.info("Client folder deleted", extra={"folder_id": folder_id})
    return CommandResult.ok({"id": folder_id})


# =============================================================================
# Document Commands
# =============================================================================

@transaction.atomic
def upload_document(actor: ActorContext, file, title: str = "", doc_type: str = Document.DocType.OTHER,
                    contact_id: int = None, corporation_id: int = None, case_id: int = None,
                    folder_id: int = None, description: str = "") -> CommandResult:
    """
    Store an uploaded file and attach it to a client.

    A case or folder supplies the client when none is given. The document
    must end up linked to a contact or a corporation.
    """
    require(actor, "documents.manage")

    if file is None:
        return CommandResult.fail("A file is required.")
    if file.size > _max_upload_bytes():
        return CommandResult.fail("File exceeds the maximum upload size.")

    case = None
    if case_id:
        case = TaxCase.objects.filter(pk=case_id).first()
        if case is None:
            return CommandResult.fail("Tax case not found.")
        contact_id = contact_id or case.contact_id
        corporation_id = corporation_id or case.corporation_id

    folder = None
    if folder_id:
        folder = DepartmentClientFolder.objects.filter(pk=folder_id).first()
        if folder is None:
            return CommandResult.fail("Folder not found.")
        allowed, reason = can_file_into(folder, contact_id, corporation_id)
        if not allowed:
            return CommandResult.fail(reason)
        contact_id = contact_id or folder.contact_id
        corporation_id = corporation_id or folder.corporation_id

    contact, corporation, error = _resolve_owner(contact_id, corporation_id)
    if error:
        return CommandResult.fail(error)
    if contact is None and corporation is None:
        return CommandResult.fail("A document must be linked to a contact, a corporation or a case.")

    mime_type = getattr(file, "content_type", "") or mimetypes.guess_type(file.name)[0] or ""
    document = Document.objects.create(
        title=(title or "").strip() or file.name,
        file=file,
        doc_type=doc_type,
        description=description,
        file_size=file.size,
        mime_type=mime_type[:100],
        contact=contact,
        corporation=corporation,
        case=case,
        folder=folder,
        uploaded_by=actor.user,
    )

    record_audit(actor, AuditLog.Action.CREATE, document)
    logger.info("Document uploaded", extra={"document_id": document.pk, "file_size": document.file_size})
    return CommandResult.ok(document)


@transaction.atomic
def update_document(actor: ActorContext, document_id: int, **updates) -> CommandResult:
    require(actor, "documents.manage")

    document = Document.objects.filter(pk=document_id).first()
    if document is None:
        return CommandResult.fail("Document not found.")

    unknown = set(updates) - DOCUMENT_FIELDS
    if unknown:
        return CommandResult.fail(f"Unknown field(s): {', '.join(sorted(unknown))}.")

    if updates.get("folder_id"):
        folder = DepartmentClientFolder.objects.filter(pk=updates["folder_id"]).first()
        if folder is None:
            return CommandResult.fail("Folder not found.")
        allowed, reason = can_file_into(folder, document.contact_id, document.corporation_id)
        if not allowed:
            return CommandResult.fail(reason)

    changes = diff_fields(document, updates)
    for field, value in updates.items():
        setattr(document, field, value)
    document.save()

    if changes:
        record_audit(actor, AuditLog.Action.UPDATE, document, changes=changes)
    return CommandResult.ok(document)


@transaction.atomic
def delete_document(actor: ActorContext, document_id: int) -> CommandResult:
    """Delete a document row; the stored file is removed after commit."""
    require(actor, "documents.delete")

    document = Document.objects.filter(pk=document_id).first()
    if document is None:
        return CommandResult.fail("Document not found.")

    record_audit(actor, AuditLog.Action.DELETE, document)

    storage, name = document.file.storage, document.file.name
    document.delete()
    if name:
        transaction.on_commit(lambda: storage.delete(name))

    logger.info("Document deleted", extra={"document_id": document_id})
    return CommandResult.ok({"id": document_id})
