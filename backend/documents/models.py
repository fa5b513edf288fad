import os

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import TimeStampedModel


class DepartmentClientFolder(TimeStampedModel):
    """
    A department's folder for one client.

    Every folder belongs to a contact, a corporation, or both. Subfolders
    carry the same department and client as their parent.
    """

    department = models.ForeignKey("accounts.Department", on_delete=models.CASCADE, related_name="client_folders")
    name = models.CharField(max_length=255)
    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.CASCADE, related_name="children"
    )
    contact = models.ForeignKey(
        "clients.Contact", null=True, blank=True, on_delete=models.CASCADE, related_name="department_folders"
    )
    corporation = models.ForeignKey(
        "clients.Corporation", null=True, blank=True, on_delete=models.CASCADE, related_name="department_folders"
    )
    description = models.TextField(blank=True, default="")
    is_default = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_client_folders",
    )

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(contact__isnull=False) | Q(corporation__isnull=False),
                name="client_folder_has_owner",
            ),
        ]

    def __str__(self):
        owner = self.corporation or self.contact
        return f"{self.department} / {owner} / {self.name}"

    def clean(self):
        if self.contact_id is None and self.corporation_id is None:
            raise ValidationError("A client folder must be linked to a contact or a corporation.")
        if self.parent_id:
            parent = self.parent
            if parent.department_id != self.department_id:
                raise ValidationError({"parent": "Parent folder belongs to another department."})
            if (parent.contact_id, parent.corporation_id) != (self.contact_id, self.corporation_id):
                raise ValidationError({"parent": "Parent folder belongs to another client."})

    @property
    def client_name(self) -> str:
        owner = self.corporation or self.contact
        return str(owner) if owner else ""


def document_upload_to(instance, filename):
    """documents/corporation_<id>/… or documents/contact_<id>/…, by owning client."""
    if instance.corporation_id:
        owner = f"corporation_{instance.corporation_id}"
    elif instance.contact_id:
        owner = f"contact_{instance.contact_id}"
    else:
        owner = "unfiled"
    stamp = timezone.now().strftime("%Y%m%d%H%M%S")
    base, ext = os.path.splitext(os.path.basename(filename))
    return f"documents/{owner}/{stamp}_{base[:80]}{ext.lower()}"


class Document(TimeStampedModel):
    """A file attached to a contact, corporation or case."""

    audit_module = "documents"

    class DocType(models.TextChoices):
        W2 = "w2", _("W-2")
        FORM_1099 = "1099", _("1099")
        TAX_RETURN = "tax_return", _("Tax Return")
        ID_DOCUMENT = "id_document", _("ID Document")
        BANK_STATEMENT = "bank_statement", _("Bank Statement")
        AUTHORIZATION = "authorization", _("Authorization")
        CORRESPONDENCE = "correspondence", _("Correspondence")
        RECEIPT = "receipt", _("Receipt")
        OTHER = "other", _("Other")

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")

    title = models.CharField(max_length=255)
    file = models.FileField(upload_to=document_upload_to, max_length=500)
    doc_type = models.CharField(max_length=20, choices=DocType.choices, default=DocType.OTHER, db_index=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    description = models.TextField(blank=True, default="")
    file_size = models.PositiveBigIntegerField(default=0)
    mime_type = models.CharField(max_length=100, blank=True, default="")

    contact = models.ForeignKey(
        "clients.Contact", null=True, blank=True, on_delete=models.CASCADE, related_name="documents"
    )
    corporation = models.ForeignKey(
        "clients.Corporation", null=True, blank=True, on_delete=models.CASCADE, related_name="documents"
    )
    case = models.ForeignKey(
        "cases.TaxCase", null=True, blank=True, on_delete=models.CASCADE, related_name="documents"
    )
    folder = models.ForeignKey(
        DepartmentClientFolder, null=True, blank=True, on_delete=models.SET_NULL, related_name="documents"
    )
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="uploaded_documents",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.title

    # Used by the approvals engine for created_by resolution
    @property
    def created_by(self):
        return self.uploaded_by
