from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Length
from django.utils.translation import gettext_lazy as _

from core.fields import EncryptedCharField
from core.models import SoftDeleteModel
from core.sequences import next_value


class Corporation(SoftDeleteModel):
    """A business entity served by the practice."""

    audit_module = "corporations"

    class EntityType(models.TextChoices):
        SOLE_PROPRIETORSHIP = "sole_proprietorship", _("Sole Proprietorship")
        PARTNERSHIP = "partnership", _("Partnership")
        LLC = "llc", _("LLC")
        S_CORP = "s_corp", _("S Corporation")
        C_CORP = "c_corp", _("C Corporation")
        NONPROFIT = "nonprofit", _("Nonprofit")
        TRUST = "trust", _("Trust")
        ESTATE = "estate", _("Estate")
        OTHER = "other", _("Other")

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        INACTIVE = "inactive", _("Inactive")
        DISSOLVED = "dissolved", _("Dissolved")

    name = models.CharField(max_length=255, db_index=True)
    legal_name = models.CharField(max_length=255, blank=True)
    entity_type = models.CharField(max_length=30, choices=EntityType.choices, default=EntityType.OTHER)
    ein = EncryptedCharField(max_length=20, blank=True, default="")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    fiscal_year_end = models.CharField(max_length=10, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    street_address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True, default="United States")
    description = models.TextField(blank=True)

    member_of = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL, related_name="subsidiaries"
    )
    related_corporations = models.ManyToManyField("self", blank=True, symmetrical=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="assigned_corporations",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_corporations",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def clean(self):
        if self.member_of_id and creates_cycle(self, self.member_of):
            raise ValidationError({"member_of": "A corporation cannot be a member of itself or its subsidiaries."})

    def scope_ids(self) -> set:
        """Primary keys of this corporation and every subsidiary below it."""
        ids = {self.pk}
        frontier = [self.pk]
        while frontier:
            children = list(
                Corporation.all_objects.filter(member_of_id__in=frontier)
                .exclude(pk__in=ids)
                .values_list("pk", flat=True)
            )
            ids.update(children)
            frontier = children
        return ids


def creates_cycle(corporation, parent) -> bool:
    """True when making parent the member_of of corporation would close a loop."""
    if parent is None:
        return False
    if corporation.pk is None:
        return False
    seen = set()
    node = parent
    while node is not None:
        if node.pk == corporation.pk:
            return True
        if node.pk in seen:
            return True
        seen.add(node.pk)
        node = node.member_of
    return False


class Contact(SoftDeleteModel):
    """An individual client. Belongs to any number of corporations."""

    audit_module = "contacts"

    class Salutation(models.TextChoices):
        MR = "Mr.", _("Mr.")
        MRS = "Mrs.", _("Mrs.")
        MS = "Ms.", _("Ms.")
        DR = "Dr.", _("Dr.")

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        INACTIVE = "inactive", _("Inactive")
        LEAD = "lead", _("Lead")

    contact_number = models.CharField(max_length=20, unique=True, editable=False)
    salutation = models.CharField(max_length=10, choices=Salutation.choices, blank=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True, db_index=True)
    phone = models.CharField(max_length=30, blank=True)
    mobile = models.CharField(max_length=30, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    ssn_last_four = EncryptedCharField(max_length=4, blank=True, default="")
    street_address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True, default="United States")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    description = models.TextField(blank=True)

    corporations = models.ManyToManyField(Corporation, blank=True, related_name="contacts")
    primary_corporation = models.ForeignKey(
        Corporation, null=True, blank=True, on_delete=models.SET_NULL, related_name="primary_contacts"
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="assigned_contacts",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_contacts",
    )

    class Meta:
        ordering = ["last_name", "first_name"]
        indexes = [models.Index(fields=["last_name", "first_name"], name="contact_name_idx")]

    def __str__(self):
        return self.full_name

    def save(self, *args, **kwargs):
        if not self.contact_number:
            self.contact_number = next_contact_number()
        super().save(*args, **kwargs)

    @property
    def full_name(self) -> str:
        parts = [self.salutation, self.first_name, self.last_name]
        return " ".join(p for p in parts if p).strip()

    @property
    def corporation_name(self):
        return self.primary_corporation.name if self.primary_corporation_id else None


def next_contact_number() -> str:
    """Next CON#### number, counting soft-deleted contacts so numbers are never reused."""
    number = next_value("contact_number", floor=_contact_number_floor)
    return f"CON{number:04d}"


def _contact_number_floor() -> int:
    last = (
        Contact.all_objects
        .annotate(number_length=Length("contact_number"))
        .order_by("-number_length", "-contact_number")
        .values_list("contact_number", flat=True)
        .first()
    )
    try:
        last_num = int(last.replace("CON", "")) if last else 0
    except ValueError:
        last_num = 0
    return last_num + 1
