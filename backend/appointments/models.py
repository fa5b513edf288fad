from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _

from core.models import TimeStampedModel


class Appointment(TimeStampedModel):
    """A scheduled meeting between a staff member and a contact."""

    audit_module = "appointments"

    class Location(models.TextChoices):
        OFFICE = "office", _("Office")
        VIRTUAL = "virtual", _("Virtual")
        CLIENT_SITE = "client_site", _("Client Site")
        PHONE = "phone", _("Phone")

    class Status(models.TextChoices):
        SCHEDULED = "scheduled", _("Scheduled")
        CONFIRMED = "confirmed", _("Confirmed")
        COMPLETED = "completed", _("Completed")
        CANCELLED = "cancelled", _("Cancelled")
        NO_SHOW = "no_show", _("No Show")

    # Statuses that still hold the staff member's time slot
    BLOCKING_STATUSES = (Status.SCHEDULED, Status.CONFIRMED, Status.COMPLETED)
    CLOSED_STATUSES = (Status.COMPLETED, Status.CANCELLED, Status.NO_SHOW)

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    start_datetime = models.DateTimeField(db_index=True)
    end_datetime = models.DateTimeField()
    location = models.CharField(max_length=20, choices=Location.choices, default=Location.OFFICE)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SCHEDULED, db_index=True)

    contact = models.ForeignKey("clients.Contact", on_delete=models.CASCADE, related_name="appointments")
    case = models.ForeignKey(
        "cases.TaxCase", null=True, blank=True, on_delete=models.SET_NULL, related_name="appointments"
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="assigned_appointments",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="created_appointments",
    )
    notes = models.TextField(blank=True, default="")
    cancellation_reason = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-start_datetime"]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_datetime__gt=F("start_datetime")),
                name="appointment_end_after_start",
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.start_datetime:%Y-%m-%d %H:%M})"

    def clean(self):
        if self.start_datetime and self.end_datetime and self.end_datetime <= self.start_datetime:
            raise ValidationError({"end_datetime": "End time must be after the start time."})

    def overlapping(self):
        """Other time-blocking appointments of the same staff member that intersect this one."""
        if self.assigned_to_id is None:
            return Appointment.objects.none()
        return (
            Appointment.objects
            .filter(
                assigned_to_id=self.assigned_to_id,
                status__in=self.BLOCKING_STATUSES,
                start_datetime__lt=self.end_datetime,
                end_datetime__gt=self.start_datetime,
            )
            .exclude(pk=self.pk)
        )
