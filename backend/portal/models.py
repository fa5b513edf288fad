from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.utils.translation import gettext_lazy as _


class ClientPortalAccess(models.Model):
    """
    Login record for a client portal user.

    Portal users are contacts, not staff Users; each contact has at most one
    portal account.
    """

    contact = models.OneToOneField("clients.Contact", on_delete=models.CASCADE, related_name="portal_access")
    email = models.EmailField(unique=True)
    password_hash = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    last_login = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="granted_portal_accesses",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("client portal access")
        verbose_name_plural = _("client portal accesses")

    def __str__(self):
        return f"Portal: {self.email}"

    def set_password(self, raw_password: str) -> None:
        self.password_hash = make_password(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password(raw_password, self.password_hash)


class PortalMessage(models.Model):
    """A message in the thread between a contact and the practice."""

    class MessageType(models.TextChoices):
        CLIENT = "client", _("Client to Staff")
        STAFF = "staff", _("Staff to Client")

    contact = models.ForeignKey("clients.Contact", on_delete=models.CASCADE, related_name="portal_messages")
    case = models.ForeignKey(
        "cases.TaxCase", null=True, blank=True, on_delete=models.SET_NULL, related_name="portal_messages"
    )
    message_type = models.CharField(max_length=10, choices=MessageType.choices)
    subject = models.CharField(max_length=255)
    body = models.TextField()
    sender_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="portal_messages_sent",
    )
    parent_message = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL, related_name="replies"
    )
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.subject} ({self.message_type})"
