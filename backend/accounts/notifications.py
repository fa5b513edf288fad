"""In-app notification helpers."""
import logging

from django.contrib.contenttypes.models import ContentType

from accounts.models import Notification

logger = logging.getLogger(__name__)


def notify(recipient, title: str, message: str = "", severity: str = Notification.Severity.INFO,
           action_url: str = "", related=None) -> Notification:
    """Create a notification for a staff user, optionally pointing at a record."""
    kwargs = {}
    if related is not None:
        kwargs["content_type"] = ContentType.objects.get_for_model(related)
        kwargs["object_id"] = str(related.pk)

    notification = Notification.objects.create(
        recipient=recipient,
        title=title[:255],
        message=message,
        severity=severity,
        action_url=action_url,
        **kwargs,
    )
    logger.info("Notification created", extra={"recipient_id": recipient.pk, "notification_id": notification.pk})
    return notification
