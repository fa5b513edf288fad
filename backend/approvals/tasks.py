"""
Celery tasks for the approvals engine.

Usage:
    from approvals.tasks import send_approval_email
    send_approval_email.delay(["client@example.com"], "Approved", "Your return was approved.")
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(EmailDeliveryError,),
    retry_backoff=True,
)
def send_approval_email(self, recipients: list, subject: str, body: str) -> dict:
    """Send an email produced by a send_email approval action."""
    from accounts.email_service import send_workflow_email

    if not send_workflow_email(recipients, subject, body):
        logger.warning(f"Approval email attempt {self.request.retries + 1} failed", extra={"subject": subject})
        raise EmailDeliveryError(f"Email to {', '.join(recipients)} was not sent")
    return {"sent": len(recipients)}
