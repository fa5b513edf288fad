# accounts/email_service.py
"""
Email service for TaxDesk.

Handles:
- Workflow emails queued by approval actions
- Client portal welcome emails

All emails are sent from DEFAULT_FROM_EMAIL. Failures are logged and
reported through the return value; callers decide whether to retry.
"""

import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def send_workflow_email(recipient_list: list, subject: str, body: str) -> bool:
    """
    Send a plain-text email produced by an approval action.

    Returns:
        True if email was sent successfully, False otherwise
    """
    recipients = [r for r in recipient_list if r]
    if not recipients:
        logger.warning("Workflow email has no recipients", extra={"subject": subject})
        return False

    try:
        send_mail(
            subject=subject,
            message=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=recipients,
            fail_silently=False,
        )
        logger.info(f"Workflow email sent to {', '.join(recipients)}")
        return True
    except Exception as e:
        logger.error(f"Failed to send workflow email to {', '.join(recipients)}: {e}")
        return False


def send_portal_welcome_email(access) -> bool:
    """
    Tell a client their portal account is ready.

    Args:
        access: ClientPortalAccess instance
    """
    login_url = f"{settings.FRONTEND_URL}/portal/login"
    contact = access.contact
    body = (
        f"Hello {contact.first_name or contact.full_name},\n\n"
        "A client portal account has been created for you. You can sign in with "
        f"{access.email} at {login_url} to exchange messages with your tax team "
        "and follow the progress of your cases.\n"
    )

    try:
        send_mail(
            subject="Your client portal account",
            message=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[access.email],
            fail_silently=False,
        )
        logger.info(f"Portal welcome email sent to {access.email}")
        return True
    except Exception as e:
        logger.error(f"Failed to send portal welcome email to {access.email}: {e}")
        return False
