"""
Audit trail writer.

Every command that mutates state calls record_audit() after the change.
Request metadata comes from the explicit request when given, otherwise
from the request context set by RequestContextMiddleware.
"""
import datetime
import decimal
import logging
import uuid

from core.context import get_request_context
from core.middleware import client_ip

from .models import AuditLog

logger = logging.getLogger(__name__)


def audit_module_for(instance) -> str:
    return getattr(instance, "audit_module", None) or instance._meta.model_name


def _jsonable(value):
    if isinstance(value, (datetime.date, datetime.datetime, datetime.time)):
        return value.isoformat()
    if isinstance(value, (decimal.Decimal, uuid.UUID)):
        return str(value)
    if hasattr(value, "pk"):
        return value.pk
    return value


def diff_fields(instance, updates: dict) -> dict:
    """Return {field: [old, new]} for the entries of updates that differ from instance."""
    changes = {}
    for field, new in updates.items():
        old = getattr(instance, field, None)
        if old != new:
            changes[field] = [_jsonable(old), _jsonable(new)]
    return changes


def record_audit(actor_or_user, action: str, instance, changes: dict = None, request=None,
                 module: str = None) -> AuditLog:
    """Write one audit entry for an action on instance."""
    user = getattr(actor_or_user, "user", actor_or_user)
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None

    if request is not None:
        ip_address = client_ip(request)
        user_agent = request.META.get("HTTP_USER_AGENT", "")
        path = request.path
    else:
        ctx = get_request_context()
        ip_address = ctx.ip_address if ctx else None
        user_agent = ctx.user_agent if ctx else ""
        path = ctx.path if ctx else ""

    entry = AuditLog.objects.create(
        user=user,
        action=action,
        module=module or audit_module_for(instance),
        object_id=str(instance.pk),
        object_repr=str(instance)[:255],
        changes={k: _jsonable(v) if not isinstance(v, list) else [_jsonable(x) for x in v]
                 for k, v in (changes or {}).items()},
        ip_address=ip_address,
        user_agent=user_agent,
        request_path=path[:500],
    )
    logger.info(
        "Audit entry recorded",
        extra={"action": action, "audit_module": entry.module, "object_id": entry.object_id},
    )
    return entry
