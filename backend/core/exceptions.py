"""
API error handling.

Every error response uses one envelope:

    {"error": {"status": 400, "code": "invalid", "detail": "...", "fields": {...}}}

`fields` is present only for field-level validation errors. Messages are
sanitized outside DEBUG so database, path and credential details never reach
the client; the original is logged on the "security" logger.
"""
import logging
import re
from typing import Any

from django.conf import settings
from django.core.exceptions import PermissionDenied, ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


class PolicyViolation(Exception):
    """Raised when a business policy is violated."""
    pass


# (pattern, category); the first match replaces the whole message
SENSITIVE_PATTERNS = [
    (r"(?i)\b(psycopg2?|sqlite3?|mysql|postgres(ql)?)\b", "database"),
    (r"relation \".*\" does not exist", "database"),
    (r"duplicate key value violates unique constraint", "database"),
    (r"UNIQUE constraint failed", "database"),
    (r"\b(SELECT|INSERT INTO|UPDATE|DELETE FROM)\s+\S", "database"),
    (r"(?i)(postgres(ql)?|mysql|redis|amqp)://\S+", "server"),
    (r"(?i)(api[_-]?key|secret|password|token)\s*[=:]\s*\S+", "server"),
    (r"File \".*\", line \d+", "server"),
    (r"Traceback \(most recent call last\)", "server"),
    (r"(/[\w\-. ]+){3,}", "server"),
    (r"[A-Za-z]:\\\S+", "server"),
]

GENERIC_MESSAGES = {
    "database": "A database error occurred. Please try again later.",
    "server": "An internal error occurred. Please try again later.",
}

ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "invalid",
    status.HTTP_401_UNAUTHORIZED: "not_authenticated",
    status.HTTP_403_FORBIDDEN: "permission_denied",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_429_TOO_MANY_REQUESTS: "throttled",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "server_error",
}


def sanitize_error_message(message: Any, debug: bool = False) -> str:
    """Replace messages that leak internals with a generic one."""
    if not isinstance(message, str):
        message = str(message)
    if debug:
        return message

    for pattern, category in SENSITIVE_PATTERNS:
        if re.search(pattern, message):
            security_logger.warning(
                "Sanitized sensitive information in error message",
                extra={"category": category, "original_length": len(message)},
            )
            return GENERIC_MESSAGES[category]
    return message


def error_body(status_code: int, detail: str, code: str = None, fields: dict = None) -> dict:
    body = {
        "status": status_code,
        "code": code or ERROR_CODES.get(status_code, "error"),
        "detail": detail,
    }
    if fields:
        body["fields"] = fields
    return {"error": body}


def error_response(detail: str, status_code: int = status.HTTP_400_BAD_REQUEST, code: str = None) -> Response:
    """Response for a failed command (CommandResult.fail) in the standard envelope."""
    debug = getattr(settings, "DEBUG", False)
    return Response(error_body(status_code, sanitize_error_message(detail, debug), code), status=status_code)


def _flatten(value) -> list:
    if isinstance(value, dict):
        return [str(v) for item in value.values() for v in _flatten(item)]
    if isinstance(value, (list, tuple)):
        return [str(v) for item in value for v in _flatten(item)]
    return [str(value)]


def taxdesk_exception_handler(exc, context):
    """DRF EXCEPTION_HANDLER producing the error envelope."""
    debug = getattr(settings, "DEBUG", False)
    request = context.get("request")
    view = context.get("view")

    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, "message_dict"):
            exc = exceptions.ValidationError(exc.message_dict)
        else:
            exc = exceptions.ValidationError(exc.messages)
    elif isinstance(exc, PolicyViolation):
        exc = exceptions.ValidationError({"detail": str(exc)})

    response = exception_handler(exc, context)

    if response is None:
        logger.exception(
            "Unhandled API error",
            extra={
                "view": type(view).__name__ if view else None,
                "path": getattr(request, "path", None),
                "method": getattr(request, "method", None),
            },
        )
        detail = str(exc) if debug else GENERIC_MESSAGES["server"]
        return Response(
            error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, detail),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    code = None
    fields = None
    if isinstance(exc, exceptions.ValidationError):
        data = response.data
        if isinstance(data, dict):
            non_field = list(data.pop("non_field_errors", [])) + list(_flatten(data.pop("detail", [])))
            fields = {k: [sanitize_error_message(m, debug) for m in _flatten(v)] for k, v in data.items()}
            messages = non_field or ["Validation failed."]
        else:
            messages = _flatten(data)
        detail = sanitize_error_message(messages[0], debug)
    elif isinstance(exc, exceptions.APIException):
        code = exc.get_codes() if isinstance(exc.get_codes(), str) else None
        detail = sanitize_error_message(exc.detail, debug)
    elif isinstance(exc, Http404):
        detail = "Not found."
    elif isinstance(exc, PermissionDenied):
        detail = sanitize_error_message(str(exc) or "You do not have permission to perform this action.", debug)
    else:
        detail = sanitize_error_message(response.data, debug)

    if response.status_code >= 500:
        logger.error("API error", extra={"status": response.status_code, "path": getattr(request, "path", None)})
    elif response.status_code in (401, 403):
        security_logger.info(
            "Access refused",
            extra={"status": response.status_code, "path": getattr(request, "path", None)},
        )

    response.data = error_body(response.status_code, detail, code, fields)
    return response
