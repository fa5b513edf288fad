"""
Logging configuration for the TaxDesk backend.

Every app logger (accounts, cases, approvals, backups, ...) writes to one
console handler: readable lines under DEBUG, JSON lines otherwise, so
the `extra` fields passed by commands (case_id, backup_id, approval_id)
survive as keys.

Environment variables:
- LOG_FORMAT: "json" or "console" (default: json in production)
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
"""
import json
import logging
import os
from datetime import datetime, timezone

# Application loggers routed to the console handler without propagation.
APP_LOGGERS = (
    "accounts",
    "audit",
    "core",
    "clients",
    "cases",
    "documents",
    "appointments",
    "portal",
    "approvals",
    "backups",
    "ops",
    "security",
    "celery",
)


def get_logging_config(debug: bool = False) -> dict:
    """Django LOGGING dict for settings.py; debug switches the default level and format."""
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO")
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json")

    if log_format == "json":
        formatter = {"()": "ops.logging_config.JsonFormatter"}
    else:
        formatter = {"format": "[{asctime}] {levelname} {name} {message}", "style": "{"}

    def routed(level=log_level, handler="console"):
        return {"handlers": [handler], "level": level, "propagate": False}

    loggers = {
        "django": routed(),
        "django.request": routed(log_level if debug else "ERROR"),
        # SQL echo only while debugging
        "django.db.backends": routed("DEBUG", "console") if debug else routed("INFO", "null"),
    }
    loggers.update({name: routed() for name in APP_LOGGERS})

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default", "stream": "ext://sys.stdout"},
            "null": {"class": "logging.NullHandler"},
        },
        "root": {"handlers": ["console"], "level": log_level},
        "loggers": loggers,
    }


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record with consistent fields:
    - timestamp: ISO 8601 timestamp
    - level: Log level name
    - logger: Logger name
    - message: Log message
    - extra: Any extra fields passed to the logger
    """

    standard_attrs = {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "lineno", "funcName", "created",
        "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "exc_info", "exc_text", "stack_info",
        "message", "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_entry["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extras = {}
        for key, value in record.__dict__.items():
            if key in self.standard_attrs:
                continue
            try:
                json.dumps(value)
                extras[key] = value
            except (TypeError, ValueError):
                extras[key] = str(value)

        if extras:
            log_entry["extra"] = extras

        return json.dumps(log_entry, default=str)
