"""Ops app configuration."""

from django.apps import AppConfig


class OpsConfig(AppConfig):
    """Health checks, metrics and logging setup. Has no models."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "ops"
    verbose_name = "Operations & Observability"
