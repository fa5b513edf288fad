from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Staff users, roles and the permission catalogue."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
    verbose_name = "Staff & Roles"
