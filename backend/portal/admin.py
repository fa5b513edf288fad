from django.contrib import admin

from .models import ClientPortalAccess, PortalMessage


@admin.register(ClientPortalAccess)
class ClientPortalAccessAdmin(admin.ModelAdmin):
    list_display = ("email", "contact", "is_active", "last_login")
    list_filter = ("is_active",)
    search_fields = ("email",)
    exclude = ("password_hash",)


@admin.register(PortalMessage)
class PortalMessageAdmin(admin.ModelAdmin):
    list_display = ("subject", "contact", "message_type", "is_read", "created_at")
    list_filter = ("message_type", "is_read")
