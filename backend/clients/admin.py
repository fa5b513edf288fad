from django.contrib import admin

from .models import Contact, Corporation


@admin.register(Corporation)
class CorporationAdmin(admin.ModelAdmin):
    list_display = ("name", "entity_type", "status", "member_of", "deleted_at")
    list_filter = ("entity_type", "status")
    search_fields = ("name", "legal_name")
    exclude = ("ein",)

    def get_queryset(self, request):
        return Corporation.all_objects.all()


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ("contact_number", "first_name", "last_name", "email", "primary_corporation", "deleted_at")
    list_filter = ("status",)
    search_fields = ("contact_number", "first_name", "last_name", "email")
    filter_horizontal = ("corporations",)
    exclude = ("ssn_last_four",)

    def get_queryset(self, request):
        return Contact.all_objects.all()
