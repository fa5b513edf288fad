from django.contrib import admin

from .models import Appointment


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("title", "contact", "assigned_to", "start_datetime", "end_datetime", "status")
    list_filter = ("status", "location")
    search_fields = ("title",)
    date_hierarchy = "start_datetime"
