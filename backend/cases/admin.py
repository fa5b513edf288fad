from django.contrib import admin

from .models import Task, TaxCase, TaxCaseNote


class TaxCaseNoteInline(admin.TabularInline):
    model = TaxCaseNote
    extra = 0


@admin.register(TaxCase)
class TaxCaseAdmin(admin.ModelAdmin):
    list_display = ("case_number", "title", "case_type", "fiscal_year", "status", "assigned_preparer")
    list_filter = ("status", "case_type", "fiscal_year")
    search_fields = ("case_number", "title")
    inlines = [TaxCaseNoteInline]


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ("title", "status", "priority", "due_date", "assigned_to")
    list_filter = ("status", "priority")
