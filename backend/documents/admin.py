from django.contrib import admin

from .models import DepartmentClientFolder, Document


@admin.register(DepartmentClientFolder)
class DepartmentClientFolderAdmin(admin.ModelAdmin):
    list_display = ("name", "department", "contact", "corporation", "parent", "is_default")
    list_filter = ("department", "is_default")
    search_fields = ("name",)


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ("title", "doc_type", "status", "contact", "corporation", "case", "uploaded_by", "created_at")
    list_filter = ("doc_type", "status")
    search_fields = ("title",)
