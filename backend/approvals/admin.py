from django.contrib import admin

from .models import Approval, ApprovalAction, ApprovalActionLog, ApprovalRequest, ApprovalRule


class ApprovalRuleInline(admin.TabularInline):
    model = ApprovalRule
    extra = 0


class ApprovalActionInline(admin.TabularInline):
    model = ApprovalAction
    extra = 0


@admin.register(Approval)
class ApprovalAdmin(admin.ModelAdmin):
    list_display = ("name", "module", "trigger", "apply_on", "is_active")
    list_filter = ("module", "trigger", "is_active")
    inlines = [ApprovalRuleInline, ApprovalActionInline]


class ApprovalActionLogInline(admin.TabularInline):
    model = ApprovalActionLog
    extra = 0
    can_delete = False
    readonly_fields = ("action_type", "action_title", "result", "detail", "created_at")


@admin.register(ApprovalRequest)
class ApprovalRequestAdmin(admin.ModelAdmin):
    list_display = ("approval_name", "module", "object_repr", "status", "submitted_by", "decided_by", "decided_at")
    list_filter = ("status", "module")
    inlines = [ApprovalActionLogInline]
