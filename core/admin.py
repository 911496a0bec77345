# core/admin.py
from django.contrib import admin

from core.admin_filters import OpenClosedFilter, RequestTypeQuickFilter, status_badge
from core.models import (
    ApprovalHistory,
    ApprovalRequest,
    ApprovalStageDecision,
    BillOfLading,
    Notification,
    SystemConfig,
)


# -------------------------------
# System config (the only editable approval data)
# -------------------------------
@admin.register(SystemConfig)
class SystemConfigAdmin(admin.ModelAdmin):
    list_display = ("key", "value", "description", "updated_at", "updated_by")
    search_fields = ("key", "description")
    readonly_fields = ("updated_at", "updated_by")

    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


# -------------------------------
# Approval requests: read-only, transitions go through the API
# -------------------------------
class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class StageDecisionInline(ReadOnlyInline):
    model = ApprovalStageDecision
    fields = ("stage_index", "stage_name", "decision", "approver_name", "comment", "decided_at")
    readonly_fields = fields


class HistoryInline(ReadOnlyInline):
    model = ApprovalHistory
    fields = ("created_at", "action_name", "actor_name", "actor_role", "old_status", "new_status", "comment")
    readonly_fields = fields
    ordering = ("created_at", "id")


@admin.register(ApprovalRequest)
class ApprovalRequestAdmin(admin.ModelAdmin):
    list_display = (
        "request_no", "request_type", "title", "status_col", "priority",
        "requester_name", "current_approver", "current_approver_role", "created_at",
    )
    list_select_related = ("current_approver",)
    list_filter = (OpenClosedFilter, RequestTypeQuickFilter, "priority", "status")
    list_per_page = 50
    search_fields = ("request_no", "title", "requester_name", "subject_id")
    date_hierarchy = "created_at"
    inlines = [StageDecisionInline, HistoryInline]

    @admin.display(description="status", ordering="status")
    def status_col(self, obj):
        return status_badge(obj.status)

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ApprovalHistory)
class ApprovalHistoryAdmin(admin.ModelAdmin):
    list_display = ("request", "action_name", "actor_name", "actor_role", "old_status", "new_status", "created_at")
    list_select_related = ("request",)
    list_filter = ("action",)
    search_fields = ("request__request_no", "actor_name", "comment")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# -------------------------------
@admin.register(BillOfLading)
class BillOfLadingAdmin(admin.ModelAdmin):
    list_display = ("bill_number", "container_number", "status", "is_void", "void_time", "void_by")
    list_filter = ("status", "is_void")
    search_fields = ("bill_number", "container_number")
    readonly_fields = ("status_before_void", "is_void", "void_reason", "void_time", "void_by")


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "notification_type", "title", "is_read", "created_at")
    list_filter = ("notification_type", "is_read")
    search_fields = ("title", "user__username")
