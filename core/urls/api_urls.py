# core/urls/api_urls.py
from django.urls import path

from core.views.api import approvals, notifications, system_configs, void_applications

urlpatterns = [
    # generic approvals
    path("approvals", approvals.approvals_collection, name="approval_list"),
    path("approvals/pending", approvals.pending_list, name="approval_pending"),
    path("approvals/pending/count", approvals.pending_count_view, name="approval_pending_count"),
    path("approvals/my", approvals.my_requests, name="approval_my"),
    path("approvals/requirement", approvals.approval_requirement, name="approval_requirement"),
    path("approvals/<int:pk>", approvals.approval_detail, name="approval_detail"),
    path("approvals/<int:pk>/history", approvals.approval_history, name="approval_history"),
    path("approvals/<int:pk>/submit", approvals.approval_submit, name="approval_submit"),
    path("approvals/<int:pk>/approve", approvals.approval_approve, name="approval_approve"),
    path("approvals/<int:pk>/reject", approvals.approval_reject, name="approval_reject"),
    path("approvals/<int:pk>/cancel", approvals.approval_cancel, name="approval_cancel"),

    # void-bill applications
    path("bills/<int:bill_id>/void-applications", void_applications.bill_void_application, name="bill_void_application"),
    path("void-applications", void_applications.void_application_list, name="void_application_list"),
    path("void-applications/<int:pk>", void_applications.void_application_detail, name="void_application_detail"),
    path("void-applications/<int:pk>/approve", void_applications.void_application_approve, name="void_application_approve"),
    path("void-applications/<int:pk>/reject", void_applications.void_application_reject, name="void_application_reject"),

    # config
    path("system-configs", system_configs.system_configs, name="system_configs"),

    # notifications
    path("notifications", notifications.notification_list, name="notification_list"),
    path("notifications/<int:pk>/read", notifications.notification_read, name="notification_read"),
]
