# core/models.py
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from core.constants import Settings


class SystemConfig(models.Model):
    """Runtime key/value settings (stage approvers, chain overrides, ...)."""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField(blank=True, default="")
    description = models.CharField(max_length=255, blank=True, default="")
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["key"]
        verbose_name = "System config"
        verbose_name_plural = "System configs"

    def __str__(self):
        return f"{self.key}={self.value}"

#---------------------------------------
class BillOfLading(models.Model):
    bill_number = models.CharField(max_length=64, unique=True)
    container_number = models.CharField(max_length=64, blank=True, default="")
    status = models.CharField(max_length=32, default=Settings.BILL_STATUS_ARRIVED)
    # status to go back to when a void application is turned down
    status_before_void = models.CharField(max_length=32, blank=True, default="")

    is_void = models.BooleanField(default=False)
    void_reason = models.TextField(blank=True, default="")
    void_time = models.DateTimeField(null=True, blank=True)
    void_by = models.CharField(max_length=150, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Bill of lading"
        verbose_name_plural = "Bills of lading"

    def __str__(self):
        return self.bill_number

#---------------------------------------
class ApprovalRequest(models.Model):
    class Priority(models.TextChoices):
        LOW = "low", "Low"
        NORMAL = "normal", "Normal"
        HIGH = "high", "High"
        URGENT = "urgent", "Urgent"

    # queue order: urgent first
    PRIORITY_RANK = {
        Priority.URGENT: 1,
        Priority.HIGH: 2,
        Priority.NORMAL: 3,
        Priority.LOW: 4,
    }

    request_no = models.CharField(max_length=32, unique=True)
    request_type = models.CharField(max_length=50, db_index=True)
    title = models.CharField(max_length=255, blank=True, default="")

    # what is being approved: (kind, id), never a copy of the object
    subject_type = models.CharField(max_length=20, choices=Settings.SUBJECT_CHOICES)
    subject_id = models.CharField(max_length=64)

    payload = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.NORMAL)
    status = models.CharField(max_length=40, db_index=True)

    # chain resolved at creation time; later transitions never read live config
    stage_chain = models.JSONField(default=dict)
    current_stage = models.PositiveSmallIntegerField(null=True, blank=True)
    current_approver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approval_inbox",
    )
    current_approver_role = models.CharField(max_length=150, blank=True, default="")

    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="approval_requests",
    )
    requester_name = models.CharField(max_length=150, blank=True, default="")

    reject_reason = models.TextField(blank=True, default="")
    cancel_reason = models.TextField(blank=True, default="")

    # bumped on every transition (compare-and-swap token)
    version = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)

    # follow-up work done by the subject handlers after approval
    is_executed = models.BooleanField(default=False)
    executed_at = models.DateTimeField(null=True, blank=True)
    execution_result = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "current_approver"], name="approval_status_approver_idx"),
            models.Index(fields=["status", "current_approver_role"], name="approval_status_role_idx"),
            models.Index(fields=["subject_type", "subject_id"], name="approval_subject_idx"),
        ]

    def __str__(self):
        return f"{self.request_no} [{self.request_type}] {self.status}"

#---------------------------------------
class ApprovalStageDecision(models.Model):
    """One sign-off per stage; written once, never overwritten."""
    DECISION_APPROVE = "approve"
    DECISION_REJECT = "reject"

    DECISION_CHOICES = [
        (DECISION_APPROVE, "Approved"),
        (DECISION_REJECT, "Rejected"),
    ]

    request = models.ForeignKey(
        "ApprovalRequest",
        on_delete=models.PROTECT,
        related_name="decisions",
    )
    stage_index = models.PositiveSmallIntegerField()
    stage_name = models.CharField(max_length=50)
    decision = models.CharField(max_length=10, choices=DECISION_CHOICES)
    approver = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    approver_name = models.CharField(max_length=150, blank=True, default="")
    comment = models.TextField(blank=True, default="")
    decided_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["stage_index"]
        constraints = [
            models.UniqueConstraint(fields=["request", "stage_index"], name="uniq_stage_decision"),
        ]

    def __str__(self):
        return f"{self.request_id} - {self.stage_name}: {self.decision}"

#---------------------------------------
class ApprovalHistory(models.Model):
    """Append-only audit row, one per transition."""
    request = models.ForeignKey(
        "ApprovalRequest",
        on_delete=models.PROTECT,
        related_name="history",
    )
    action = models.CharField(max_length=20)
    action_name = models.CharField(max_length=100, blank=True, default="")

    # null actor = system (expiry sweep)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    actor_name = models.CharField(max_length=150, blank=True, default="")
    actor_role = models.CharField(max_length=50, blank=True, default="")

    comment = models.TextField(blank=True, default="")
    old_status = models.CharField(max_length=40, blank=True, default="")
    new_status = models.CharField(max_length=40)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name_plural = "Approval history"

    def __str__(self):
        return f"{self.request_id}: {self.old_status or '-'} → {self.new_status} ({self.action})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Approval history rows cannot be changed.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Approval history rows cannot be deleted.")

#---------------------------------------
class Notification(models.Model):
    TYPE_NEW_REQUEST = "new_request"
    TYPE_APPROVED = "approved"
    TYPE_REJECTED = "rejected"
    TYPE_CANCELLED = "cancelled"
    TYPE_EXPIRED = "expired"

    TYPE_CHOICES = [
        (TYPE_NEW_REQUEST, "New request"),
        (TYPE_APPROVED, "Approved"),
        (TYPE_REJECTED, "Rejected"),
        (TYPE_CANCELLED, "Cancelled"),
        (TYPE_EXPIRED, "Expired"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="approval_notifications",
    )
    request = models.ForeignKey(
        "ApprovalRequest",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    notification_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    content = models.TextField(blank=True, default="")
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["user", "is_read"], name="notification_user_read_idx")]

    def __str__(self):
        return f"{self.user_id}: {self.title}"
