# core/services/subjects.py
"""
Business-object side of approvals.

The engine only knows (subject_type, subject_id). The handlers here are
looked up by (subject kind, request type) around a transition and change
the object under approval: a bill goes to "pending void" while its
application is open and is voided or restored when the application ends. Approved user / role /
permission requests are executed against django auth.
"""
import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group, Permission
from django.db import transaction
from django.utils import timezone

from core.approval.exceptions import InvalidStateError, NotFoundError
from core.approval.statuses import is_pending
from core.constants import Settings
from core.models import ApprovalRequest, BillOfLading

logger = logging.getLogger(__name__)

User = get_user_model()


class SubjectHandler:
    """Default: the subject is not touched."""

    def before_create(self, request_type, subject_id):
        """Checks before a new request is stored; returns the subject, if it has one."""
        return None

    def on_created(self, req):
        pass

    def on_approved(self, req, approver_name=""):
        pass

    def on_closed(self, req):
        """Rejected, cancelled or expired."""


class BillSubject(SubjectHandler):

    def _bill(self, subject_id, lock=False):
        qs = BillOfLading.objects.select_for_update() if lock else BillOfLading.objects
        try:
            return qs.get(pk=int(subject_id))
        except (BillOfLading.DoesNotExist, TypeError, ValueError):
            raise NotFoundError(f"Bill {subject_id} not found.")

    def before_create(self, request_type, subject_id):
        # the lock on the bill serializes concurrent applications for it
        bill = self._bill(subject_id, lock=True)
        if bill.is_void:
            raise InvalidStateError(f"Bill {bill.bill_number} is already void.")

        open_requests = ApprovalRequest.objects.filter(
            subject_type=Settings.SUBJECT_BILL,
            subject_id=str(bill.pk),
            request_type=request_type,
        ).values_list("status", flat=True)
        if any(is_pending(s) for s in open_requests):
            raise InvalidStateError(f"Bill {bill.bill_number} already has an open void application.")
        return bill

    def on_created(self, req):
        bill = self._bill(req.subject_id, lock=True)
        if bill.status != Settings.BILL_STATUS_PENDING_VOID:
            bill.status_before_void = bill.status
        bill.status = Settings.BILL_STATUS_PENDING_VOID
        bill.save(update_fields=["status", "status_before_void", "updated_at"])

    def on_approved(self, req, approver_name=""):
        bill = self._bill(req.subject_id, lock=True)
        bill.status = Settings.BILL_STATUS_VOID
        bill.is_void = True
        bill.void_reason = (req.payload or {}).get("reason", "")
        bill.void_time = req.approved_at or timezone.now()
        bill.void_by = approver_name
        bill.save(update_fields=["status", "is_void", "void_reason", "void_time", "void_by", "updated_at"])

    def on_closed(self, req):
        bill = self._bill(req.subject_id, lock=True)
        if bill.is_void:
            return
        bill.status = bill.status_before_void or Settings.BILL_STATUS_ARRIVED
        bill.status_before_void = ""
        bill.save(update_fields=["status", "status_before_void", "updated_at"])


SUBJECT_HANDLERS = {
    (Settings.SUBJECT_BILL, Settings.REQUEST_TYPE_VOID_BILL): BillSubject(),
}

_DEFAULT_HANDLER = SubjectHandler()


def subject_handler(subject_type, request_type):
    return SUBJECT_HANDLERS.get((subject_type, request_type), _DEFAULT_HANDLER)


# ------------------------------------------------------------------
# execution of approved user / role / permission requests
# ------------------------------------------------------------------
def _create_user(payload):
    user = User.objects.create_user(
        username=payload["username"],
        email=payload.get("email") or "",
        first_name=payload.get("first_name") or "",
        last_name=payload.get("last_name") or "",
    )
    user.set_unusable_password()
    user.save(update_fields=["password"])
    if payload.get("role"):
        group, _ = Group.objects.get_or_create(name=payload["role"])
        user.groups.add(group)
    return {"userId": user.pk, "username": user.username}


def _change_role(payload):
    user = User.objects.get(pk=payload["user_id"])
    group, _ = Group.objects.get_or_create(name=payload["new_role"])
    user.groups.set([group])
    return {"userId": user.pk, "role": group.name}


def _grant_permissions(payload):
    group = Group.objects.get(name=payload["role"])
    granted, missing = [], []
    for code in payload["permission_codes"]:
        app_label, _, codename = code.partition(".")
        perm = Permission.objects.filter(content_type__app_label=app_label, codename=codename).first()
        if perm is None:
            missing.append(code)
            continue
        group.permissions.add(perm)
        granted.append(code)
    return {"role": group.name, "granted": granted, "missing": missing}


def _deactivate_user(payload):
    # approval history and decisions keep pointing at the user, so no hard delete
    user = User.objects.get(pk=payload["user_id"])
    user.is_active = False
    user.set_unusable_password()
    user.save(update_fields=["is_active", "password"])
    user.groups.clear()
    return {"userId": user.pk, "username": user.username, "deactivated": True}


EXECUTORS = {
    Settings.REQUEST_TYPE_USER_CREATE: _create_user,
    Settings.REQUEST_TYPE_ROLE_CHANGE: _change_role,
    Settings.REQUEST_TYPE_PERMISSION_GRANT: _grant_permissions,
    Settings.REQUEST_TYPE_USER_DELETE: _deactivate_user,
}


def execute_approved(req):
    """
    Run the follow-up of an approved request (if its type has one) and store
    the outcome on the request. A failure is recorded, not raised: the
    approval itself stands.
    """
    executor = EXECUTORS.get(req.request_type)
    if executor is None or req.is_executed:
        return None

    now = timezone.now()
    try:
        with transaction.atomic():
            result = executor(req.payload or {})
    except Exception as exc:
        logger.exception("approval %s: execution of %s failed", req.request_no, req.request_type)
        result = {"error": str(exc)}
        ApprovalRequest.objects.filter(pk=req.pk).update(execution_result=result, updated_at=now)
        req.execution_result = result
        return result

    ApprovalRequest.objects.filter(pk=req.pk).update(
        is_executed=True, executed_at=now, execution_result=result, updated_at=now,
    )
    req.is_executed, req.executed_at, req.execution_result = True, now, result
    logger.info("approval %s executed: %s", req.request_no, result)
    return result
