# core/services/notifications.py
import logging

from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from core.approval.exceptions import NotFoundError
from core.approval.workflow_engine import WorkflowEngine
from core.constants import Settings
from core.models import Notification
from core.services.pagination import paginate

logger = logging.getLogger(__name__)

_REQUESTER_TITLES = {
    Notification.TYPE_APPROVED: "Your request {no} was approved",
    Notification.TYPE_REJECTED: "Your request {no} was rejected",
    Notification.TYPE_CANCELLED: "Your request {no} was cancelled",
    Notification.TYPE_EXPIRED: "Your request {no} expired",
}


def _count_key(user_id):
    return Settings.CACHE_PENDING_COUNT.format(user_id=user_id)


def invalidate_notification_cache(user_ids):
    keys = [_count_key(uid) for uid in set(user_ids) if uid is not None]
    if keys:
        cache.delete_many(keys)


def pending_count(user, engine=None):
    """Inbox size for the badge; cached per user until the next invalidation."""
    key = _count_key(user.pk)
    count = cache.get(key)
    if count is None:
        engine = engine or WorkflowEngine()
        count = engine.inbox(user).count()
        cache.set(key, count, Settings.PENDING_COUNT_TIMEOUT)
    return count


def notify_approvers(req, user_ids):
    """New item in the inbox of each approver of the request's current stage."""
    label = Settings.REQUEST_TYPE_LABELS.get(req.request_type, req.request_type)
    rows = [
        Notification(
            user_id=uid,
            request=req,
            notification_type=Notification.TYPE_NEW_REQUEST,
            title=f"{label} {req.request_no} is waiting for your approval",
            content=req.title or "",
        )
        for uid in user_ids
        if uid != req.requester_id
    ]
    Notification.objects.bulk_create(rows)
    logger.debug("approval %s: notified %d approver(s)", req.request_no, len(rows))
    return rows


def notify_requester(req, notification_type, content=""):
    title = _REQUESTER_TITLES.get(notification_type, "Your request {no} was updated")
    return Notification.objects.create(
        user_id=req.requester_id,
        request=req,
        notification_type=notification_type,
        title=title.format(no=req.request_no),
        content=content or "",
    )


def list_notifications(user, unread_only=False, page=None, page_size=None):
    qs = Notification.objects.filter(user=user).select_related("request")
    if unread_only:
        qs = qs.filter(is_read=False)
    return paginate(qs, page, page_size)


def mark_read(user, notification_id):
    with transaction.atomic():
        try:
            note = Notification.objects.select_for_update().get(pk=notification_id, user=user)
        except Notification.DoesNotExist:
            raise NotFoundError("Notification not found.")
        if not note.is_read:
            note.is_read = True
            note.read_at = timezone.now()
            note.save(update_fields=["is_read", "read_at"])
    return note
