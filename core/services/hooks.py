# core/services/hooks.py
"""
Collaborators run by the route handlers (and the expiry command) right after
an engine transition, inside the same transaction: subject mutators,
notifications and the pending-count cache.
"""
import logging

from django.db import transaction

from core.approval.statuses import is_pending
from core.approval.workflow import (
    ACTION_APPROVE,
    ACTION_CANCEL,
    ACTION_CREATE,
    ACTION_EXPIRE,
    ACTION_REJECT,
    ACTION_SUBMIT,
    ApprovalWorkflow,
    StageChain,
)
from core.models import Notification
from core.services.config import ConfigSnapshot
from core.services.notifications import (
    invalidate_notification_cache,
    notify_approvers,
    notify_requester,
)
from core.services.roles import admin_user_ids, stage_approver_ids
from core.services.subjects import execute_approved, subject_handler

logger = logging.getLogger(__name__)

_CLOSING = {
    ACTION_REJECT: Notification.TYPE_REJECTED,
    ACTION_CANCEL: Notification.TYPE_CANCELLED,
    ACTION_EXPIRE: Notification.TYPE_EXPIRED,
}


def _stage_of(chain, status):
    return ApprovalWorkflow(status, chain).current_step()


def after_transition(req, action, config=None):
    config = config or ConfigSnapshot.load()
    chain = StageChain.from_snapshot(req.stage_chain)
    last = req.history.order_by("-created_at", "-id").first()
    handler = subject_handler(req.subject_type, req.request_type)

    old_stage = _stage_of(chain, last.old_status) if last and last.old_status else None
    new_stage = _stage_of(chain, req.status)
    new_approvers = stage_approver_ids(new_stage)

    with transaction.atomic():
        if action == ACTION_CREATE:
            handler.on_created(req)

        if action in (ACTION_CREATE, ACTION_SUBMIT, ACTION_APPROVE) and is_pending(req.status):
            notify_approvers(req, new_approvers)

        elif action == ACTION_APPROVE:
            handler.on_approved(req, approver_name=last.actor_name if last else "")
            execute_approved(req)
            notify_requester(req, Notification.TYPE_APPROVED)

        elif action in _CLOSING:
            handler.on_closed(req)
            # no message to yourself when you cancel your own request
            if not (action == ACTION_CANCEL and last and last.actor_id == req.requester_id):
                notify_requester(req, _CLOSING[action], content=last.comment if last else "")

    affected = {req.requester_id, *new_approvers, *stage_approver_ids(old_stage)}
    affected |= admin_user_ids(config.admin_group)
    invalidate_notification_cache(affected)
    # again once the caller's transaction is in, for counts read in between
    transaction.on_commit(lambda: invalidate_notification_cache(affected))
    logger.debug("approval %s: post-%s hooks done", req.request_no, action)
