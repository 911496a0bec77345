# core/services/access.py
from django.contrib.auth import get_user_model
from django.db.models import Q

from core.approval.statuses import PENDING
from core.models import ApprovalHistory, ApprovalRequest

User = get_user_model()


def pending_q():
    # single-stage chains use plain "pending", multi-stage ones "pending_<stage>"
    return Q(status=PENDING) | Q(status__startswith=f"{PENDING}_")


def inbox_q(user_id, roles):
    """Requests whose current stage waits on this user id or one of these group names."""
    condition = Q(current_approver_id=user_id)
    if roles:
        condition |= Q(current_approver_role__in=list(roles))
    return condition


def visible_requests(actor):
    """
    Requests an actor may read.
    Admins: everything. Others: what they raised, what they acted on and
    what is currently waiting for them.
    """
    qs = ApprovalRequest.objects.all()
    if actor.is_admin:
        return qs

    acted_on = ApprovalHistory.objects.filter(actor_id=actor.id).values("request_id")
    return qs.filter(
        Q(requester_id=actor.id)
        | Q(pk__in=acted_on)
        | (pending_q() & inbox_q(actor.id, actor.roles))
    )


def user_roles(user_id):
    return frozenset(
        User.objects.get(pk=user_id).groups.values_list("name", flat=True)
    )
