# core/services/roles.py
from typing import List, Optional, Set

from django.contrib.auth import get_user_model
from django.db.models import Q

from core.approval.workflow import Stage

User = get_user_model()


def stage_approver_ids(stage: Optional[Stage]) -> List[int]:
    """Active users who may decide the given stage."""
    if stage is None:
        return []
    if stage.approver_id is not None:
        return list(User.objects.filter(pk=stage.approver_id, is_active=True).values_list("pk", flat=True))
    return list(
        User.objects.filter(groups__name=stage.role, is_active=True)
        .values_list("pk", flat=True)
        .distinct()
    )


def admin_user_ids(admin_group: str) -> Set[int]:
    """Superusers plus members of the approval admin group (they see every pending item)."""
    return set(
        User.objects.filter(Q(is_superuser=True) | Q(groups__name=admin_group), is_active=True)
        .values_list("pk", flat=True)
        .distinct()
    )
