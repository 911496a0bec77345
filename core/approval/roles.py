# core/approval/roles.py
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional


class ActorRole(str, Enum):
    """Role an actor played in a history row."""
    REQUESTER = "requester"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    id: Optional[int]
    name: str = ""
    roles: FrozenSet[str] = field(default_factory=frozenset)
    is_admin: bool = False

    @property
    def is_system(self):
        return self.id is None


SYSTEM_ACTOR = Actor(id=None, name="system", is_admin=True)


def actor_from_user(user, admin_group):
    """Build an Actor from a django user; superusers and members of admin_group are admins."""
    if user is None:
        return SYSTEM_ACTOR
    roles = frozenset(user.groups.values_list("name", flat=True))
    return Actor(
        id=user.pk,
        name=(user.get_full_name() or user.username).strip(),
        roles=roles,
        is_admin=bool(user.is_superuser or admin_group in roles),
    )
