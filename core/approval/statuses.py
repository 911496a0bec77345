# core/approval/statuses.py
from enum import Enum

PENDING = "pending"


class ApprovalStatus(str, Enum):
    # --- before submission ---
    DRAFT = "draft"

    # --- terminal ---
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({
    ApprovalStatus.APPROVED.value,
    ApprovalStatus.REJECTED.value,
    ApprovalStatus.CANCELLED.value,
    ApprovalStatus.EXPIRED.value,
})


def stage_status(stage_name):
    """Status value of a request waiting on the given stage."""
    return f"{PENDING}_{stage_name}"


def is_pending(status):
    status = getattr(status, "value", status)
    return status == PENDING or str(status).startswith(f"{PENDING}_")


def is_terminal(status):
    return getattr(status, "value", status) in TERMINAL_STATUSES
