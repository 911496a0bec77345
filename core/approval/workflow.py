# core/approval/workflow.py
import json
from dataclasses import dataclass
from typing import Optional, Tuple

from .exceptions import ConfigurationError, ForbiddenError, InvalidStateError, ValidationError
from .roles import ActorRole
from .statuses import ApprovalStatus, TERMINAL_STATUSES, is_pending, stage_status

ACTION_CREATE = "create"
ACTION_SUBMIT = "submit"
ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"
ACTION_CANCEL = "cancel"
ACTION_EXPIRE = "expire"

ACTION_LABELS = {
    ACTION_CREATE: "Request created",
    ACTION_SUBMIT: "Submitted for approval",
    ACTION_APPROVE: "Approved",
    ACTION_REJECT: "Rejected",
    ACTION_CANCEL: "Cancelled",
    ACTION_EXPIRE: "Expired",
}

_SELECTORS = ("approver_id", "approver_key", "role")


@dataclass(frozen=True)
class Stage:
    name: str
    status: str
    approver_id: Optional[int] = None
    role: Optional[str] = None

    def allows(self, actor):
        if self.approver_id is not None and actor.id == self.approver_id:
            return True
        return bool(self.role) and self.role in actor.roles

    def to_snapshot(self):
        return {
            "name": self.name,
            "status": self.status,
            "approver_id": self.approver_id,
            "role": self.role,
        }

    @classmethod
    def from_snapshot(cls, data):
        return cls(
            name=data["name"],
            status=data["status"],
            approver_id=data.get("approver_id"),
            role=data.get("role") or None,
        )


@dataclass(frozen=True)
class StageChain:
    stages: Tuple[Stage, ...]
    start_in_draft: bool = False
    expires_in_hours: Optional[int] = None

    def __post_init__(self):
        if not self.stages:
            raise ConfigurationError("The approval chain has no stages.")

        names = [s.name for s in self.stages]
        statuses = [s.status for s in self.stages]
        if len(set(names)) != len(names) or len(set(statuses)) != len(statuses):
            raise ConfigurationError("Stage names and statuses must be unique within a chain.")

        for status in statuses:
            if not is_pending(status) or status in TERMINAL_STATUSES:
                raise ConfigurationError(f"'{status}' is not a valid pending status.")

    def __len__(self):
        return len(self.stages)

    def to_snapshot(self):
        return {
            "start_in_draft": self.start_in_draft,
            "expires_in_hours": self.expires_in_hours,
            "stages": [s.to_snapshot() for s in self.stages],
        }

    @classmethod
    def from_snapshot(cls, data):
        return cls(
            stages=tuple(Stage.from_snapshot(s) for s in data.get("stages", [])),
            start_in_draft=bool(data.get("start_in_draft", False)),
            expires_in_hours=data.get("expires_in_hours"),
        )


def _to_user_id(value, where):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigurationError(f"{where} must be a user id, got {value!r}.")


def parse_chain(request_type, raw, config_values, default_expires_hours=None):
    """
    Turn a chain definition (JSON text, list of stages or {"stages": [...]}) into a
    StageChain with every approver resolved against the config values.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ConfigurationError(f"Approval chain for '{request_type}' is not valid JSON.")

    if isinstance(raw, list):
        raw = {"stages": raw}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Approval chain for '{request_type}' must be a list or an object.")

    stages = []
    for entry in raw.get("stages") or []:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Stages of '{request_type}' must be objects.")
        name = str(entry.get("name") or "").strip()
        if not name:
            raise ConfigurationError(f"Every stage of '{request_type}' needs a name.")

        given = [key for key in _SELECTORS if entry.get(key) not in (None, "")]
        if len(given) != 1:
            raise ConfigurationError(
                f"Stage '{name}' of '{request_type}' needs exactly one of approver_id, approver_key or role."
            )

        approver_id = None
        role = None
        if given[0] == "approver_id":
            approver_id = _to_user_id(entry["approver_id"], f"approver_id of stage '{name}'")
        elif given[0] == "approver_key":
            key = entry["approver_key"]
            value = config_values.get(key)
            if value in (None, ""):
                raise ConfigurationError(
                    f"Stage '{name}' of '{request_type}' has no approver: config '{key}' is not set."
                )
            approver_id = _to_user_id(value, f"config '{key}'")
        else:
            role = str(entry["role"]).strip()

        stages.append(Stage(
            name=name,
            status=entry.get("status") or stage_status(name),
            approver_id=approver_id,
            role=role,
        ))

    if not stages:
        raise ConfigurationError(f"No approval stages are configured for '{request_type}'.")

    expires = raw["expires_in_hours"] if "expires_in_hours" in raw else default_expires_hours
    return StageChain(
        stages=tuple(stages),
        start_in_draft=bool(raw.get("start_in_draft", False)),
        expires_in_hours=int(expires) if expires else None,
    )


@dataclass(frozen=True)
class Transition:
    action: str
    old_status: str
    new_status: str
    actor_role: str
    stage_index: Optional[int] = None
    stage: Optional[Stage] = None

    @property
    def label(self):
        return ACTION_LABELS.get(self.action, self.action)


class ApprovalWorkflow:
    """
    Decision maker for one approval request.
    Works only with status, stage chain and actor; never touches the database.
    """

    def __init__(self, status, chain):
        self.status = getattr(status, "value", status)
        self.chain = chain

    # --------------------------------------------------------
    # where are we in the chain
    # --------------------------------------------------------
    def current_index(self):
        for index, stage in enumerate(self.chain.stages):
            if stage.status == self.status:
                return index
        return None

    def current_step(self):
        index = self.current_index()
        return None if index is None else self.chain.stages[index]

    def initial_status(self):
        if self.chain.start_in_draft:
            return ApprovalStatus.DRAFT.value
        return self.chain.stages[0].status

    # --------------------------------------------------------
    # permission checks
    # --------------------------------------------------------
    def can_approve(self, actor):
        stage = self.current_step()
        return stage is not None and stage.allows(actor)

    def can_cancel(self, actor, requester_id):
        return is_pending(self.status) and (actor.is_admin or actor.id == requester_id)

    # --------------------------------------------------------
    # transitions
    # --------------------------------------------------------
    def create(self):
        new_status = self.initial_status()
        index = None if new_status == ApprovalStatus.DRAFT.value else 0
        return Transition(
            action=ACTION_CREATE,
            old_status="",
            new_status=new_status,
            actor_role=ActorRole.REQUESTER.value,
            stage_index=index,
            stage=None if index is None else self.chain.stages[0],
        )

    def submit(self, actor, requester_id):
        if self.status != ApprovalStatus.DRAFT.value:
            raise InvalidStateError(f"Only drafts can be submitted (status is '{self.status}').")
        if actor.id != requester_id and not actor.is_admin:
            raise ForbiddenError("Only the requester can submit this draft.")

        first = self.chain.stages[0]
        return Transition(
            action=ACTION_SUBMIT,
            old_status=self.status,
            new_status=first.status,
            actor_role=self._owner_role(actor, requester_id),
            stage_index=0,
            stage=first,
        )

    def approve(self, actor):
        index = self._pending_index()
        stage = self.chain.stages[index]
        if not stage.allows(actor):
            raise ForbiddenError(f"You are not the approver of the '{stage.name}' stage.")

        if index + 1 < len(self.chain):
            new_status = self.chain.stages[index + 1].status
        else:
            new_status = ApprovalStatus.APPROVED.value

        return Transition(
            action=ACTION_APPROVE,
            old_status=self.status,
            new_status=new_status,
            actor_role=stage.name,
            stage_index=index,
            stage=stage,
        )

    def reject(self, actor, reason):
        if not (reason or "").strip():
            raise ValidationError("A reject reason is required.")

        index = self._pending_index()
        stage = self.chain.stages[index]
        if not stage.allows(actor):
            raise ForbiddenError(f"You are not the approver of the '{stage.name}' stage.")

        return Transition(
            action=ACTION_REJECT,
            old_status=self.status,
            new_status=ApprovalStatus.REJECTED.value,
            actor_role=stage.name,
            stage_index=index,
            stage=stage,
        )

    def cancel(self, actor, requester_id):
        index = self._pending_index()
        if not self.can_cancel(actor, requester_id):
            raise ForbiddenError("Only the requester can cancel this request.")

        return Transition(
            action=ACTION_CANCEL,
            old_status=self.status,
            new_status=ApprovalStatus.CANCELLED.value,
            actor_role=self._owner_role(actor, requester_id),
            stage_index=index,
            stage=self.chain.stages[index],
        )

    def expire(self, expires_at, now):
        index = self._pending_index()
        if expires_at is None or expires_at > now:
            raise InvalidStateError("The request has not reached its deadline.")

        return Transition(
            action=ACTION_EXPIRE,
            old_status=self.status,
            new_status=ApprovalStatus.EXPIRED.value,
            actor_role=ActorRole.SYSTEM.value,
            stage_index=index,
            stage=self.chain.stages[index],
        )

    # --------------------------------------------------------
    def _pending_index(self):
        if not is_pending(self.status):
            raise InvalidStateError(f"The request is already '{self.status}'.")
        index = self.current_index()
        if index is None:
            raise InvalidStateError(f"Status '{self.status}' is not part of this request's chain.")
        return index

    @staticmethod
    def _owner_role(actor, requester_id):
        if actor.id == requester_id:
            return ActorRole.REQUESTER.value
        return ActorRole.ADMIN.value


__all__ = [
    "Stage",
    "StageChain",
    "Transition",
    "ApprovalWorkflow",
    "parse_chain",
    "ACTION_LABELS",
]
