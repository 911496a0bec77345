# core/approval/workflow_engine.py
import json
import logging
from datetime import timedelta

from dateutil import parser as date_parser
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.serializers.json import DjangoJSONEncoder
from django.db import IntegrityError, transaction
from django.db.models import Case, F, IntegerField, Q, Value, When
from django.utils import timezone

from core.approval.exceptions import (
    ApprovalError,
    ConfigurationError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from core.approval.roles import SYSTEM_ACTOR, actor_from_user
from core.approval.statuses import PENDING, is_pending
from core.approval.workflow import (
    ACTION_APPROVE,
    ACTION_CANCEL,
    ACTION_EXPIRE,
    ACTION_REJECT,
    ACTION_SUBMIT,
    ApprovalWorkflow,
    StageChain,
)
from core.constants import Settings
from core.forms.approval_forms import validate_payload
from core.models import ApprovalHistory, ApprovalRequest, ApprovalStageDecision
from core.services.access import inbox_q, pending_q, user_roles, visible_requests
from core.services.config import ConfigSnapshot
from core.services.pagination import paginate

logger = logging.getLogger(__name__)

User = get_user_model()

REQUEST_NO_ATTEMPTS = 3


class WorkflowEngine:
    """
    Runs approval requests through their stage chain:
    1) takes the decision from ApprovalWorkflow (pure, no database)
    2) applies it to the stored request with a version compare-and-swap
    3) appends the history row (and the stage decision for approve / reject)

    Notifications and subject side effects are not triggered here; route
    handlers call core.services.hooks after a successful transition.
    """

    def __init__(self, config=None):
        self.config = config if config is not None else ConfigSnapshot.load()

    def actor(self, user):
        return actor_from_user(user, self.config.admin_group)

    # ---------------------------------------
    # create
    # ---------------------------------------
    def create(self, request_type, subject_type, subject_id, requester, payload=None,
               title="", priority=ApprovalRequest.Priority.NORMAL):
        request_type = (request_type or "").strip()
        if not request_type:
            raise ValidationError("requestType is required.")
        if requester is None:
            raise ValidationError("A requester is required.")
        self._check_subject(request_type, subject_type)

        chain = self.config.chain_for(request_type)
        self._check_approvers_exist(chain)
        payload = self._json_safe(validate_payload(request_type, payload))

        transition = ApprovalWorkflow("", chain).create()
        actor = self.actor(requester)
        now = timezone.now()

        fields = dict(
            request_type=request_type,
            title=title or "",
            subject_type=subject_type,
            subject_id=str(subject_id),
            payload=payload,
            priority=priority or ApprovalRequest.Priority.NORMAL,
            status=transition.new_status,
            stage_chain=chain.to_snapshot(),
            requester=requester,
            requester_name=actor.name,
            created_at=now,
            updated_at=now,
        )
        if transition.stage is not None:
            fields.update(self._stage_fields(transition.stage_index, transition.stage))
            fields["submitted_at"] = now
            fields["expires_at"] = self._deadline(chain, now)

        with transaction.atomic():
            req = self._insert_with_request_no(fields, now)
            self._record(req, transition, actor, requester, "", now)

        logger.info(
            "approval %s created: type=%s status=%s requester=%s",
            req.request_no, request_type, req.status, actor.id,
        )
        return req

    # ---------------------------------------
    # transitions
    # ---------------------------------------
    def submit(self, request_id, user, expected_version=None):
        def decide(workflow, actor, req):
            return workflow.submit(actor, req.requester_id)
        return self._transition(request_id, user, decide, "", expected_version)

    def approve(self, request_id, user, comment="", expected_version=None):
        def decide(workflow, actor, req):
            return workflow.approve(actor)
        return self._transition(request_id, user, decide, comment or "", expected_version)

    def reject(self, request_id, user, reason, expected_version=None):
        def decide(workflow, actor, req):
            return workflow.reject(actor, reason)
        return self._transition(request_id, user, decide, (reason or "").strip(), expected_version)

    def cancel(self, request_id, user, reason="", expected_version=None):
        def decide(workflow, actor, req):
            return workflow.cancel(actor, req.requester_id)
        return self._transition(request_id, user, decide, (reason or "").strip(), expected_version)

    def expire(self, request_id, now=None):
        now = now or timezone.now()

        def decide(workflow, actor, req):
            return workflow.expire(req.expires_at, now)
        return self._transition(request_id, None, decide, "Approval deadline passed.", None, now=now)

    def expire_overdue(self, now=None, then=None):
        """
        Expire every pending request whose deadline is at or before `now`.

        `then(req)` runs in the same transaction as each expiry, so a failing
        follow-up rolls that expiry back and the sweep moves on.
        """
        now = now or timezone.now()
        due = list(
            ApprovalRequest.objects
            .filter(pending_q(), expires_at__isnull=False, expires_at__lte=now)
            .order_by("expires_at", "id")
            .values_list("id", flat=True)
        )

        expired = []
        for request_id in due:
            try:
                with transaction.atomic():
                    req = self.expire(request_id, now=now)
                    if then is not None:
                        then(req)
            except InvalidStateError as exc:
                # moved on (approved / cancelled) since the id list was read
                logger.info("approval %s skipped by expiry sweep: %s", request_id, exc.message)
                continue
            except ApprovalError as exc:
                logger.warning("approval %s not expired: %s", request_id, exc.message)
                continue
            expired.append(req)
        return expired

    # ---------------------------------------
    # reads
    # ---------------------------------------
    def get(self, request_id):
        try:
            return (
                ApprovalRequest.objects
                .select_related("requester", "current_approver")
                .get(pk=int(request_id))
            )
        except (ApprovalRequest.DoesNotExist, TypeError, ValueError):
            raise NotFoundError(f"Approval request {request_id} not found.")

    def get_for(self, request_id, user):
        """Like get(), but only for requests the user may read."""
        req = self.get(request_id)
        if not visible_requests(self.actor(user)).filter(pk=req.pk).exists():
            raise ForbiddenError("You cannot view this approval request.")
        return req

    def get_history(self, request_id):
        req = self.get(request_id)
        return list(req.history.select_related("actor").order_by("created_at", "id"))

    def get_decisions(self, req):
        return list(req.decisions.select_related("approver").order_by("stage_index"))

    def inbox(self, user, approver_id=None):
        """Pending requests waiting on the user (admins: all of them unless approver_id is given)."""
        actor = self.actor(user)
        qs = ApprovalRequest.objects.filter(pending_q())

        if approver_id not in (None, ""):
            try:
                approver_id = int(approver_id)
            except (TypeError, ValueError):
                raise ValidationError("approverId must be an integer.")
            if approver_id != actor.id and not actor.is_admin:
                raise ForbiddenError("You can only see your own approval inbox.")
            try:
                roles = user_roles(approver_id)
            except User.DoesNotExist:
                raise ValidationError(f"Unknown approver {approver_id}.")
            return qs.filter(inbox_q(approver_id, roles))

        if actor.is_admin:
            return qs
        return qs.filter(inbox_q(actor.id, actor.roles))

    def get_pending(self, user, request_type=None, approver_id=None, page=None, page_size=None):
        qs = self.inbox(user, approver_id=approver_id)
        if request_type:
            qs = qs.filter(request_type=request_type)
        qs = self._queue_order(qs).select_related("requester", "current_approver")
        return paginate(qs, page, page_size)

    def list_requests(self, user, status=None, request_type=None, priority=None, search=None,
                      created_from=None, created_to=None, requester_id=None,
                      approver_id=None, page=None, page_size=None):
        if approver_id not in (None, ""):
            # what that approver has to decide now
            qs = self.inbox(user, approver_id=approver_id)
        else:
            qs = visible_requests(self.actor(user))

        if status == PENDING:
            qs = qs.filter(pending_q())
        elif status:
            qs = qs.filter(status=status)
        if request_type:
            qs = qs.filter(request_type=request_type)
        if priority:
            qs = qs.filter(priority=priority)
        if requester_id not in (None, ""):
            try:
                qs = qs.filter(requester_id=int(requester_id))
            except (TypeError, ValueError):
                raise ValidationError("userId must be an integer.")
        if search:
            search = search.strip()
            qs = qs.filter(
                Q(request_no__icontains=search)
                | Q(title__icontains=search)
                | Q(requester_name__icontains=search)
            )
        if created_from:
            qs = qs.filter(created_at__date__gte=self._parse_date(created_from, "createdFrom"))
        if created_to:
            qs = qs.filter(created_at__date__lte=self._parse_date(created_to, "createdTo"))

        qs = qs.select_related("requester", "current_approver").order_by("-created_at", "-id")
        return paginate(qs, page, page_size)

    def my_requests(self, user, **filters):
        filters["requester_id"] = user.pk
        return self.list_requests(user, **filters)

    # ---------------------------------------
    # internals
    # ---------------------------------------
    def _transition(self, request_id, user, decide, comment, expected_version, now=None):
        actor = SYSTEM_ACTOR if user is None else self.actor(user)

        with transaction.atomic():
            req = self._load_for_update(request_id)
            if expected_version not in (None, ""):
                try:
                    expected_version = int(expected_version)
                except (TypeError, ValueError):
                    raise ValidationError("version must be an integer.")
                if expected_version != req.version:
                    raise InvalidStateError(
                        f"Request {req.request_no} was changed (version {req.version}, "
                        f"expected {expected_version})."
                    )

            chain = StageChain.from_snapshot(req.stage_chain)
            transition = decide(ApprovalWorkflow(req.status, chain), actor, req)

            now = now or timezone.now()
            fields = self._fields_for(transition, chain, comment, now)
            self._compare_and_swap(req, transition, fields, now)

            if transition.action in (ACTION_APPROVE, ACTION_REJECT):
                ApprovalStageDecision.objects.create(
                    request=req,
                    stage_index=transition.stage_index,
                    stage_name=transition.stage.name,
                    decision=(
                        ApprovalStageDecision.DECISION_APPROVE
                        if transition.action == ACTION_APPROVE
                        else ApprovalStageDecision.DECISION_REJECT
                    ),
                    approver=user,
                    approver_name=actor.name,
                    comment=comment,
                    decided_at=now,
                )
            self._record(req, transition, actor, user, comment, now)

        logger.info(
            "approval %s %s: %s -> %s by %s",
            req.request_no, transition.action, transition.old_status,
            transition.new_status, actor.id if actor.id is not None else "system",
        )
        return req

    def _load_for_update(self, request_id):
        try:
            return ApprovalRequest.objects.select_for_update().get(pk=int(request_id))
        except (ApprovalRequest.DoesNotExist, TypeError, ValueError):
            raise NotFoundError(f"Approval request {request_id} not found.")

    def _compare_and_swap(self, req, transition, fields, now):
        updated = (
            ApprovalRequest.objects
            .filter(pk=req.pk, version=req.version, status=transition.old_status)
            .update(version=F("version") + 1, status=transition.new_status, updated_at=now, **fields)
        )
        if not updated:
            raise InvalidStateError(
                f"Request {req.request_no} was already processed by someone else."
            )
        req.refresh_from_db()

    def _fields_for(self, transition, chain, comment, now):
        action = transition.action

        if action == ACTION_SUBMIT:
            fields = self._stage_fields(transition.stage_index, transition.stage)
            fields.update(submitted_at=now, expires_at=self._deadline(chain, now))
            return fields

        if action == ACTION_APPROVE and is_pending(transition.new_status):
            index = transition.stage_index + 1
            return self._stage_fields(index, chain.stages[index])

        fields = self._stage_fields(None, None)
        if action == ACTION_APPROVE:
            fields["approved_at"] = now
        elif action == ACTION_REJECT:
            fields.update(reject_reason=comment, rejected_at=now)
        elif action == ACTION_CANCEL:
            fields.update(cancel_reason=comment, cancelled_at=now)
        elif action == ACTION_EXPIRE:
            fields["expired_at"] = now
        return fields

    @staticmethod
    def _stage_fields(index, stage):
        if stage is None:
            return {"current_stage": None, "current_approver_id": None, "current_approver_role": ""}
        return {
            "current_stage": index,
            "current_approver_id": stage.approver_id,
            "current_approver_role": stage.role or "",
        }

    @staticmethod
    def _record(req, transition, actor, user, comment, now):
        return ApprovalHistory.objects.create(
            request=req,
            action=transition.action,
            action_name=transition.label,
            actor=user,
            actor_name=actor.name,
            actor_role=transition.actor_role,
            comment=comment or "",
            old_status=transition.old_status,
            new_status=transition.new_status,
            created_at=now,
        )

    @staticmethod
    def _deadline(chain, now):
        if not chain.expires_in_hours:
            return None
        return now + timedelta(hours=chain.expires_in_hours)

    @staticmethod
    def _check_subject(request_type, subject_type):
        expected = Settings.REQUEST_TYPE_SUBJECTS.get(request_type)
        if expected and subject_type != expected:
            raise ValidationError(
                f"A '{request_type}' request must point at a {expected}, not a {subject_type or 'nothing'}."
            )
        owner = Settings.EXCLUSIVE_SUBJECTS.get(subject_type)
        if owner and owner != request_type:
            raise ValidationError(f"Only '{owner}' requests can point at a {subject_type}.")

    @staticmethod
    def _check_approvers_exist(chain):
        ids = {s.approver_id for s in chain.stages if s.approver_id is not None}
        if not ids:
            return
        found = set(User.objects.filter(pk__in=ids, is_active=True).values_list("pk", flat=True))
        missing = sorted(ids - found)
        if missing:
            raise ConfigurationError(f"Configured approver(s) {missing} do not exist or are inactive.")

    @staticmethod
    def _json_safe(payload):
        # Decimal / date values from the payload forms
        return json.loads(json.dumps(payload, cls=DjangoJSONEncoder))

    def _insert_with_request_no(self, fields, now):
        for attempt in range(1, REQUEST_NO_ATTEMPTS + 1):
            try:
                with transaction.atomic():
                    return ApprovalRequest.objects.create(request_no=self._next_request_no(now), **fields)
            except IntegrityError:
                if attempt == REQUEST_NO_ATTEMPTS:
                    raise
                logger.warning("request number collision, retrying (%s/%s)", attempt, REQUEST_NO_ATTEMPTS)

    @staticmethod
    def _next_request_no(now):
        """<prefix><yyyymmdd><4-digit daily sequence>, e.g. APR202610180007."""
        stem = f"{settings.APPROVAL_REQUEST_NO_PREFIX}{timezone.localtime(now):%Y%m%d}"
        last = (
            ApprovalRequest.objects
            .filter(request_no__startswith=stem)
            .order_by("-request_no")
            .values_list("request_no", flat=True)
            .first()
        )
        seq = 1
        if last:
            tail = last[len(stem):]
            seq = int(tail) + 1 if tail.isdigit() else 1
        return f"{stem}{seq:04d}"

    @staticmethod
    def _queue_order(qs):
        rank = Case(
            *[When(priority=p, then=Value(r)) for p, r in ApprovalRequest.PRIORITY_RANK.items()],
            default=Value(len(ApprovalRequest.PRIORITY_RANK) + 1),
            output_field=IntegerField(),
        )
        return qs.annotate(priority_rank=rank).order_by("priority_rank", "created_at", "id")

    @staticmethod
    def _parse_date(value, name):
        try:
            return date_parser.parse(value).date()
        except (ValueError, OverflowError, TypeError):
            raise ValidationError(f"{name} is not a valid date.")


__all__ = ["WorkflowEngine"]
