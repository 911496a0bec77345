# core/views/api/approvals.py
from django.db import transaction
from django.views.decorators.http import require_http_methods

from core.approval.exceptions import ValidationError
from core.approval.workflow import (
    ACTION_APPROVE,
    ACTION_CANCEL,
    ACTION_CREATE,
    ACTION_REJECT,
    ACTION_SUBMIT,
)
from core.approval.workflow_engine import WorkflowEngine
from core.forms.approval_forms import ApprovalCreateForm, form_errors
from core.services.config import ConfigSnapshot
from core.services.hooks import after_transition
from core.services.notifications import pending_count
from core.services.subjects import subject_handler

from .envelope import api_view, ok, read_json
from .serializers import serialize_history, serialize_page, serialize_request


def list_filters(params):
    """Query-string filters shared by the list endpoints."""
    return {
        "status": params.get("status") or None,
        "request_type": params.get("requestType") or None,
        "priority": params.get("priority") or None,
        "search": params.get("search") or None,
        "created_from": params.get("createdFrom") or None,
        "created_to": params.get("createdTo") or None,
        "page": params.get("page"),
        "page_size": params.get("pageSize"),
    }


# ---------------------------------------
# /api/approvals
# ---------------------------------------
@require_http_methods(["GET", "POST"])
@api_view
def approvals_collection(request):
    engine = WorkflowEngine()

    if request.method == "GET":
        page = engine.list_requests(request.user, **list_filters(request.GET))
        return ok(serialize_page(page, serialize_request))

    body = read_json(request)
    form = ApprovalCreateForm(data=body)
    if not form.is_valid():
        form_errors(form)
    cd = form.cleaned_data

    with transaction.atomic():
        subject_handler(cd["subjectType"], cd["requestType"]).before_create(cd["requestType"], cd["subjectId"])
        req = engine.create(
            request_type=cd["requestType"],
            subject_type=cd["subjectType"],
            subject_id=cd["subjectId"],
            requester=request.user,
            payload=body.get("payload"),
            title=cd["title"],
            priority=cd["priority"],
        )
        after_transition(req, ACTION_CREATE, engine.config)
    return ok(serialize_request(req), msg="Request created.")


@require_http_methods(["GET"])
@api_view
def pending_list(request):
    engine = WorkflowEngine()
    page = engine.get_pending(
        request.user,
        request_type=request.GET.get("requestType") or None,
        approver_id=request.GET.get("approverId"),
        page=request.GET.get("page"),
        page_size=request.GET.get("pageSize"),
    )
    return ok(serialize_page(page, serialize_request))


@require_http_methods(["GET"])
@api_view
def pending_count_view(request):
    return ok({"count": pending_count(request.user)})


@require_http_methods(["GET"])
@api_view
def approval_requirement(request):
    """Whether an operation (requestType, optional amount) has to be sent for approval."""
    request_type = (request.GET.get("requestType") or "").strip()
    if not request_type:
        raise ValidationError("requestType is required.")
    config = ConfigSnapshot.load()
    return ok({
        "requestType": request_type,
        "required": config.requires_approval(request_type, amount=request.GET.get("amount")),
    })


@require_http_methods(["GET"])
@api_view
def my_requests(request):
    engine = WorkflowEngine()
    page = engine.my_requests(request.user, **list_filters(request.GET))
    return ok(serialize_page(page, serialize_request))


# ---------------------------------------
# /api/approvals/<id>
# ---------------------------------------
@require_http_methods(["GET"])
@api_view
def approval_detail(request, pk):
    engine = WorkflowEngine()
    req = engine.get_for(pk, request.user)
    return ok(serialize_request(
        req,
        history=engine.get_history(req.pk),
        decisions=engine.get_decisions(req),
    ))


@require_http_methods(["GET"])
@api_view
def approval_history(request, pk):
    engine = WorkflowEngine()
    engine.get_for(pk, request.user)
    return ok([serialize_history(h) for h in engine.get_history(pk)])


def _run(request, pk, action):
    engine = WorkflowEngine()
    body = read_json(request)
    version = body.get("version")

    # a failing follow-up rolls the transition back with it
    with transaction.atomic():
        if action == ACTION_SUBMIT:
            req = engine.submit(pk, request.user, expected_version=version)
        elif action == ACTION_APPROVE:
            req = engine.approve(pk, request.user, body.get("comment") or "", expected_version=version)
        elif action == ACTION_REJECT:
            req = engine.reject(pk, request.user, body.get("reason") or "", expected_version=version)
        else:
            req = engine.cancel(pk, request.user, body.get("reason") or "", expected_version=version)
        after_transition(req, action, engine.config)

    return ok(serialize_request(req, decisions=engine.get_decisions(req)))


@require_http_methods(["POST"])
@api_view
def approval_submit(request, pk):
    return _run(request, pk, ACTION_SUBMIT)


@require_http_methods(["POST"])
@api_view
def approval_approve(request, pk):
    return _run(request, pk, ACTION_APPROVE)


@require_http_methods(["POST"])
@api_view
def approval_reject(request, pk):
    return _run(request, pk, ACTION_REJECT)


@require_http_methods(["POST"])
@api_view
def approval_cancel(request, pk):
    return _run(request, pk, ACTION_CANCEL)
