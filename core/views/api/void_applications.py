# core/views/api/void_applications.py
"""
Void-bill variant of the approval endpoints.

A void application is an approval request of type "void_bill" whose
subject is a bill of lading; it runs through the supervisor -> finance
chain configured by void_supervisor_id / void_finance_id. The list's
userId filter is that user's approval inbox (what they must decide now).
"""
from django.db import transaction
from django.views.decorators.http import require_http_methods

from core.approval.exceptions import NotFoundError
from core.approval.workflow import ACTION_APPROVE, ACTION_CREATE, ACTION_REJECT
from core.approval.workflow_engine import WorkflowEngine
from core.constants import Settings
from core.forms.approval_forms import VoidApplicationForm, form_errors
from core.models import BillOfLading
from core.services.hooks import after_transition
from core.services.subjects import subject_handler

from .envelope import api_view, ok, read_json
from .serializers import serialize_page, serialize_void_application


def _bill_for(req):
    return BillOfLading.objects.filter(pk=int(req.subject_id)).first() if req.subject_id.isdigit() else None


def _void_request(engine, pk, user=None):
    req = engine.get_for(pk, user) if user is not None else engine.get(pk)
    if req.request_type != Settings.REQUEST_TYPE_VOID_BILL:
        raise NotFoundError(f"Void application {pk} not found.")
    return req


def _render(engine, req, with_history=False):
    return serialize_void_application(
        req,
        bill=_bill_for(req),
        decisions=engine.get_decisions(req),
        history=engine.get_history(req.pk) if with_history else None,
    )


@require_http_methods(["POST"])
@api_view
def bill_void_application(request, bill_id):
    engine = WorkflowEngine()
    form = VoidApplicationForm(data=read_json(request))
    if not form.is_valid():
        form_errors(form)

    handler = subject_handler(Settings.SUBJECT_BILL, Settings.REQUEST_TYPE_VOID_BILL)
    with transaction.atomic():
        bill = handler.before_create(Settings.REQUEST_TYPE_VOID_BILL, bill_id)
        req = engine.create(
            request_type=Settings.REQUEST_TYPE_VOID_BILL,
            subject_type=Settings.SUBJECT_BILL,
            subject_id=bill.pk,
            requester=request.user,
            payload={"reason": form.cleaned_data["reason"], "fees": form.cleaned_data.get("fees")},
            title=f"Void bill {bill.bill_number}",
            priority=form.cleaned_data.get("priority") or None,
        )
        after_transition(req, ACTION_CREATE, engine.config)
    return ok(_render(engine, req), msg="Void application submitted.")


@require_http_methods(["GET"])
@api_view
def void_application_list(request):
    engine = WorkflowEngine()
    page = engine.list_requests(
        request.user,
        request_type=Settings.REQUEST_TYPE_VOID_BILL,
        status=request.GET.get("status") or None,
        approver_id=request.GET.get("userId"),
        page=request.GET.get("page"),
        page_size=request.GET.get("pageSize"),
    )
    return ok(serialize_page(page, lambda req: serialize_void_application(req, bill=_bill_for(req))))


@require_http_methods(["GET"])
@api_view
def void_application_detail(request, pk):
    engine = WorkflowEngine()
    req = _void_request(engine, pk, request.user)
    return ok(_render(engine, req, with_history=True))


@require_http_methods(["PUT"])
@api_view
def void_application_approve(request, pk):
    engine = WorkflowEngine()
    body = read_json(request)
    _void_request(engine, pk)

    with transaction.atomic():
        req = engine.approve(pk, request.user, body.get("comment") or "", expected_version=body.get("version"))
        after_transition(req, ACTION_APPROVE, engine.config)
    return ok(_render(engine, req))


@require_http_methods(["PUT"])
@api_view
def void_application_reject(request, pk):
    engine = WorkflowEngine()
    body = read_json(request)
    _void_request(engine, pk)

    reason = body.get("reason") or body.get("comment") or ""
    with transaction.atomic():
        req = engine.reject(pk, request.user, reason, expected_version=body.get("version"))
        after_transition(req, ACTION_REJECT, engine.config)
    return ok(_render(engine, req))
