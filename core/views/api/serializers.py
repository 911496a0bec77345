# core/views/api/serializers.py
from core.approval.signatures import stage_signoffs
from core.approval.workflow import StageChain
from core.constants import Settings


def _stage_name(req):
    if req.current_stage is None:
        return None
    stages = (req.stage_chain or {}).get("stages") or []
    if req.current_stage < len(stages):
        return stages[req.current_stage]["name"]
    return None


def serialize_history(row):
    return {
        "id": row.id,
        "requestId": row.request_id,
        "action": row.action,
        "actionName": row.action_name,
        "actorId": row.actor_id,
        "actorName": row.actor_name,
        "actorRole": row.actor_role,
        "comment": row.comment,
        "oldStatus": row.old_status or None,
        "newStatus": row.new_status,
        "createdAt": row.created_at,
    }


def serialize_request(req, history=None, decisions=None):
    data = {
        "id": req.id,
        "requestNo": req.request_no,
        "requestType": req.request_type,
        "requestTypeName": Settings.REQUEST_TYPE_LABELS.get(req.request_type, req.request_type),
        "title": req.title,
        "subjectType": req.subject_type,
        "subjectId": req.subject_id,
        "payload": req.payload,
        "priority": req.priority,
        "status": req.status,
        "currentStage": req.current_stage,
        "currentStageName": _stage_name(req),
        "currentApproverId": req.current_approver_id,
        "currentApproverRole": req.current_approver_role or None,
        "stages": [
            {"name": s.name, "status": s.status, "approverId": s.approver_id, "role": s.role}
            for s in StageChain.from_snapshot(req.stage_chain).stages
        ],
        "requesterId": req.requester_id,
        "requesterName": req.requester_name,
        "rejectReason": req.reject_reason or None,
        "cancelReason": req.cancel_reason or None,
        "version": req.version,
        "createdAt": req.created_at,
        "updatedAt": req.updated_at,
        "submittedAt": req.submitted_at,
        "approvedAt": req.approved_at,
        "rejectedAt": req.rejected_at,
        "cancelledAt": req.cancelled_at,
        "expiredAt": req.expired_at,
        "expiresAt": req.expires_at,
        "isExecuted": req.is_executed,
        "executedAt": req.executed_at,
        "executionResult": req.execution_result,
    }
    if decisions is not None:
        data.update(stage_signoffs(req.stage_chain, decisions))
    if history is not None:
        data["history"] = [serialize_history(h) for h in history]
    return data


def serialize_void_application(req, bill=None, decisions=None, history=None):
    """Void-bill view of a request: the bill fields plus supervisor / finance sign-offs."""
    payload = req.payload or {}
    data = {
        "id": req.id,
        "applicationNo": req.request_no,
        "billId": int(req.subject_id) if req.subject_id.isdigit() else req.subject_id,
        "billNumber": bill.bill_number if bill else None,
        "containerNumber": bill.container_number if bill else None,
        "reason": payload.get("reason", ""),
        "fees": payload.get("fees", []),
        "priority": req.priority,
        "status": req.status,
        "applicantId": req.requester_id,
        "applicantName": req.requester_name,
        "currentApproverId": req.current_approver_id,
        "rejectReason": req.reject_reason or None,
        "version": req.version,
        "createdAt": req.created_at,
        "updatedAt": req.updated_at,
    }
    if decisions is not None:
        data.update(stage_signoffs(req.stage_chain, decisions))
    if history is not None:
        data["history"] = [serialize_history(h) for h in history]
    return data


def serialize_page(page, serializer):
    return {**page, "list": [serializer(item) for item in page["list"]]}


def serialize_config(obj):
    return {
        "key": obj.key,
        "value": obj.value,
        "description": obj.description,
        "updatedAt": obj.updated_at,
        "updatedBy": obj.updated_by_id,
    }


def serialize_notification(note):
    return {
        "id": note.id,
        "type": note.notification_type,
        "title": note.title,
        "content": note.content,
        "requestId": note.request_id,
        "requestNo": note.request.request_no if note.request_id else None,
        "isRead": note.is_read,
        "readAt": note.read_at,
        "createdAt": note.created_at,
    }
