# core/approval/signatures.py
"""
Per-stage sign-offs of a request, flattened for API responses.

Each stage of the chain contributes <stage>ApproverId, <stage>ApproverName,
<stage>ApprovedAt (or <stage>RejectedAt) and <stage>Comment, e.g.
supervisorApprovedAt / financeComment for void-bill applications.
Stages nobody has signed yet are reported with null values.
"""
from .workflow import StageChain


def _camel(name):
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def stage_signoffs(stage_chain, decisions):
    """stage_chain: the snapshot stored on the request; decisions: ApprovalStageDecision rows."""
    by_index = {d.stage_index: d for d in decisions}
    flat = {}

    for index, stage in enumerate(StageChain.from_snapshot(stage_chain).stages):
        key = _camel(stage.name)
        decision = by_index.get(index)

        flat[f"{key}ApproverId"] = decision.approver_id if decision else None
        flat[f"{key}ApproverName"] = decision.approver_name if decision else None
        flat[f"{key}Decision"] = decision.decision if decision else None
        flat[f"{key}Comment"] = decision.comment if decision else None
        flat[f"{key}ApprovedAt"] = (
            decision.decided_at if decision and decision.decision == "approve" else None
        )
        flat[f"{key}RejectedAt"] = (
            decision.decided_at if decision and decision.decision == "reject" else None
        )
    return flat
