"""
Decision rules of ApprovalWorkflow and chain parsing; no database involved.
"""
import json
from datetime import datetime, timedelta, timezone

from django.test import SimpleTestCase

from core.approval.exceptions import (
    ConfigurationError,
    ForbiddenError,
    InvalidStateError,
    ValidationError,
)
from core.approval.roles import SYSTEM_ACTOR, Actor
from core.approval.statuses import is_pending, is_terminal, stage_status
from core.approval.workflow import ApprovalWorkflow, Stage, StageChain, parse_chain

REQUESTER = Actor(id=1, name="Requester")
SUPERVISOR = Actor(id=2, name="Supervisor")
FINANCE = Actor(id=3, name="Finance")
ADMIN = Actor(id=9, name="Admin", roles=frozenset({"admin"}), is_admin=True)
REVIEWER = Actor(id=4, name="Reviewer", roles=frozenset({"contract_approver"}))


def two_stage_chain():
    return StageChain(stages=(
        Stage(name="supervisor", status="pending_supervisor", approver_id=2),
        Stage(name="finance", status="pending_finance", approver_id=3),
    ))


class StatusHelpersTest(SimpleTestCase):

    def test_pending_and_terminal(self):
        self.assertTrue(is_pending("pending"))
        self.assertTrue(is_pending(stage_status("finance")))
        self.assertFalse(is_pending("draft"))
        self.assertTrue(is_terminal("approved"))
        self.assertFalse(is_terminal("pending_finance"))


class ParseChainTest(SimpleTestCase):

    def test_resolves_approver_keys_from_config(self):
        chain = parse_chain(
            "void_bill",
            [{"name": "supervisor", "approver_key": "void_supervisor_id"},
             {"name": "finance", "approver_key": "void_finance_id"}],
            {"void_supervisor_id": "2", "void_finance_id": " 3 "},
        )
        self.assertEqual([s.status for s in chain.stages], ["pending_supervisor", "pending_finance"])
        self.assertEqual([s.approver_id for s in chain.stages], [2, 3])

    def test_accepts_json_text_with_options(self):
        raw = json.dumps({
            "start_in_draft": True,
            "expires_in_hours": 24,
            "stages": [{"name": "review", "status": "pending", "role": "contract_approver"}],
        })
        chain = parse_chain("contract", raw, {}, default_expires_hours=72)
        self.assertTrue(chain.start_in_draft)
        self.assertEqual(chain.expires_in_hours, 24)
        self.assertEqual(chain.stages[0].role, "contract_approver")

    def test_default_expiry_applies_only_when_not_given(self):
        chain = parse_chain("x", [{"name": "a", "approver_id": 1}], {}, default_expires_hours=72)
        self.assertEqual(chain.expires_in_hours, 72)
        chain = parse_chain("x", {"expires_in_hours": None, "stages": [{"name": "a", "approver_id": 1}]}, {}, 72)
        self.assertIsNone(chain.expires_in_hours)

    def test_configuration_errors(self):
        cases = {
            "empty": [],
            "bad json": "[{",
            "no selector": [{"name": "a"}],
            "two selectors": [{"name": "a", "approver_id": 1, "role": "x"}],
            "unset key": [{"name": "a", "approver_key": "void_supervisor_id"}],
            "not an id": [{"name": "a", "approver_id": "bob"}],
            "duplicate": [{"name": "a", "approver_id": 1}, {"name": "a", "approver_id": 2}],
            "terminal status": [{"name": "a", "status": "approved", "approver_id": 1}],
            "no name": [{"approver_id": 1}],
        }
        for label, raw in cases.items():
            with self.subTest(label):
                with self.assertRaises(ConfigurationError):
                    parse_chain("void_bill", raw, {})

    def test_snapshot_round_trip_keeps_stages(self):
        chain = two_stage_chain()
        self.assertEqual(StageChain.from_snapshot(chain.to_snapshot()), chain)


class ApprovalWorkflowTest(SimpleTestCase):

    def test_create_starts_at_first_stage(self):
        t = ApprovalWorkflow("", two_stage_chain()).create()
        self.assertEqual((t.old_status, t.new_status), ("", "pending_supervisor"))
        self.assertEqual(t.actor_role, "requester")

    def test_create_in_draft_when_configured(self):
        chain = StageChain(stages=(Stage("review", "pending", role="contract_approver"),), start_in_draft=True)
        t = ApprovalWorkflow("", chain).create()
        self.assertEqual(t.new_status, "draft")
        self.assertIsNone(t.stage)

    def test_approve_walks_the_chain(self):
        chain = two_stage_chain()
        t = ApprovalWorkflow("pending_supervisor", chain).approve(SUPERVISOR)
        self.assertEqual(t.new_status, "pending_finance")
        self.assertEqual(t.actor_role, "supervisor")

        t = ApprovalWorkflow("pending_finance", chain).approve(FINANCE)
        self.assertEqual(t.new_status, "approved")

    def test_only_current_stage_approver_may_decide(self):
        wf = ApprovalWorkflow("pending_supervisor", two_stage_chain())
        for actor in (FINANCE, REQUESTER, ADMIN):
            with self.subTest(actor=actor.name):
                with self.assertRaises(ForbiddenError):
                    wf.approve(actor)
                with self.assertRaises(ForbiddenError):
                    wf.reject(actor, "no")

    def test_role_stage_accepts_group_members(self):
        chain = StageChain(stages=(Stage("review", "pending", role="contract_approver"),))
        self.assertTrue(ApprovalWorkflow("pending", chain).can_approve(REVIEWER))
        self.assertFalse(ApprovalWorkflow("pending", chain).can_approve(SUPERVISOR))

    def test_terminal_states_refuse_everything(self):
        chain = two_stage_chain()
        for status in ("approved", "rejected", "cancelled", "expired"):
            wf = ApprovalWorkflow(status, chain)
            with self.subTest(status=status):
                with self.assertRaises(InvalidStateError):
                    wf.approve(SUPERVISOR)
                with self.assertRaises(InvalidStateError):
                    wf.reject(SUPERVISOR, "late")
                with self.assertRaises(InvalidStateError):
                    wf.cancel(REQUESTER, REQUESTER.id)

    def test_reject_needs_a_reason(self):
        wf = ApprovalWorkflow("pending_supervisor", two_stage_chain())
        for reason in ("", "   ", None):
            with self.assertRaises(ValidationError):
                wf.reject(SUPERVISOR, reason)
        self.assertEqual(wf.reject(SUPERVISOR, "wrong bill").new_status, "rejected")

    def test_cancel_by_requester_or_admin(self):
        wf = ApprovalWorkflow("pending_finance", two_stage_chain())
        self.assertEqual(wf.cancel(REQUESTER, REQUESTER.id).actor_role, "requester")
        self.assertEqual(wf.cancel(ADMIN, REQUESTER.id).actor_role, "admin")
        with self.assertRaises(ForbiddenError):
            wf.cancel(SUPERVISOR, REQUESTER.id)

    def test_submit_only_from_draft(self):
        chain = StageChain(stages=(Stage("review", "pending", role="contract_approver"),), start_in_draft=True)
        self.assertEqual(ApprovalWorkflow("draft", chain).submit(REQUESTER, REQUESTER.id).new_status, "pending")
        with self.assertRaises(ForbiddenError):
            ApprovalWorkflow("draft", chain).submit(REVIEWER, REQUESTER.id)
        with self.assertRaises(InvalidStateError):
            ApprovalWorkflow("pending", chain).submit(REQUESTER, REQUESTER.id)
        with self.assertRaises(InvalidStateError):
            ApprovalWorkflow("draft", chain).cancel(REQUESTER, REQUESTER.id)

    def test_expire_after_deadline(self):
        now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
        wf = ApprovalWorkflow("pending_supervisor", two_stage_chain())

        t = wf.expire(now - timedelta(minutes=1), now)
        self.assertEqual((t.new_status, t.actor_role), ("expired", "system"))
        with self.assertRaises(InvalidStateError):
            wf.expire(now + timedelta(hours=1), now)
        with self.assertRaises(InvalidStateError):
            wf.expire(None, now)

    def test_system_actor_cannot_approve(self):
        with self.assertRaises(ForbiddenError):
            ApprovalWorkflow("pending_supervisor", two_stage_chain()).approve(SYSTEM_ACTOR)
