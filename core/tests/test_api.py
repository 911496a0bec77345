"""
JSON endpoints: envelope, status codes and the post-transition collaborators.
"""
from unittest.mock import patch

from django.contrib.auth import get_user_model

from core.approval.exceptions import NotFoundError
from core.approval.workflow_engine import WorkflowEngine
from core.constants import Settings
from core.models import ApprovalRequest, Notification, SystemConfig
from core.services.config import set_config

from .helpers import ApiTestCase

User = get_user_model()


class EnvelopeTest(ApiTestCase):

    def test_anonymous_gets_401(self):
        resp = self.call("get", "/api/approvals")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["errCode"], 401)

    def test_success_envelope(self):
        body = self.call("get", "/api/approvals", self.requester).json()
        self.assertEqual(body["errCode"], 200)
        self.assertEqual(body["data"], {"list": [], "total": 0, "page": 1, "pageSize": 20})

    def test_engine_errors_map_to_err_codes(self):
        self.assertEqual(self.call("get", "/api/approvals/4242", self.requester).json()["errCode"], 404)
        self.assertEqual(self.call("get", "/api/approvals/pending?pageSize=abc", self.requester).json()["errCode"], 400)

    def test_malformed_json_is_a_validation_error(self):
        resp = self.client.generic("POST", "/api/approvals", "{oops", content_type="application/json")
        self.assertEqual(resp.json()["errCode"], 401)  # not logged in yet

        self.client.force_login(self.requester)
        resp = self.client.generic("POST", "/api/approvals", "{oops", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["errCode"], 400)

    def test_unexpected_errors_become_500(self):
        with patch.object(WorkflowEngine, "get_pending", side_effect=RuntimeError("db gone")):
            with self.assertLogs("core.views.api.envelope", level="ERROR"):
                body = self.call("get", "/api/approvals/pending", self.supervisor).json()
        self.assertEqual(body["errCode"], 500)
        self.assertNotIn("db gone", body["msg"])


class GenericApprovalApiTest(ApiTestCase):

    def _create_contract(self):
        resp = self.call("post", "/api/approvals", self.requester, {
            "requestType": "contract",
            "subjectType": "contract",
            "subjectId": "C-77",
            "title": "Customs contract ACME",
            "priority": "high",
            "payload": {"contract_no": "C-77", "customer_name": "ACME"},
        })
        body = resp.json()
        self.assertEqual(body["errCode"], 200, body)
        return body["data"]

    def test_create_submit_and_reject(self):
        reviewer = self._create_user("reviewer", groups=[Settings.ROLE_CONTRACT_APPROVER])
        data = self._create_contract()
        self.assertEqual(data["status"], "draft")
        self.assertEqual(data["priority"], "high")

        data = self.call("post", f"/api/approvals/{data['id']}/submit", self.requester, {}).json()["data"]
        self.assertEqual(data["status"], "pending")

        resp = self.call("post", f"/api/approvals/{data['id']}/reject", reviewer, {"reason": ""}).json()
        self.assertEqual(resp["errCode"], 400)

        data = self.call("post", f"/api/approvals/{data['id']}/reject", reviewer,
                         {"reason": "missing signature"}).json()["data"]
        self.assertEqual(data["status"], "rejected")
        self.assertEqual(data["rejectReason"], "missing signature")
        self.assertEqual(data["reviewDecision"], "reject")

        resp = self.call("post", f"/api/approvals/{data['id']}/approve", reviewer, {"comment": "ok"}).json()
        self.assertEqual(resp["errCode"], 409)

        self.assertTrue(Notification.objects.filter(
            user=self.requester, notification_type=Notification.TYPE_REJECTED,
        ).exists())

    def test_create_validation_errors(self):
        body = self.call("post", "/api/approvals", self.requester, {"requestType": "contract"}).json()
        self.assertEqual(body["errCode"], 400)
        self.assertIn("subjectId", body["details"])

        body = self.call("post", "/api/approvals", self.requester, {
            "requestType": "contract", "subjectType": "contract", "subjectId": "C-1", "payload": {},
        }).json()
        self.assertEqual(body["errCode"], 400)

    def test_unconfigured_type_is_500_configuration_error(self):
        body = self.call("post", "/api/approvals", self.requester, {
            "requestType": "freight_quote", "subjectType": "contract", "subjectId": "Q-1",
        }).json()
        self.assertEqual(body["errCode"], 500)
        self.assertIn("freight_quote", body["msg"])

    def test_detail_embeds_history(self):
        data = self._create_contract()
        detail = self.call("get", f"/api/approvals/{data['id']}", self.requester).json()["data"]
        self.assertEqual(len(detail["history"]), 1)
        self.assertEqual(detail["history"][0]["action"], "create")
        self.assertIsNone(detail["history"][0]["oldStatus"])

        history = self.call("get", f"/api/approvals/{data['id']}/history", self.requester).json()["data"]
        self.assertEqual(len(history), 1)

        self.assertEqual(self.call("get", f"/api/approvals/{data['id']}", self.outsider).json()["errCode"], 403)

    def test_cancel_by_other_user_is_forbidden(self):
        req = self._void_request(self.requester)
        body = self.call("post", f"/api/approvals/{req.pk}/cancel", self.outsider, {"reason": "no"}).json()
        self.assertEqual(body["errCode"], 403)

        body = self.call("post", f"/api/approvals/{req.pk}/cancel", self.requester, {"reason": "mistake"}).json()
        self.assertEqual(body["data"]["status"], "cancelled")

    def test_stale_version_is_409(self):
        req = self._void_request(self.requester)
        body = self.call("post", f"/api/approvals/{req.pk}/approve", self.supervisor,
                         {"comment": "ok", "version": 3}).json()
        self.assertEqual(body["errCode"], 409)

    def test_pending_my_and_count(self):
        req = self._void_request(self.requester)

        pending = self.call("get", "/api/approvals/pending", self.supervisor).json()["data"]
        self.assertEqual([item["id"] for item in pending["list"]], [req.pk])
        self.assertEqual(self.call("get", "/api/approvals/pending", self.finance).json()["data"]["total"], 0)
        self.assertEqual(
            self.call("get", f"/api/approvals/pending?approverId={self.supervisor.pk}", self.finance).json()["errCode"],
            403,
        )

        mine = self.call("get", "/api/approvals/my", self.requester).json()["data"]
        self.assertEqual(mine["total"], 1)

        count = self.call("get", "/api/approvals/pending/count", self.supervisor).json()["data"]["count"]
        self.assertEqual(count, 1)
        self.call("post", f"/api/approvals/{req.pk}/approve", self.supervisor, {"comment": "ok"})
        self.assertEqual(self.call("get", "/api/approvals/pending/count", self.supervisor).json()["data"]["count"], 0)
        self.assertEqual(self.call("get", "/api/approvals/pending/count", self.finance).json()["data"]["count"], 1)

    def test_approved_user_request_is_executed(self):
        body = self.call("post", "/api/approvals", self.requester, {
            "requestType": "user_create",
            "subjectType": "user",
            "subjectId": "new.clerk",
            "payload": {"username": "new.clerk", "email": "clerk@example.com", "role": "clerks"},
        }).json()
        self.assertEqual(body["errCode"], 200, body)
        self.assertEqual(body["data"]["status"], "pending")

        data = self.call("post", f"/api/approvals/{body['data']['id']}/approve", self.admin, {}).json()["data"]
        self.assertEqual(data["status"], "approved")

        req = ApprovalRequest.objects.get(pk=data["id"])
        self.assertTrue(req.is_executed)
        created = User.objects.get(username="new.clerk")
        self.assertEqual(req.execution_result["userId"], created.pk)
        self.assertTrue(created.groups.filter(name="clerks").exists())
        self.assertFalse(created.has_usable_password())

    def test_approved_user_delete_deactivates_the_user(self):
        body = self.call("post", "/api/approvals", self.requester, {
            "requestType": "user_delete", "subjectType": "user", "subjectId": str(self.outsider.pk),
            "payload": {"user_id": self.outsider.pk, "reason": "left the company"},
        }).json()
        self.assertEqual(body["errCode"], 200, body)

        data = self.call("post", f"/api/approvals/{body['data']['id']}/approve", self.admin, {}).json()["data"]
        self.assertEqual(data["status"], "approved")

        self.outsider.refresh_from_db()
        self.assertFalse(self.outsider.is_active)
        req = ApprovalRequest.objects.get(pk=data["id"])
        self.assertEqual(req.execution_result, {"userId": self.outsider.pk, "username": "other", "deactivated": True})

        # already gone
        body = self.call("post", "/api/approvals", self.requester, {
            "requestType": "user_delete", "subjectType": "user", "subjectId": str(self.outsider.pk),
            "payload": {"user_id": self.outsider.pk},
        }).json()
        self.assertEqual(body["errCode"], 400)

    def test_failed_follow_up_rolls_the_cancel_back(self):
        req = self._void_request(self.requester)
        with patch("core.views.api.approvals.after_transition", side_effect=NotFoundError("Bill vanished.")):
            body = self.call("post", f"/api/approvals/{req.pk}/cancel", self.requester, {"reason": "oops"}).json()
        self.assertEqual(body["errCode"], 404)

        req.refresh_from_db()
        self.assertEqual((req.status, req.version), ("pending_supervisor", 1))
        self.assertEqual(req.history.count(), 1)

    def test_requirement_check(self):
        def required(query):
            body = self.call("get", f"/api/approvals/requirement?{query}", self.requester).json()
            return body["data"]["required"] if body["errCode"] == 200 else body["errCode"]

        self.assertTrue(required("requestType=contract"))
        self.assertFalse(required("requestType=freight_quote"))
        self.assertEqual(required("amount=10"), 400)

        set_config("approval_threshold:contract", "1000")
        self.assertFalse(required("requestType=contract&amount=999.99"))
        self.assertTrue(required("requestType=contract&amount=1000"))
        self.assertTrue(required("requestType=contract"))
        self.assertEqual(required("requestType=contract&amount=lots"), 400)

        set_config("approval_enabled", "false")
        self.assertFalse(required("requestType=contract&amount=5000"))


class SystemConfigApiTest(ApiTestCase):

    def test_read_and_update(self):
        body = self.call("get", "/api/system-configs", self.requester).json()
        self.assertEqual({c["key"] for c in body["data"]}, {"void_supervisor_id", "void_finance_id"})

        body = self.call("put", "/api/system-configs", self.admin,
                         {"key": "void_finance_id", "value": str(self.outsider.pk)}).json()
        self.assertEqual(body["errCode"], 200, body)
        self.assertEqual(body["data"][0]["updatedBy"], self.admin.pk)

        # new applications go to the new finance approver
        req = self._void_request(self.requester)
        self.assertEqual(req.stage_chain["stages"][1]["approver_id"], self.outsider.pk)

    def test_only_admins_write(self):
        body = self.call("put", "/api/system-configs", self.requester,
                         {"key": "void_finance_id", "value": str(self.requester.pk)}).json()
        self.assertEqual(body["errCode"], 403)

    def test_rejects_bad_values(self):
        for entry in (
            {"key": "void_supervisor_id", "value": "999999"},
            {"key": "void_supervisor_id", "value": "bob"},
            {"key": "approval_chain:contract", "value": "[{\"name\": \"x\"}]"},
            {"value": "1"},
        ):
            with self.subTest(entry=entry):
                body = self.call("put", "/api/system-configs", self.admin, entry).json()
                self.assertEqual(body["errCode"], 400)

    def test_flag_and_threshold_values_are_checked(self):
        for entry in (
            {"key": "approval_enabled", "value": "maybe"},
            {"key": "approval_required:contract", "value": "2"},
            {"key": "approval_threshold:contract", "value": "-5"},
            {"key": "approval_threshold:contract", "value": "ten"},
        ):
            with self.subTest(entry=entry):
                body = self.call("put", "/api/system-configs", self.admin, entry).json()
                self.assertEqual(body["errCode"], 400)

        body = self.call("put", "/api/system-configs", self.admin,
                         {"key": "approval_threshold:contract", "value": "2500.00"}).json()
        self.assertEqual(body["errCode"], 200, body)

    def test_batch_update_is_all_or_nothing(self):
        saved = []

        def save_once(key, value, **kwargs):
            if saved:
                raise RuntimeError("database went away")
            saved.append(key)
            return set_config(key, value, **kwargs)

        with patch("core.views.api.system_configs.set_config", side_effect=save_once):
            with self.assertLogs("core.views.api.envelope", level="ERROR"):
                body = self.call("put", "/api/system-configs", self.admin, [
                    {"key": "void_supervisor_id", "value": str(self.outsider.pk)},
                    {"key": "void_finance_id", "value": str(self.outsider.pk)},
                ]).json()
        self.assertEqual(body["errCode"], 500)
        self.assertEqual(saved, ["void_supervisor_id"])
        self.assertEqual(
            SystemConfig.objects.get(key="void_supervisor_id").value, str(self.supervisor.pk),
        )

    def test_batch_update(self):
        body = self.call("put", "/api/system-configs", self.admin, [
            {"key": "void_supervisor_id", "value": str(self.finance.pk)},
            {"key": "void_finance_id", "value": str(self.supervisor.pk), "description": "Finance approver"},
        ]).json()
        self.assertEqual([c["key"] for c in body["data"]], ["void_supervisor_id", "void_finance_id"])
        self.assertEqual(body["data"][1]["description"], "Finance approver")


class NotificationApiTest(ApiTestCase):

    def test_list_and_mark_read(self):
        self.call("post", f"/api/bills/{self._bill().pk}/void-applications", self.requester, {"reason": "dup"})

        page = self.call("get", "/api/notifications?unreadOnly=1", self.supervisor).json()["data"]
        self.assertEqual(page["total"], 1)
        note = page["list"][0]
        self.assertEqual(note["type"], "new_request")

        body = self.call("post", f"/api/notifications/{note['id']}/read", self.supervisor).json()
        self.assertTrue(body["data"]["isRead"])
        self.assertEqual(self.call("get", "/api/notifications?unreadOnly=1", self.supervisor).json()["data"]["total"], 0)

        # someone else's notification
        self.assertEqual(self.call("post", f"/api/notifications/{note['id']}/read", self.finance).json()["errCode"], 404)
