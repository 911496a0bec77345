from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase

from core.approval.workflow_engine import WorkflowEngine
from core.constants import Settings
from core.models import BillOfLading
from core.services.config import set_config

User = get_user_model()


class ApprovalFixtures:
    """setUp helpers shared by the approval test cases."""

    def _create_user(self, username, groups=(), **extra):
        user = User.objects.create_user(
            username=username,
            password="secret-pass-123",
            first_name=extra.pop("first_name", username.title()),
            **extra,
        )
        for name in groups:
            group, _ = Group.objects.get_or_create(name=name)
            user.groups.add(group)
        return user

    def _configure_void_approvers(self, supervisor, finance):
        set_config(Settings.CONFIG_VOID_SUPERVISOR, supervisor.pk)
        set_config(Settings.CONFIG_VOID_FINANCE, finance.pk)

    def _bill(self, number=None, status=Settings.BILL_STATUS_ARRIVED):
        number = number or f"BL-{BillOfLading.objects.count() + 1:04d}"
        return BillOfLading.objects.create(bill_number=number, container_number="MSCU1234567", status=status)

    def _engine(self):
        # the engine snapshots config when built, so build it after changing config
        return WorkflowEngine()

    def _void_request(self, requester, bill=None, reason="Duplicate entry", **kwargs):
        bill = bill or self._bill()
        return self._engine().create(
            Settings.REQUEST_TYPE_VOID_BILL,
            Settings.SUBJECT_BILL,
            bill.pk,
            requester,
            payload={"reason": reason},
            **kwargs,
        )

    def _contract_request(self, requester, **kwargs):
        return self._engine().create(
            Settings.REQUEST_TYPE_CONTRACT,
            Settings.SUBJECT_CONTRACT,
            "C-100",
            requester,
            payload={"contract_no": "C-100", "customer_name": "ACME Logistics", "amount": "1250.50"},
            **kwargs,
        )


class ApiTestCase(ApprovalFixtures, TestCase):
    """Void-bill approvers configured; call() logs in as the given user and sends JSON."""

    def setUp(self):
        self.requester = self._create_user("u1")
        self.supervisor = self._create_user("sup")
        self.finance = self._create_user("fin")
        self.outsider = self._create_user("other")
        self.admin = self._create_user("boss", groups=[Settings.ROLE_ADMIN])
        self._configure_void_approvers(self.supervisor, self.finance)

    def call(self, method, url, user=None, body=None, **extra):
        if user is not None:
            self.client.force_login(user)
        else:
            self.client.logout()
        send = getattr(self.client, method)
        if body is None:
            return send(url, **extra)
        return send(url, data=body, content_type="application/json", **extra)
