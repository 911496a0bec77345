import json
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase

from core.approval.exceptions import ConfigurationError, ValidationError
from core.constants import Settings
from core.models import SystemConfig
from core.services.config import ConfigSnapshot, get_config, load_config_values, set_config

from .helpers import ApprovalFixtures


class SystemConfigCacheTest(TestCase):

    def test_reads_are_cached(self):
        set_config("void_supervisor_id", "5")
        self.assertEqual(get_config("void_supervisor_id"), "5")
        with self.assertNumQueries(0):
            self.assertEqual(load_config_values()["void_supervisor_id"], "5")

    def test_save_and_delete_invalidate_the_cache(self):
        set_config("void_finance_id", "7")
        self.assertEqual(get_config("void_finance_id"), "7")

        row = SystemConfig.objects.get(key="void_finance_id")
        row.value = "8"
        row.save()
        self.assertEqual(get_config("void_finance_id"), "8")

        row.delete()
        self.assertIsNone(get_config("void_finance_id"))

    def test_stale_copy_cached_before_commit_is_dropped(self):
        set_config("void_finance_id", "7")
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            set_config("void_finance_id", "8")
            # another request reads the old rows before this one commits
            cache.set(Settings.CACHE_SYSTEM_CONFIGS, {"void_finance_id": "7"})
            self.assertEqual(get_config("void_finance_id"), "7")
        self.assertTrue(callbacks)
        self.assertEqual(get_config("void_finance_id"), "8")

        with self.captureOnCommitCallbacks(execute=True):
            SystemConfig.objects.filter(key="void_finance_id").first().delete()
            cache.set(Settings.CACHE_SYSTEM_CONFIGS, {"void_finance_id": "8"})
        self.assertIsNone(get_config("void_finance_id"))

    def test_set_config_keeps_description(self):
        set_config("void_supervisor_id", "1", description="Void supervisor")
        set_config("void_supervisor_id", "2")
        row = SystemConfig.objects.get(key="void_supervisor_id")
        self.assertEqual((row.value, row.description), ("2", "Void supervisor"))

        with self.assertRaises(ValueError):
            set_config("  ", "x")


class ConfigSnapshotTest(ApprovalFixtures, TestCase):

    def test_chain_override_wins_over_default(self):
        approver = self._create_user("solo")
        set_config(f"{Settings.CONFIG_CHAIN_PREFIX}void_bill", json.dumps(
            [{"name": "solo", "approver_id": approver.pk}]
        ))
        chain = ConfigSnapshot.load().chain_for("void_bill")
        self.assertEqual([s.name for s in chain.stages], ["solo"])

    def test_broken_override_is_a_configuration_error(self):
        set_config(f"{Settings.CONFIG_CHAIN_PREFIX}contract", "{not json")
        with self.assertRaises(ConfigurationError):
            ConfigSnapshot.load().chain_for("contract")

    def test_known_request_types_include_overrides(self):
        set_config(f"{Settings.CONFIG_CHAIN_PREFIX}freight_quote", "[]")
        types = ConfigSnapshot.load().known_request_types()
        self.assertIn("freight_quote", types)
        self.assertIn("void_bill", types)

    def test_requires_approval_by_default_for_chained_types(self):
        config = ConfigSnapshot.load()
        self.assertTrue(config.requires_approval("contract"))
        self.assertTrue(config.requires_approval("void_bill", amount=1))
        self.assertFalse(config.requires_approval("freight_quote"))

    def test_requires_approval_switches_and_threshold(self):
        set_config(f"{Settings.CONFIG_THRESHOLD_PREFIX}contract", "10000")
        set_config(f"{Settings.CONFIG_REQUIRED_PREFIX}role_change", "no")
        config = ConfigSnapshot.load()
        self.assertFalse(config.requires_approval("contract", amount="9999.99"))
        self.assertTrue(config.requires_approval("contract", amount=Decimal("10000")))
        self.assertTrue(config.requires_approval("contract"))
        self.assertFalse(config.requires_approval("role_change"))
        with self.assertRaises(ValidationError):
            config.requires_approval("contract", amount="a lot")

        set_config(Settings.CONFIG_APPROVAL_ENABLED, "false")
        self.assertFalse(ConfigSnapshot.load().requires_approval("contract", amount=50000))

    def test_broken_switch_is_a_configuration_error(self):
        set_config(Settings.CONFIG_APPROVAL_ENABLED, "sometimes")
        with self.assertRaises(ConfigurationError):
            ConfigSnapshot.load().requires_approval("contract")

        set_config(Settings.CONFIG_APPROVAL_ENABLED, "yes")
        set_config(f"{Settings.CONFIG_THRESHOLD_PREFIX}contract", "ten thousand")
        with self.assertRaises(ConfigurationError):
            ConfigSnapshot.load().requires_approval("contract", amount=5)

    def test_admin_group_is_configurable(self):
        self.assertEqual(ConfigSnapshot.load().admin_group, "admin")
        set_config(Settings.CONFIG_ADMIN_GROUP, "ops_admin")
        self.assertEqual(ConfigSnapshot.load().admin_group, "ops_admin")
