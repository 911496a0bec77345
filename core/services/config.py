# core/services/config.py
"""
Access to the SystemConfig key/value table.

Reads go through the django cache; the post_save / post_delete receivers in
core.signals drop the cached copy whenever a row changes (and again when the
transaction commits).  The engine never
reads config directly: it gets a ConfigSnapshot taken once per call.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from core.approval.exceptions import ConfigurationError, ValidationError
from core.approval.workflow import parse_chain
from core.constants import Settings
from core.models import SystemConfig


def load_config_values() -> Dict[str, str]:
    values = cache.get(Settings.CACHE_SYSTEM_CONFIGS)
    if values is None:
        values = dict(SystemConfig.objects.values_list("key", "value"))
        cache.set(Settings.CACHE_SYSTEM_CONFIGS, values, settings.APPROVAL_CONFIG_CACHE_TIMEOUT)
    return values


TRUE_WORDS = {"1", "true", "yes", "on"}
FALSE_WORDS = {"0", "false", "no", "off"}


def parse_flag(value, default=True):
    """Boolean config value; empty means `default`, anything unknown is a ValueError."""
    text = (value or "").strip().lower()
    if not text:
        return default
    if text in TRUE_WORDS:
        return True
    if text in FALSE_WORDS:
        return False
    raise ValueError(f"{value!r} is not a yes/no value.")


def parse_amount(value):
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"{value!r} is not an amount.")
    if not amount.is_finite():
        raise ValueError(f"{value!r} is not an amount.")
    return amount


def invalidate_config_cache():
    cache.delete(Settings.CACHE_SYSTEM_CONFIGS)


def get_config(key, default=None):
    return load_config_values().get(key, default)


def set_config(key, value, description=None, user=None):
    """Insert or update one key; keeps the old description when none is given."""
    key = (key or "").strip()
    if not key:
        raise ValueError("Config key cannot be empty.")

    with transaction.atomic():
        obj, _ = SystemConfig.objects.select_for_update().get_or_create(key=key)
        obj.value = "" if value is None else str(value)
        if description is not None:
            obj.description = description
        obj.updated_by = user
        obj.save()
    return obj


@dataclass(frozen=True)
class ConfigSnapshot:
    values: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls):
        return cls(values=dict(load_config_values()))

    @property
    def admin_group(self):
        return self.values.get(Settings.CONFIG_ADMIN_GROUP) or Settings.ROLE_ADMIN

    def raw_chain(self, request_type):
        override = self.values.get(f"{Settings.CONFIG_CHAIN_PREFIX}{request_type}")
        if override:
            return override
        return Settings.DEFAULT_APPROVAL_CHAINS.get(request_type)

    def chain_for(self, request_type):
        raw = self.raw_chain(request_type)
        if raw is None:
            raise ConfigurationError(f"No approval chain is configured for '{request_type}'.")
        return parse_chain(
            request_type,
            raw,
            self.values,
            default_expires_hours=settings.APPROVAL_DEFAULT_EXPIRES_HOURS,
        )

    def _flag(self, key, default=True):
        try:
            return parse_flag(self.values.get(key), default)
        except ValueError:
            raise ConfigurationError(f"System config '{key}' must be true or false.")

    def requires_approval(self, request_type, amount=None):
        """
        Whether an operation of this type has to go through approval:
        - never while "approval_enabled" is off
        - never for a type switched off by "approval_required:<type>" or
          without a chain
        - not when `amount` is given and below "approval_threshold:<type>"
        """
        if not self._flag(Settings.CONFIG_APPROVAL_ENABLED):
            return False
        if not self._flag(f"{Settings.CONFIG_REQUIRED_PREFIX}{request_type}"):
            return False
        if self.raw_chain(request_type) is None:
            return False

        threshold_key = f"{Settings.CONFIG_THRESHOLD_PREFIX}{request_type}"
        threshold = self.values.get(threshold_key)
        if not threshold or amount in (None, ""):
            return True
        try:
            threshold = parse_amount(threshold)
        except ValueError:
            raise ConfigurationError(f"System config '{threshold_key}' must be an amount.")
        try:
            amount = parse_amount(amount)
        except ValueError:
            raise ValidationError("amount must be a number.")
        return amount >= threshold

    def known_request_types(self):
        types = set(Settings.DEFAULT_APPROVAL_CHAINS)
        prefix = Settings.CONFIG_CHAIN_PREFIX
        types.update(k[len(prefix):] for k in self.values if k.startswith(prefix))
        return sorted(types)
