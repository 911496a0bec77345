# core/views/api/system_configs.py
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.views.decorators.http import require_http_methods

from core.approval.exceptions import ApprovalError, ForbiddenError, ValidationError
from core.approval.roles import actor_from_user
from core.approval.workflow import parse_chain
from core.constants import Settings
from core.forms.approval_forms import SystemConfigForm, form_errors
from core.models import SystemConfig
from core.services.config import ConfigSnapshot, load_config_values, parse_amount, parse_flag, set_config

from .envelope import api_view, ok, read_json
from .serializers import serialize_config

logger = logging.getLogger(__name__)

User = get_user_model()

# keys whose value must be the id of an active user
USER_ID_KEYS = {Settings.CONFIG_VOID_SUPERVISOR, Settings.CONFIG_VOID_FINANCE}


def _check_value(key, value, values):
    if key in USER_ID_KEYS and value:
        if not value.strip().isdigit() or not User.objects.filter(pk=int(value), is_active=True).exists():
            raise ValidationError(f"'{key}' must be the id of an active user.")

    if (key == Settings.CONFIG_APPROVAL_ENABLED or key.startswith(Settings.CONFIG_REQUIRED_PREFIX)) and value:
        try:
            parse_flag(value)
        except ValueError:
            raise ValidationError(f"'{key}' must be true or false.")

    if key.startswith(Settings.CONFIG_THRESHOLD_PREFIX) and value:
        try:
            amount = parse_amount(value)
        except ValueError:
            amount = None
        if amount is None or amount < 0:
            raise ValidationError(f"'{key}' must be a non-negative amount.")

    if key.startswith(Settings.CONFIG_CHAIN_PREFIX) and value:
        request_type = key[len(Settings.CONFIG_CHAIN_PREFIX):]
        try:
            parse_chain(request_type, value, values)
        except ApprovalError as exc:
            raise ValidationError(f"Invalid chain for '{request_type}': {exc.message}")


@require_http_methods(["GET", "PUT"])
@api_view
def system_configs(request):
    if request.method == "GET":
        qs = SystemConfig.objects.all()
        keys = [k.strip() for k in request.GET.get("keys", "").split(",") if k.strip()]
        if keys:
            qs = qs.filter(key__in=keys)
        return ok([serialize_config(c) for c in qs])

    if not actor_from_user(request.user, ConfigSnapshot.load().admin_group).is_admin:
        raise ForbiddenError("Only administrators can change system configs.")

    body = read_json(request, allow_list=True)
    entries = body if isinstance(body, list) else body.get("configs", [body])

    forms = []
    for entry in entries:
        form = SystemConfigForm(data=entry if isinstance(entry, dict) else {})
        if not form.is_valid():
            form_errors(form)
        forms.append(form.cleaned_data)

    # chains are checked against the values as they will be after this update
    values = dict(load_config_values())
    values.update({cd["key"]: cd["value"] for cd in forms})
    for cd in forms:
        _check_value(cd["key"], cd["value"], values)

    with transaction.atomic():
        saved = [
            set_config(cd["key"], cd["value"], description=cd["description"] or None, user=request.user)
            for cd in forms
        ]
    logger.info("system configs %s updated by %s", [c.key for c in saved], request.user.pk)
    return ok([serialize_config(c) for c in saved], msg="Saved.")
