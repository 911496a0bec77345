# core/views/api/envelope.py
"""
Uniform JSON envelope: {"errCode": 200, "data": ..., "msg": ...} on success,
{"errCode": <code>, "msg": ...} otherwise. Callers look at errCode, so the
HTTP status only mirrors it.
"""
import json
import logging
from functools import wraps

from django.http import JsonResponse

from core.approval.exceptions import ApprovalError, ValidationError

logger = logging.getLogger(__name__)

OK = 200


def ok(data=None, msg="success"):
    return JsonResponse({"errCode": OK, "data": data, "msg": msg})


def fail(err_code, msg, details=None):
    body = {"errCode": err_code, "msg": msg}
    if details:
        body["details"] = details
    return JsonResponse(body, status=err_code)


def read_json(request, allow_list=False):
    """Body of a POST / PUT as a dict; an empty body is {}."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body.decode(request.encoding or "utf-8"))
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Request body is not valid JSON.")
    if not isinstance(data, dict) and not (allow_list and isinstance(data, list)):
        raise ValidationError("Request body must be a JSON object.")
    return data


def api_view(view):
    """Login check plus error translation; no exception leaves a view through here."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return fail(401, "Authentication required.")
        try:
            return view(request, *args, **kwargs)
        except ApprovalError as exc:
            logger.warning(
                "%s %s -> %s: %s", request.method, request.path, exc.err_code, exc.message,
            )
            return fail(exc.err_code, exc.message, exc.details)
        except Exception:
            logger.exception("%s %s failed", request.method, request.path)
            return fail(500, "Internal server error.")

    return wrapper
