# core/views/api/notifications.py
from django.views.decorators.http import require_http_methods

from core.services.notifications import list_notifications, mark_read

from .envelope import api_view, ok
from .serializers import serialize_notification, serialize_page


@require_http_methods(["GET"])
@api_view
def notification_list(request):
    page = list_notifications(
        request.user,
        unread_only=request.GET.get("unreadOnly") in ("1", "true", "True"),
        page=request.GET.get("page"),
        page_size=request.GET.get("pageSize"),
    )
    return ok(serialize_page(page, serialize_notification))


@require_http_methods(["POST"])
@api_view
def notification_read(request, pk):
    return ok(serialize_notification(mark_read(request.user, pk)))
