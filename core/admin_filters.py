from django.contrib.admin import SimpleListFilter

from core.approval.statuses import is_pending
from core.constants import Settings
from core.services.access import pending_q


class RequestTypeQuickFilter(SimpleListFilter):
    title = "request type"
    parameter_name = "rtype"

    def lookups(self, request, model_admin):
        return [("all", "All")] + list(Settings.REQUEST_TYPE_LABELS.items())

    def queryset(self, request, queryset):
        value = self.value()
        if not value or value == "all":
            return queryset
        return queryset.filter(request_type=value)


class OpenClosedFilter(SimpleListFilter):
    """Pending (any stage) vs. terminal."""
    title = "state"
    parameter_name = "state"

    def lookups(self, request, model_admin):
        return [("open", "Waiting for approval"), ("closed", "Closed")]

    def queryset(self, request, queryset):
        if self.value() == "open":
            return queryset.filter(pending_q())
        if self.value() == "closed":
            return queryset.exclude(pending_q())
        return queryset


def status_badge(status):
    return f"⏳ {status}" if is_pending(status) else status
