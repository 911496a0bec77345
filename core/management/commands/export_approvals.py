# core/management/commands/export_approvals.py
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Font

from core.constants import Settings
from core.models import ApprovalHistory, ApprovalRequest

from .expire_approvals import parse_moment

REQUEST_COLUMNS = [
    ("Request no", "request_no"),
    ("Type", "request_type"),
    ("Title", "title"),
    ("Subject", "subject_type"),
    ("Subject id", "subject_id"),
    ("Priority", "priority"),
    ("Status", "status"),
    ("Requester", "requester_name"),
    ("Created", "created_at"),
    ("Approved", "approved_at"),
    ("Rejected", "rejected_at"),
    ("Reject reason", "reject_reason"),
    ("Cancelled", "cancelled_at"),
    ("Expired", "expired_at"),
]

HISTORY_COLUMNS = [
    ("Request no", None),
    ("Time", "created_at"),
    ("Action", "action_name"),
    ("Actor", "actor_name"),
    ("Actor role", "actor_role"),
    ("Old status", "old_status"),
    ("New status", "new_status"),
    ("Comment", "comment"),
]


def _cell(value):
    # excel cannot hold tz-aware datetimes
    if hasattr(value, "tzinfo") and value.tzinfo is not None:
        return timezone.localtime(value).replace(tzinfo=None)
    return value


def _header(ws, columns):
    ws.append([title for title, _ in columns])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"


class Command(BaseCommand):
    help = "Export approval requests and their history to an Excel (.xlsx) workbook."

    def add_arguments(self, parser):
        parser.add_argument("filepath", type=str, help="Output path (.xlsx)")
        parser.add_argument("--type", dest="request_type", type=str, help="Only this request type")
        parser.add_argument("--status", type=str, help="Only this status")
        parser.add_argument("--since", type=str, help="Only requests created on/after this date")

    def handle(self, *args, **options):
        path = options["filepath"]
        if not path.lower().endswith(".xlsx"):
            raise CommandError("Output file must end with .xlsx")

        qs = ApprovalRequest.objects.order_by("created_at", "id")
        if options.get("request_type"):
            if options["request_type"] not in Settings.REQUEST_TYPE_LABELS:
                self.stderr.write(self.style.WARNING(f"Unknown request type {options['request_type']!r}"))
            qs = qs.filter(request_type=options["request_type"])
        if options.get("status"):
            qs = qs.filter(status=options["status"])
        if options.get("since"):
            qs = qs.filter(created_at__gte=parse_moment(options["since"]))

        wb = Workbook()
        ws = wb.active
        ws.title = "Requests"
        _header(ws, REQUEST_COLUMNS)
        for req in qs:
            ws.append([_cell(getattr(req, attr)) for _, attr in REQUEST_COLUMNS])

        hs = wb.create_sheet("History")
        _header(hs, HISTORY_COLUMNS)
        history = (
            ApprovalHistory.objects
            .filter(request__in=qs)
            .select_related("request")
            .order_by("request__created_at", "request_id", "created_at", "id")
        )
        rows = 0
        for row in history:
            hs.append([row.request.request_no] + [_cell(getattr(row, attr)) for _, attr in HISTORY_COLUMNS[1:]])
            rows += 1

        try:
            wb.save(path)
        except OSError as e:
            raise CommandError(f"Cannot write {path}: {e}")

        self.stdout.write(self.style.SUCCESS(f"Exported {qs.count()} request(s) and {rows} history row(s) to {path}"))
