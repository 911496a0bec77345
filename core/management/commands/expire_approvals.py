# core/management/commands/expire_approvals.py
from dateutil import parser as date_parser
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from core.approval.workflow import ACTION_EXPIRE
from core.approval.workflow_engine import WorkflowEngine
from core.models import ApprovalRequest
from core.services.access import pending_q
from core.services.hooks import after_transition


def parse_moment(value):
    """ISO date/datetime from the command line; naive values are read in the current time zone."""
    try:
        moment = date_parser.parse(value)
    except (ValueError, OverflowError) as e:
        raise CommandError(f"Invalid --now value {value!r}: {e}")
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


class Command(BaseCommand):
    help = (
        "Move pending approval requests whose deadline has passed to 'expired'. "
        "Meant to run from cron; --dry-run only lists them."
    )

    def add_arguments(self, parser):
        parser.add_argument("--now", type=str, help="Treat this moment as now (ISO date or datetime)")
        parser.add_argument("--dry-run", action="store_true", help="List overdue requests without changing them")

    def handle(self, *args, **options):
        now = parse_moment(options["now"]) if options.get("now") else timezone.now()

        if options["dry_run"]:
            overdue = (
                ApprovalRequest.objects
                .filter(pending_q(), expires_at__isnull=False, expires_at__lte=now)
                .order_by("expires_at")
            )
            for req in overdue:
                self.stdout.write(f"{req.request_no}  {req.status}  expires_at={req.expires_at:%Y-%m-%d %H:%M}")
            self.stdout.write(self.style.WARNING(f"{overdue.count()} overdue request(s), nothing changed (dry-run)."))
            return

        engine = WorkflowEngine()
        expired = engine.expire_overdue(
            now=now,
            then=lambda req: after_transition(req, ACTION_EXPIRE, engine.config),
        )
        for req in expired:
            self.stdout.write(f"expired {req.request_no}")

        self.stdout.write(self.style.SUCCESS(f"Expired {len(expired)} request(s)."))
