from django.core.management.base import BaseCommand, CommandError, CommandParser

from contracts.tasks import (
    task_auto_resolve_expired_tickets,
    task_auto_resolve_expired_uploads,
    task_expire_counterproof_windows,
    task_mark_overdue_contracts_not_completed,
)

SWEEPS = (
    ("tickets", task_auto_resolve_expired_tickets),
    ("uploads", task_auto_resolve_expired_uploads),
    ("counterproof windows", task_expire_counterproof_windows),
    ("overdue contracts", task_mark_overdue_contracts_not_completed),
)


class Command(BaseCommand):
    help = ("Run every lifecycle timeout sweep once, in-process. "
            "For cron deployments without celery beat.")

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument("--as-of", dest="as_of", help="ISO-8601 timestamp to evaluate expiry against (default: now)")

    def handle(self, *args, **opts):
        as_of = opts.get("as_of")
        for label, task in SWEEPS:
            try:
                counts = task.apply(kwargs={"as_of": as_of}, throw=True).get()
            except ValueError as e:
                raise CommandError(str(e))
            self.stdout.write(f"{label}: {counts}")
        self.stdout.write(self.style.SUCCESS("Lifecycle sweeps finished."))
