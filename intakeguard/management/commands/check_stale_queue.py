"""
Management command to check paid intakes against the queue SLA.

Usage:
    python manage.py check_stale_queue [--dry-run]

Cron fallback when Celery beat is not running:
    0 * * * * cd /app && python manage.py check_stale_queue
"""

import logging

from django.core.management.base import BaseCommand

from intakeguard.monitoring.alerts import NullAlertSink
from intakeguard.monitoring.sla import check_stale_queue

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Alert on paid intakes waiting past the queue SLA"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report stale intakes without sending an alert",
        )

    def handle(self, *args, **options):
        dry_run = options.get("dry_run", False)
        if dry_run:
            self.stdout.write(
                self.style.WARNING("[DRY RUN MODE - No alert will be sent]")
            )

        try:
            report = check_stale_queue(sink=NullAlertSink() if dry_run else None)
        except Exception as e:
            error_msg = f"Error checking queue SLA: {e}"
            self.stdout.write(self.style.ERROR(error_msg))
            logger.error(error_msg, exc_info=True)
            return

        if not report.stale_count:
            self.stdout.write(self.style.SUCCESS("Queue within SLA"))
            return

        self.stdout.write(
            self.style.ERROR(
                f"{report.stale_count} stale intake(s): "
                f"{report.critical_count} critical, {report.warning_count} warning"
            )
        )
        self.stdout.write(
            f"Oldest waits (hours): {', '.join(str(h) for h in report.oldest_wait_hours)}"
        )
        self.stdout.write(f"Alert: {report.alert}")
