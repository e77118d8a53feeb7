"""
Management command to probe review-queue dependencies.

Usage:
    python manage.py run_health_checks [--no-alert]
"""

import logging

from django.core.management.base import BaseCommand

from intakeguard.monitoring.alerts import NullAlertSink
from intakeguard.monitoring.health import run_health_checks

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Check database, cache and payment provider health"

    def add_arguments(self, parser):
        parser.add_argument(
            "--no-alert",
            action="store_true",
            help="Report results without sending alerts",
        )

    def handle(self, *args, **options):
        sink = NullAlertSink() if options.get("no_alert") else None

        try:
            report = run_health_checks(sink=sink)
        except Exception as e:
            error_msg = f"Error running health checks: {e}"
            self.stdout.write(self.style.ERROR(error_msg))
            logger.error(error_msg, exc_info=True)
            return

        for name, result in report.services.items():
            if result.healthy:
                status_icon = self.style.SUCCESS("[OK]")
            else:
                status_icon = self.style.ERROR("[FAIL]")
            line = f"{status_icon} {name}"
            if result.latency_ms is not None:
                line += f" ({result.latency_ms} ms)"
            if result.error:
                line += f": {result.error}"
            self.stdout.write(line)
