"""
Management command to run the periodic workers in-process.

Uses the same QUEUE_WORKERS registry as Celery beat, for deployments (and
local development) without a beat process.

Usage:
    python manage.py run_workers [--once] [--tick SECONDS]
"""

import logging
import time

from django.core.management.base import BaseCommand
from django.utils import timezone

from intakeguard.scheduling import Ticker

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Run periodic review-queue workers on their configured cadence"

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run every worker once and exit",
        )
        parser.add_argument(
            "--tick",
            type=float,
            default=5.0,
            help="Seconds between schedule checks (default 5)",
        )

    def handle(self, *args, **options):
        ticker = Ticker()
        names = ", ".join(spec.name for spec in ticker.workers)
        self.stdout.write(f"Workers: {names}")

        if options.get("once"):
            ran = ticker.run_due(timezone.now())
            self.stdout.write(self.style.SUCCESS(f"Ran {len(ran)} worker(s)"))
            return

        tick = options["tick"]
        try:
            while True:
                ran = ticker.run_due(timezone.now())
                if ran:
                    self.stdout.write(f"Ran: {', '.join(ran)}")
                time.sleep(tick)
        except KeyboardInterrupt:
            self.stdout.write("Stopping workers")
