"""
Management command to retry failed AI draft generations.

Usage:
    python manage.py process_draft_retries [--dry-run] [--batch-size N]

Cron fallback when Celery beat is not running:
    */5 * * * * cd /app && python manage.py process_draft_retries
"""

import logging

from django.core.management.base import BaseCommand
from django.db.models import F
from django.utils import timezone

from intakeguard.retry.models import OUTCOME_PENDING, DraftRetry
from intakeguard.retry.services import run_retry_batch

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Retry due AI draft generations with exponential backoff"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List due retries without running them",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            help="Override the number of retries per run",
        )

    def handle(self, *args, **options):
        batch_size = options.get("batch_size")

        if options.get("dry_run"):
            due = DraftRetry.objects.filter(
                outcome=OUTCOME_PENDING,
                completed_at__isnull=True,
                attempts__lt=F("max_attempts"),
                next_retry_at__lte=timezone.now(),
            ).order_by("next_retry_at")
            if batch_size:
                due = due[:batch_size]
            self.stdout.write(
                self.style.WARNING("[DRY RUN MODE - No retries will run]")
            )
            for entry in due:
                self.stdout.write(
                    f"  Retry {entry.id}: intake {entry.intake_id}, "
                    f"attempt {entry.attempts + 1}/{entry.max_attempts}"
                )
            return

        try:
            report = run_retry_batch(batch_size=batch_size)
        except Exception as e:
            error_msg = f"Error processing draft retries: {e}"
            self.stdout.write(self.style.ERROR(error_msg))
            logger.error(error_msg, exc_info=True)
            return

        self.stdout.write(
            self.style.SUCCESS(
                f"Processed {report.processed}: {report.succeeded} succeeded, "
                f"{report.failed} failed, {report.exhausted} exhausted"
            )
        )
