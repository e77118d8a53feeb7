"""
Management command to return stale reviewer claims to the queue.

A claim is stale once it has been held longer than the claim lease
(REVIEW_QUEUE["claim_lease_minutes"], default 45).

Usage:
    python manage.py reclaim_stale_claims [--dry-run] [--lease-minutes N]

Cron fallback when Celery beat is not running:
    */10 * * * * cd /app && python manage.py reclaim_stale_claims
"""

import logging
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from intakeguard.claims.services import reclaim_stale_claims
from intakeguard.conf import queue_setting
from intakeguard.intakes.models import STATUS_CLAIMED, Intake

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Release reviewer claims held longer than the claim lease"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List stale claims without releasing them",
        )
        parser.add_argument(
            "--lease-minutes",
            type=int,
            help="Override the claim lease for this run",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            help="Override the number of claims examined",
        )

    def handle(self, *args, **options):
        lease_minutes = options.get("lease_minutes") or queue_setting(
            "claim_lease_minutes"
        )
        batch_size = options.get("batch_size") or queue_setting("reclaim_batch_size")
        lease = timedelta(minutes=lease_minutes)

        if options.get("dry_run"):
            now = timezone.now()
            stale = Intake.objects.filter(
                status=STATUS_CLAIMED, claimed_at__lt=now - lease
            ).order_by("claimed_at")[:batch_size]
            self.stdout.write(
                self.style.WARNING("[DRY RUN MODE - No claims will be released]")
            )
            for intake in stale:
                held = (now - intake.claimed_at).total_seconds() / 60
                self.stdout.write(
                    f"  Intake {intake.id}: reviewer {intake.claimed_by_id}, "
                    f"held {held:.0f} min"
                )
            return

        try:
            report = reclaim_stale_claims(lease=lease, batch_size=batch_size)
        except Exception as e:
            # Worker failures are logged; exit 0 so cron does not page
            error_msg = f"Error reclaiming stale claims: {e}"
            self.stdout.write(self.style.ERROR(error_msg))
            logger.error(error_msg, exc_info=True)
            return

        self.stdout.write(
            self.style.SUCCESS(
                f"Scanned {report.scanned}, reclaimed {report.reclaimed}, "
                f"skipped {report.skipped}"
            )
        )
