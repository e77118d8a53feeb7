"""
Retry Coordinator for AI draft generation.

When the first draft attempt after payment fails, a DraftRetry entry is
queued. The periodic worker retries due entries with exponential backoff
until one succeeds or max_attempts is reached.

Overlapping runs are safe: each entry is leased by a conditional update
pinned to the attempt count observed during the scan, and every later
write is pinned the same way, so exactly one run handles each attempt.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.db.models import F
from django.utils import timezone

from intakeguard.conf import queue_setting
from intakeguard.constants import (
    DRAFT_RETRY_ERROR_MAX_LENGTH,
    DRAFT_RETRY_LEASE_MINUTES,
)
from intakeguard.logging_utils import add_log_context, get_task_logger
from intakeguard.metrics import worker_items
from intakeguard.monitoring.alerts import AlertSink, send_alert
from intakeguard.retry.drafts import DraftGenerator, DraftResult, get_draft_generator
from intakeguard.retry.models import (
    OUTCOME_EXHAUSTED,
    OUTCOME_PENDING,
    OUTCOME_SUCCEEDED,
    DraftRetry,
    compute_backoff,
)
from intakeguard.scheduling import BatchBudget

logger = get_task_logger("process_draft_retries")


@dataclass
class RetryBatchReport:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    exhausted: int = 0
    skipped: int = 0

    def to_dict(self):
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "exhausted": self.exhausted,
            "skipped": self.skipped,
        }


def _truncate(message: Optional[str]) -> str:
    return (message or "Unknown error")[:DRAFT_RETRY_ERROR_MAX_LENGTH]


def enqueue_draft_retry(
    intake,
    error: Optional[str],
    max_attempts: Optional[int] = None,
    now: Optional[datetime] = None,
) -> DraftRetry:
    """
    Queue a draft retry for intake, reusing its pending entry if one exists.

    The new entry is due immediately; backoff starts with the first retry.
    """
    now = now or timezone.now()
    if max_attempts is None:
        max_attempts = queue_setting("draft_retry_max_attempts")

    existing = DraftRetry.objects.filter(
        intake=intake, outcome=OUTCOME_PENDING, completed_at__isnull=True
    ).first()
    if existing is not None:
        DraftRetry.objects.filter(pk=existing.pk).update(
            last_error=_truncate(error), updated_at=now
        )
        existing.refresh_from_db()
        return existing

    entry = DraftRetry.objects.create(
        intake=intake,
        max_attempts=max_attempts,
        next_retry_at=now,
        last_error=_truncate(error),
    )
    logger.info(
        f"Queued draft retry {entry.id} for intake {intake.id}",
        extra={"intake_id": intake.id, "retry_id": entry.id},
    )
    return entry


def generate_drafts_for_intake(
    intake, generator: Optional[DraftGenerator] = None
) -> DraftResult:
    """
    First, synchronous draft attempt after payment.

    A failure (returned or raised) queues a retry instead of propagating.
    """
    generator = generator or get_draft_generator()
    try:
        result = generator(intake.id)
    except Exception as e:
        logger.error(
            f"Draft generation raised for intake {intake.id}: {str(e)}",
            exc_info=True,
            extra={"intake_id": intake.id},
        )
        result = DraftResult(success=False, error=str(e))

    if not result.success:
        enqueue_draft_retry(intake, result.error)
    return result


def run_retry_batch(
    generator: Optional[DraftGenerator] = None,
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None,
    budget: Optional[BatchBudget] = None,
    sink: Optional[AlertSink] = None,
) -> RetryBatchReport:
    """
    Retry due draft generations.

    Args:
        generator: Side effect, generate_draft(intake_id) -> DraftResult
            (defaults to settings.DRAFT_GENERATOR)
        now: Evaluation time (defaults to timezone.now())
        batch_size: Max entries per run (defaults to REVIEW_QUEUE["draft_retry_batch_size"])
        budget: Wall-clock budget for this run
        sink: Destination for exhausted-retry alerts

    Returns:
        RetryBatchReport: processed, succeeded, failed (will retry),
            exhausted (gave up) and skipped (leased by another run)
    """
    generator = generator or get_draft_generator()
    now = now or timezone.now()
    if batch_size is None:
        batch_size = queue_setting("draft_retry_batch_size")
    budget = budget or BatchBudget()
    max_backoff = queue_setting("draft_retry_max_backoff_minutes")

    due = list(
        DraftRetry.objects.filter(
            outcome=OUTCOME_PENDING,
            completed_at__isnull=True,
            attempts__lt=F("max_attempts"),
            next_retry_at__lte=now,
        )
        .order_by("next_retry_at")
        .values("id", "intake_id", "attempts", "max_attempts")[:batch_size]
    )

    report = RetryBatchReport()
    for row in due:
        if budget.exhausted():
            logger.warning(
                f"Batch budget spent after {report.processed} of {len(due)} retries"
            )
            break

        with add_log_context(retry_id=row["id"], intake_id=row["intake_id"]):
            _process_entry(row, generator, now, max_backoff, report, sink)

    for outcome in ("succeeded", "failed", "exhausted", "skipped"):
        worker_items.labels(worker="process_draft_retries", outcome=outcome).inc(
            getattr(report, outcome)
        )
    logger.info(f"Draft retry run finished: {report.to_dict()}")
    return report


def _pinned(row):
    return DraftRetry.objects.filter(
        pk=row["id"],
        attempts=row["attempts"],
        outcome=OUTCOME_PENDING,
        completed_at__isnull=True,
    )


def _process_entry(row, generator, now, max_backoff, report, sink):
    # Lease: push next_retry_at out so a concurrent run no longer sees it due
    leased = (
        _pinned(row)
        .filter(next_retry_at__lte=now)
        .update(
            next_retry_at=now + timedelta(minutes=DRAFT_RETRY_LEASE_MINUTES),
            updated_at=now,
        )
    )
    if not leased:
        report.skipped += 1
        return

    report.processed += 1
    try:
        result = generator(row["intake_id"])
    except Exception as e:
        logger.error(
            f"Draft retry {row['id']} raised: {str(e)}",
            exc_info=True,
        )
        result = DraftResult(success=False, error=str(e))

    attempts = row["attempts"] + 1

    if result.success:
        written = _pinned(row).update(
            attempts=attempts,
            completed_at=now,
            outcome=OUTCOME_SUCCEEDED,
            updated_at=now,
        )
        if not written:
            _lost_lease(row, report)
            return
        report.succeeded += 1
        logger.info(
            f"Draft retry {row['id']} succeeded on attempt {attempts}"
        )
        return

    error = _truncate(result.error)
    next_retry_at = now + compute_backoff(attempts, max_backoff)

    if attempts >= row["max_attempts"]:
        written = _pinned(row).update(
            attempts=attempts,
            next_retry_at=next_retry_at,
            last_error=error,
            completed_at=now,
            outcome=OUTCOME_EXHAUSTED,
            updated_at=now,
        )
        if not written:
            _lost_lease(row, report)
            return
        report.exhausted += 1
        logger.error(
            f"Draft retry {row['id']} exhausted after {attempts} attempts: {error}"
        )
        send_alert(
            "AI draft generation gave up after max retries",
            level="error",
            tags={"alert_type": "draft_retry_exhausted"},
            extra={
                "retry_id": row["id"],
                "intake_id": row["intake_id"],
                "attempts": attempts,
                "last_error": error,
            },
            sink=sink,
        )
        return

    written = _pinned(row).update(
        attempts=attempts,
        next_retry_at=next_retry_at,
        last_error=error,
        updated_at=now,
    )
    if not written:
        _lost_lease(row, report)
        return
    report.failed += 1
    logger.warning(
        f"Draft retry {row['id']} failed (attempt {attempts}/{row['max_attempts']}), "
        f"next try at {next_retry_at.isoformat()}"
    )


def _lost_lease(row, report):
    # Another run handled the entry after our lease lapsed; its write stands
    report.skipped += 1
    logger.warning(
        f"Draft retry {row['id']} changed while its attempt was running, "
        f"result discarded"
    )
