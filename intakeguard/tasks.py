"""
Celery tasks for the review-queue workers.

Each periodic worker is a thin task around its service function; the beat
schedule comes from settings.QUEUE_WORKERS. Task names match their import
paths so the in-process ticker can resolve the same registry entries.
"""

from typing import Any, Dict
from celery import shared_task
from decouple import config
import logging

from intakeguard.celery_monitoring import monitor_task

logger = logging.getLogger(__name__)

# Check if Celery is enabled
CELERY_ENABLED = config("CELERY_ENABLED", default=False, cast=bool)


@shared_task(name="intakeguard.tasks.reclaim_stale_claims")
@monitor_task
def reclaim_stale_claims() -> Dict[str, Any]:
    """
    Return claims held past the lease to the queue.

    Returns:
        dict: scanned, reclaimed and skipped counts
    """
    from intakeguard.claims import services as claim_services

    report = claim_services.reclaim_stale_claims()
    return report.to_dict()


@shared_task(name="intakeguard.tasks.check_stale_queue")
@monitor_task
def check_stale_queue() -> Dict[str, Any]:
    """
    Alert on paid intakes waiting past the queue SLA.

    Returns:
        dict: stale, critical and warning counts and the alert sent
    """
    from intakeguard.monitoring import sla

    report = sla.check_stale_queue()
    return report.to_dict()


@shared_task(name="intakeguard.tasks.process_draft_retries")
@monitor_task
def process_draft_retries() -> Dict[str, Any]:
    """
    Retry due AI draft generations.

    Returns:
        dict: processed, succeeded, failed, exhausted and skipped counts
    """
    from intakeguard.retry.services import run_retry_batch

    report = run_retry_batch()
    return report.to_dict()


@shared_task(name="intakeguard.tasks.run_health_checks")
@monitor_task
def run_health_checks() -> Dict[str, Any]:
    """
    Probe dependencies and alert (throttled) on failures.

    Returns:
        dict: overall verdict and per-service results
    """
    from intakeguard.monitoring import health

    report = health.run_health_checks()
    return report.to_dict()


@shared_task(name="intakeguard.tasks.generate_intake_drafts")
def generate_intake_drafts(intake_id: int) -> Dict[str, Any]:
    """
    First AI draft attempt after payment; failures are queued for retry.

    Args:
        intake_id: The paid intake

    Returns:
        dict: intake_id and whether the draft succeeded
    """
    from intakeguard.intakes.models import Intake
    from intakeguard.retry.services import generate_drafts_for_intake

    logger.info(f"Starting draft generation for intake {intake_id}")

    intake = Intake.objects.get(id=intake_id)
    result = generate_drafts_for_intake(intake)
    return {"intake_id": intake_id, "success": result.success}


def enqueue_or_run_sync(task: Any, *args: Any, **kwargs: Any) -> Any:
    """
    Either enqueue a task to Celery or run it synchronously.

    This allows the system to work with or without Celery running.
    """
    if CELERY_ENABLED:
        return task.delay(*args, **kwargs)
    else:
        # Run synchronously
        return task(*args, **kwargs)
