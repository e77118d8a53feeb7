"""
Claim Manager

Hands each paid intake to exactly one reviewer at a time. Every state change
is a single conditional UPDATE whose WHERE clause encodes the precondition;
the database row is the lock, so concurrent callers need no coordination
beyond checking how many rows they changed.

Not getting a claim is an ordinary result (ClaimResult.ok is False), never
an exception.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from intakeguard.compliance.ledger import log_clinician_opened_request
from intakeguard.compliance.models import (
    EVENT_CLINICIAN_OPENED_REQUEST,
    ROLE_ADMIN,
    ROLE_CLINICIAN,
)
from intakeguard.conf import queue_setting
from intakeguard.intakes.models import (
    COMPLETION_STATUSES,
    STATUS_CLAIMED,
    STATUS_PAID,
    Intake,
)
from intakeguard.logging_utils import add_log_context, get_logger, get_task_logger
from intakeguard.metrics import claim_attempts, worker_items
from intakeguard.monitoring.alerts import send_alert
from intakeguard.scheduling import BatchBudget

logger = get_logger(__name__)

REASON_ALREADY_CLAIMED = "already_claimed"
REASON_NOT_FOUND = "not_found"
REASON_NOT_CLAIMABLE = "not_claimable"
REASON_NOT_OWNER = "not_owner"


@dataclass
class ClaimResult:
    ok: bool
    reason: Optional[str] = None
    claimed_by_id: Optional[int] = None

    def to_dict(self):
        return {
            "ok": self.ok,
            "reason": self.reason,
            "claimed_by": self.claimed_by_id,
        }


@dataclass
class ReclaimReport:
    scanned: int = 0
    reclaimed: int = 0
    skipped: int = 0

    def to_dict(self):
        return {
            "scanned": self.scanned,
            "reclaimed": self.reclaimed,
            "skipped": self.skipped,
        }


def _current_state(intake_id):
    return (
        Intake.objects.filter(pk=intake_id)
        .values("status", "claimed_by_id")
        .first()
    )


def acquire_claim(
    intake_id: int,
    reviewer,
    *,
    force: bool = False,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ClaimResult:
    """
    Claim a paid intake for review.

    Of any number of concurrent calls for the same intake, at most one
    succeeds. The others get reason "already_claimed" and the id of the
    reviewer who won, including the winner if it calls again.

    Args:
        intake_id: Intake to claim
        reviewer: Claiming user
        force: Take over a claim held by another reviewer (admin only;
            callers enforce the permission)
        ip_address: Recorded on the compliance entry
        user_agent: Recorded on the compliance entry
        now: Claim time (defaults to timezone.now())

    Returns:
        ClaimResult: ok, or the reason the claim was not granted
    """
    now = now or timezone.now()

    with add_log_context(intake_id=intake_id, reviewer_id=reviewer.id):
        updated = Intake.objects.filter(
            pk=intake_id, status=STATUS_PAID, claimed_by__isnull=True
        ).update(
            status=STATUS_CLAIMED,
            claimed_by=reviewer,
            claimed_at=now,
            updated_at=now,
        )

        if updated:
            _record_opened(intake_id, reviewer, ip_address, user_agent)
            claim_attempts.labels(result="claimed").inc()
            logger.info(
                f"Intake {intake_id} claimed by reviewer {reviewer.id}",
                extra={"intake_id": intake_id, "reviewer_id": reviewer.id},
            )
            return ClaimResult(ok=True, claimed_by_id=reviewer.id)

        state = _current_state(intake_id)
        if state is None:
            claim_attempts.labels(result=REASON_NOT_FOUND).inc()
            return ClaimResult(ok=False, reason=REASON_NOT_FOUND)

        if state["status"] != STATUS_CLAIMED:
            claim_attempts.labels(result=REASON_NOT_CLAIMABLE).inc()
            return ClaimResult(ok=False, reason=REASON_NOT_CLAIMABLE)

        holder_id = state["claimed_by_id"]
        if force and holder_id != reviewer.id:
            return _take_over(intake_id, reviewer, holder_id, ip_address, user_agent, now)

        claim_attempts.labels(result=REASON_ALREADY_CLAIMED).inc()
        logger.info(
            f"Intake {intake_id} already claimed by reviewer {holder_id}",
            extra={"intake_id": intake_id},
        )
        return ClaimResult(ok=False, reason=REASON_ALREADY_CLAIMED, claimed_by_id=holder_id)


def _take_over(intake_id, reviewer, holder_id, ip_address, user_agent, now):
    # Pinned to the holder we observed: a release or reclaim in between
    # turns the takeover into a no-op instead of stealing a fresh claim.
    updated = Intake.objects.filter(
        pk=intake_id, status=STATUS_CLAIMED, claimed_by_id=holder_id
    ).update(claimed_by=reviewer, claimed_at=now, updated_at=now)

    if not updated:
        state = _current_state(intake_id)
        claim_attempts.labels(result=REASON_ALREADY_CLAIMED).inc()
        if state is None:
            return ClaimResult(ok=False, reason=REASON_NOT_FOUND)
        if state["status"] != STATUS_CLAIMED:
            return ClaimResult(ok=False, reason=REASON_NOT_CLAIMABLE)
        return ClaimResult(
            ok=False,
            reason=REASON_ALREADY_CLAIMED,
            claimed_by_id=state["claimed_by_id"],
        )

    _record_opened(
        intake_id,
        reviewer,
        ip_address,
        user_agent,
        forced=True,
        previous_holder_id=holder_id,
    )
    claim_attempts.labels(result="taken_over").inc()
    logger.warning(
        f"Intake {intake_id} taken over from reviewer {holder_id} by {reviewer.id}",
        extra={"intake_id": intake_id, "reviewer_id": reviewer.id},
    )
    return ClaimResult(ok=True, claimed_by_id=reviewer.id)


def _record_opened(
    intake_id, reviewer, ip_address, user_agent, forced=False, previous_holder_id=None
):
    # Ledger failures are logged and alerted, never raised: the claim stands
    try:
        request_type = (
            Intake.objects.filter(pk=intake_id)
            .values_list("request_type", flat=True)
            .first()
        )
    except DatabaseError as e:
        logger.exception(
            f"Could not load intake {intake_id} for its compliance entry",
            extra={"intake_id": intake_id},
        )
        send_alert(
            "Compliance ledger write failed",
            level="error",
            tags={"event_type": EVENT_CLINICIAN_OPENED_REQUEST},
            extra={"request_id": intake_id, "error": str(e)},
        )
        return None

    return log_clinician_opened_request(
        intake_id,
        request_type,
        reviewer.id,
        ip_address=ip_address,
        user_agent=user_agent,
        forced=forced,
        previous_holder_id=previous_holder_id,
        actor_role=ROLE_ADMIN if forced else ROLE_CLINICIAN,
    )


def release_claim(intake_id: int, reviewer, now: Optional[datetime] = None) -> ClaimResult:
    """
    Return a claimed intake to the queue.

    Only the current holder can release; anyone else gets "not_owner" and
    nothing changes.
    """
    now = now or timezone.now()
    updated = Intake.objects.filter(
        pk=intake_id, status=STATUS_CLAIMED, claimed_by=reviewer
    ).update(status=STATUS_PAID, claimed_by=None, claimed_at=None, updated_at=now)

    if updated:
        logger.info(
            f"Intake {intake_id} released by reviewer {reviewer.id}",
            extra={"intake_id": intake_id, "reviewer_id": reviewer.id},
        )
        return ClaimResult(ok=True)

    state = _current_state(intake_id)
    if state is None:
        return ClaimResult(ok=False, reason=REASON_NOT_FOUND)
    return ClaimResult(
        ok=False, reason=REASON_NOT_OWNER, claimed_by_id=state["claimed_by_id"]
    )


def complete_claim(
    intake_id: int, reviewer, status: str, now: Optional[datetime] = None
) -> ClaimResult:
    """
    Move a claimed intake to its review outcome and clear the claim.

    Args:
        intake_id: Intake being decided
        reviewer: Must be the current claim holder
        status: One of approved, declined, escalated, pending_info
        now: Decision time (defaults to timezone.now())

    Raises:
        ValueError: If status is not a completion status
    """
    if status not in COMPLETION_STATUSES:
        raise ValueError(f"Cannot complete a claim with status {status!r}")

    now = now or timezone.now()
    updated = Intake.objects.filter(
        pk=intake_id, status=STATUS_CLAIMED, claimed_by=reviewer
    ).update(
        status=status,
        claimed_by=None,
        claimed_at=None,
        reviewed_by=reviewer,
        decided_at=now,
        updated_at=now,
    )

    if updated:
        logger.info(
            f"Intake {intake_id} completed as {status} by reviewer {reviewer.id}",
            extra={"intake_id": intake_id, "reviewer_id": reviewer.id},
        )
        return ClaimResult(ok=True)

    state = _current_state(intake_id)
    if state is None:
        return ClaimResult(ok=False, reason=REASON_NOT_FOUND)
    return ClaimResult(
        ok=False, reason=REASON_NOT_OWNER, claimed_by_id=state["claimed_by_id"]
    )


def reclaim_stale_claims(
    now: Optional[datetime] = None,
    lease: Optional[timedelta] = None,
    batch_size: Optional[int] = None,
    budget: Optional[BatchBudget] = None,
) -> ReclaimReport:
    """
    Return claims older than the lease to the queue.

    Each reclaim is pinned to the claimed_by and claimed_at observed during
    the scan, so overlapping runs reclaim a row at most once and a row that
    was released and claimed again meanwhile is left alone.

    Args:
        now: Evaluation time (defaults to timezone.now())
        lease: Claim lease (defaults to REVIEW_QUEUE["claim_lease_minutes"])
        batch_size: Max claims examined (defaults to REVIEW_QUEUE["reclaim_batch_size"])
        budget: Wall-clock budget for this run

    Returns:
        ReclaimReport: scanned, reclaimed and skipped counts
    """
    now = now or timezone.now()
    if lease is None:
        lease = timedelta(minutes=queue_setting("claim_lease_minutes"))
    if batch_size is None:
        batch_size = queue_setting("reclaim_batch_size")
    budget = budget or BatchBudget()
    task_logger = get_task_logger("reclaim_stale_claims")

    cutoff = now - lease
    candidates = list(
        Intake.objects.filter(status=STATUS_CLAIMED, claimed_at__lt=cutoff)
        .order_by("claimed_at")
        .values("id", "claimed_by_id", "claimed_at")[:batch_size]
    )

    report = ReclaimReport()
    for row in candidates:
        if budget.exhausted():
            task_logger.warning(
                f"Batch budget spent after {report.scanned} of {len(candidates)} claims"
            )
            break
        report.scanned += 1

        try:
            updated = Intake.objects.filter(
                pk=row["id"],
                status=STATUS_CLAIMED,
                claimed_by_id=row["claimed_by_id"],
                claimed_at=row["claimed_at"],
            ).update(
                status=STATUS_PAID, claimed_by=None, claimed_at=None, updated_at=now
            )
        except Exception as e:
            report.skipped += 1
            task_logger.error(
                f"Failed to reclaim intake {row['id']}: {str(e)}",
                exc_info=True,
                extra={"intake_id": row["id"]},
            )
            continue

        if updated:
            report.reclaimed += 1
            held_minutes = (now - row["claimed_at"]).total_seconds() / 60
            task_logger.warning(
                f"Reclaimed stale claim on intake {row['id']} from reviewer "
                f"{row['claimed_by_id']} (held {held_minutes:.0f} min)",
                extra={"intake_id": row["id"]},
            )
        else:
            report.skipped += 1

    worker_items.labels(worker="reclaim_stale_claims", outcome="reclaimed").inc(
        report.reclaimed
    )
    worker_items.labels(worker="reclaim_stale_claims", outcome="skipped").inc(
        report.skipped
    )
    task_logger.info(f"Reclaim run finished: {report.to_dict()}")
    return report
