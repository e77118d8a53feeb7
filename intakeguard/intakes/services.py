"""
Intake lifecycle services: submission and payment confirmation.

Everything after payment (claiming, release, completion) belongs to
intakeguard.claims.services.
"""

import logging
from datetime import datetime
from typing import Optional

from django.db import transaction
from django.utils import timezone

from intakeguard.compliance.ledger import log_request_created
from intakeguard.fraud.detector import run_fraud_checks
from intakeguard.intakes.models import (
    PAYMENT_PAID,
    REQUEST_TYPE_INTAKE,
    STATUS_PAID,
    STATUS_SUBMITTED,
    Intake,
)
from intakeguard.tasks import enqueue_or_run_sync, generate_intake_drafts

logger = logging.getLogger(__name__)


def submit_intake(
    patient,
    request_type: str = REQUEST_TYPE_INTAKE,
    category: str = "",
    subtype: str = "",
    form_started_at: Optional[datetime] = None,
    form_finished_at: Optional[datetime] = None,
    medicare_number: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Intake:
    """
    Store a new intake, score it for fraud and record request_created.

    Returns:
        Intake: The stored intake with risk_score and risk_flags set
    """
    now = now or timezone.now()

    with transaction.atomic():
        intake = Intake.objects.create(
            patient=patient,
            request_type=request_type,
            category=category,
            subtype=subtype,
        )
        result = run_fraud_checks(
            patient,
            category,
            subtype,
            form_started_at=form_started_at,
            form_finished_at=form_finished_at,
            medicare_number=medicare_number,
            exclude_intake_id=intake.id,
            now=now,
        )
        intake.risk_score = result.risk_score
        intake.risk_flags = [flag.to_dict() for flag in result.flags]
        intake.save(update_fields=["risk_score", "risk_flags", "updated_at"])

    log_request_created(
        intake.id,
        intake.request_type,
        patient.id if patient is not None else None,
        category=category,
        subtype=subtype,
        risk_score=result.risk_score,
    )
    logger.info(
        f"Intake {intake.id} submitted (risk score {result.risk_score})",
        extra={"intake_id": intake.id},
    )
    return intake


def mark_paid(
    intake_id: int, now: Optional[datetime] = None, generate_drafts: bool = False
) -> bool:
    """
    Move a submitted intake into the review queue once payment clears.

    Conditional on status="submitted", so a replayed payment confirmation
    is a no-op.

    Args:
        intake_id: Intake to mark paid
        now: Payment time (defaults to timezone.now())
        generate_drafts: Also attempt AI draft generation, enqueueing a
            retry if it fails

    Returns:
        bool: True if this call made the transition
    """
    now = now or timezone.now()
    updated = Intake.objects.filter(pk=intake_id, status=STATUS_SUBMITTED).update(
        status=STATUS_PAID,
        payment_status=PAYMENT_PAID,
        paid_at=now,
        updated_at=now,
    )

    if not updated:
        logger.info(
            f"Intake {intake_id} not marked paid (missing or not submitted)",
            extra={"intake_id": intake_id},
        )
        return False

    logger.info(f"Intake {intake_id} paid", extra={"intake_id": intake_id})

    if generate_drafts:
        enqueue_or_run_sync(generate_intake_drafts, intake_id)

    return True
