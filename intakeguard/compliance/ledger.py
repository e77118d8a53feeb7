"""
Compliance Audit Ledger

Append-only record of every clinically significant action on an intake.
Writes never block the clinical action: a failed write is logged, reported
to operational monitoring and returns None. Read helpers rebuild the
request timeline and check whether a decided request is audit-ready.

Callers use the log_* wrappers below rather than building ComplianceEvent
directly, which keeps the event taxonomy closed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from django.db import DatabaseError, transaction

from intakeguard.compliance import models as ledger_models
from intakeguard.compliance.models import ComplianceAuditEntry
from intakeguard.compliance.payloads import (
    ClinicianOpenedPayload,
    DeclinePayload,
    NotePayload,
    OutcomeChangePayload,
    ReasonPayload,
    RequestCreatedPayload,
    ReviewDurationPayload,
    serialize_payload,
)
from intakeguard.monitoring.alerts import send_alert

logger = logging.getLogger(__name__)


@dataclass
class ComplianceEvent:
    """A ledger entry before it is written."""

    event_type: str
    request_id: int
    request_type: str
    actor_role: str
    actor_id: Optional[int] = None
    is_human_action: bool = True
    outcome: Optional[str] = None
    previous_outcome: Optional[str] = None
    call_required: Optional[bool] = None
    call_occurred: Optional[bool] = None
    call_completed_before_decision: Optional[bool] = None
    prescribing_occurred_in_platform: bool = False
    external_prescribing_reference: Optional[str] = None
    payload: Any = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class AuditReadiness:
    """Whether a request's ledger holds the minimum evidence for audit."""

    request_id: int
    ready: bool
    missing: List[str] = field(default_factory=list)
    outcome: Optional[str] = None
    reviewed_by: Optional[int] = None
    decision_at: Optional[datetime] = None
    call_required: bool = False
    call_completed_before_decision: Optional[bool] = None
    has_human_review: bool = False

    def to_dict(self):
        return {
            "request_id": self.request_id,
            "ready": self.ready,
            "missing": list(self.missing),
            "outcome": self.outcome,
            "reviewed_by": self.reviewed_by,
            "decision_at": self.decision_at.isoformat() if self.decision_at else None,
            "call_required": self.call_required,
            "call_completed_before_decision": self.call_completed_before_decision,
            "has_human_review": self.has_human_review,
        }


def log_event(entry: ComplianceEvent) -> Optional[int]:
    """
    Append one entry to the compliance ledger.

    Args:
        entry: The event to record

    Returns:
        int: Id of the new ledger row, or None if the write failed

    Raises:
        TypeError: If entry.payload is not the payload class registered for
            entry.event_type (raised before anything is written)
        ValueError: If entry.event_type is not part of the taxonomy
    """
    event_data = serialize_payload(entry.event_type, entry.payload)

    try:
        # Savepoint keeps a failed write from poisoning the caller's transaction
        with transaction.atomic():
            row = ComplianceAuditEntry.objects.create(
                event_type=entry.event_type,
                request_id=entry.request_id,
                request_type=entry.request_type,
                actor_id=entry.actor_id,
                actor_role=entry.actor_role,
                is_human_action=entry.is_human_action,
                outcome=entry.outcome,
                previous_outcome=entry.previous_outcome,
                call_required=entry.call_required,
                call_occurred=entry.call_occurred,
                call_completed_before_decision=entry.call_completed_before_decision,
                prescribing_occurred_in_platform=entry.prescribing_occurred_in_platform,
                external_prescribing_reference=entry.external_prescribing_reference,
                event_data=event_data,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
            )
    except DatabaseError as e:
        logger.exception(
            f"Failed to write compliance event {entry.event_type} "
            f"for request {entry.request_id}",
            extra={"event_type": entry.event_type, "intake_id": entry.request_id},
        )
        send_alert(
            "Compliance ledger write failed",
            level="error",
            tags={"event_type": entry.event_type},
            extra={"request_id": entry.request_id, "error": str(e)},
        )
        return None

    logger.info(
        f"Compliance event recorded: {entry.event_type}",
        extra={"event_type": entry.event_type, "intake_id": entry.request_id},
    )
    return row.id


# =============================================================================
# Request Lifecycle
# =============================================================================


def log_request_created(
    request_id, request_type, patient_id, category="", subtype="", risk_score=None
):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_REQUEST_CREATED,
            request_id=request_id,
            request_type=request_type,
            actor_id=patient_id,
            actor_role=ledger_models.ROLE_PATIENT,
            payload=RequestCreatedPayload(
                category=category, subtype=subtype, risk_score=risk_score
            ),
        )
    )


def log_request_reviewed(
    request_id, request_type, clinician_id, ip_address=None, user_agent=None
):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_REQUEST_REVIEWED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )


def log_outcome_assigned(
    request_id, request_type, clinician_id, outcome, previous_outcome=None, note=None
):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_OUTCOME_ASSIGNED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            outcome=outcome,
            previous_outcome=previous_outcome,
            payload=NotePayload(note=note),
        )
    )


# =============================================================================
# Clinician Involvement
# =============================================================================


def log_clinician_opened_request(
    request_id,
    request_type,
    clinician_id,
    ip_address=None,
    user_agent=None,
    forced=False,
    previous_holder_id=None,
    actor_role=ledger_models.ROLE_CLINICIAN,
):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_CLINICIAN_OPENED_REQUEST,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=actor_role,
            payload=ClinicianOpenedPayload(
                forced=forced, previous_holder_id=previous_holder_id
            ),
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )


def log_clinician_reviewed_request(
    request_id,
    request_type,
    clinician_id,
    review_duration_ms=None,
    ip_address=None,
    user_agent=None,
):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_CLINICIAN_REVIEWED_REQUEST,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            payload=ReviewDurationPayload(review_duration_ms=review_duration_ms),
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )


def log_clinician_selected_outcome(
    request_id,
    request_type,
    clinician_id,
    outcome,
    call_required=None,
    call_completed_before_decision=None,
    note=None,
):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_CLINICIAN_SELECTED_OUTCOME,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            outcome=outcome,
            call_required=call_required,
            call_completed_before_decision=call_completed_before_decision,
            payload=NotePayload(note=note),
        )
    )


# =============================================================================
# Triage Outcome
# =============================================================================


def log_triage_approved(request_id, request_type, clinician_id, note=None):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_TRIAGE_APPROVED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            outcome=ledger_models.OUTCOME_APPROVED,
            payload=NotePayload(note=note),
        )
    )


def log_triage_needs_call(request_id, request_type, clinician_id, reason=None):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_TRIAGE_NEEDS_CALL,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            outcome=ledger_models.OUTCOME_NEEDS_CALL,
            call_required=True,
            payload=ReasonPayload(reason=reason),
        )
    )


def log_triage_declined(request_id, request_type, clinician_id, rejection_reason):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_TRIAGE_DECLINED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            outcome=ledger_models.OUTCOME_DECLINED,
            payload=DeclinePayload(rejection_reason=rejection_reason),
        )
    )


def log_triage_outcome_changed(
    request_id, request_type, clinician_id, new_outcome, previous_outcome, reason=None
):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_TRIAGE_OUTCOME_CHANGED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            outcome=new_outcome,
            previous_outcome=previous_outcome,
            payload=OutcomeChangePayload(change_reason=reason),
        )
    )


# =============================================================================
# Synchronous Contact
# =============================================================================


def log_call_required_flagged(request_id, request_type, clinician_id, reason=None):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_CALL_REQUIRED_FLAGGED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            call_required=True,
            payload=ReasonPayload(reason=reason),
        )
    )


def log_call_initiated(request_id, request_type, clinician_id):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_CALL_INITIATED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            call_required=True,
            call_occurred=True,
        )
    )


def log_call_completed(request_id, request_type, clinician_id, before_decision):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_CALL_COMPLETED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            call_required=True,
            call_occurred=True,
            call_completed_before_decision=before_decision,
        )
    )


def log_decision_after_call(request_id, request_type, clinician_id, outcome):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_DECISION_AFTER_CALL,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            outcome=outcome,
            call_required=True,
            call_occurred=True,
            call_completed_before_decision=True,
        )
    )


# =============================================================================
# Prescribing Boundary
# =============================================================================


def log_no_prescribing_in_platform(request_id, request_type, clinician_id):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_NO_PRESCRIBING_IN_PLATFORM,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            prescribing_occurred_in_platform=False,
        )
    )


def log_external_prescribing_indicated(
    request_id, request_type, clinician_id, external_system
):
    return log_event(
        ComplianceEvent(
            event_type=ledger_models.EVENT_EXTERNAL_PRESCRIBING_INDICATED,
            request_id=request_id,
            request_type=request_type,
            actor_id=clinician_id,
            actor_role=ledger_models.ROLE_CLINICIAN,
            prescribing_occurred_in_platform=False,
            external_prescribing_reference=external_system,
        )
    )


# =============================================================================
# Read Side
# =============================================================================


def get_compliance_timeline(request_id) -> List[ComplianceAuditEntry]:
    """Every ledger entry for request_id, oldest first (ties broken by id)."""
    return list(ComplianceAuditEntry.objects.for_request(request_id))


DECISIVE_OUTCOMES = (ledger_models.OUTCOME_APPROVED, ledger_models.OUTCOME_DECLINED)


def check_audit_readiness(request_id) -> AuditReadiness:
    """
    Check that a request's ledger holds the minimum evidence for audit.

    Missing elements, in the order they are checked:
        outcome: no entry ever carried a triage outcome
        clinician_selected_outcome: no clinician_selected_outcome entry
        human_review: no human clinician action was recorded
        call_completed_before_decision: a call was flagged as required, the
            request was approved or declined, and no entry confirms the call
            finished before the decision
        prescribing_boundary_violated: an entry says prescribing happened
            inside the platform

    Args:
        request_id: Intake id

    Returns:
        AuditReadiness: ready is True only when nothing is missing
    """
    timeline = get_compliance_timeline(request_id)

    outcome = None
    reviewed_by = None
    decision_at = None
    selected_outcome_seen = False
    has_human_review = False
    call_required = False
    call_completed_before_decision = None
    boundary_violated = False

    for row in timeline:
        if row.outcome:
            outcome = row.outcome
            reviewed_by = row.actor_id
            decision_at = row.created_at
        if row.event_type == ledger_models.EVENT_CLINICIAN_SELECTED_OUTCOME:
            selected_outcome_seen = True
        if row.is_human_action and row.actor_role in (
            ledger_models.ROLE_CLINICIAN,
            ledger_models.ROLE_ADMIN,
        ):
            has_human_review = True
        if row.call_required:
            call_required = True
        if row.call_completed_before_decision is True:
            call_completed_before_decision = True
        elif (
            row.call_completed_before_decision is False
            and call_completed_before_decision is None
        ):
            call_completed_before_decision = False
        if row.prescribing_occurred_in_platform:
            boundary_violated = True

    missing = []
    if outcome is None:
        missing.append("outcome")
    if not selected_outcome_seen:
        missing.append(ledger_models.EVENT_CLINICIAN_SELECTED_OUTCOME)
    if not has_human_review:
        missing.append("human_review")
    if (
        call_required
        and outcome in DECISIVE_OUTCOMES
        and call_completed_before_decision is not True
    ):
        missing.append("call_completed_before_decision")
    if boundary_violated:
        missing.append("prescribing_boundary_violated")

    return AuditReadiness(
        request_id=request_id,
        ready=not missing,
        missing=missing,
        outcome=outcome,
        reviewed_by=reviewed_by,
        decision_at=decision_at,
        call_required=call_required,
        call_completed_before_decision=call_completed_before_decision,
        has_human_review=has_human_review,
    )
