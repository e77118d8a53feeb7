"""
Typed event_data payloads for the compliance ledger.

Every event type has exactly one payload dataclass. The ledger refuses any
other shape, so event_data stays queryable and the taxonomy stays closed.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Type

from intakeguard.compliance import models as ledger_models


@dataclass(frozen=True)
class EmptyPayload:
    """Events whose meaning is carried entirely by the entry columns."""


@dataclass(frozen=True)
class RequestCreatedPayload:
    category: str = ""
    subtype: str = ""
    risk_score: Optional[int] = None


@dataclass(frozen=True)
class ClinicianOpenedPayload:
    forced: bool = False
    previous_holder_id: Optional[int] = None


@dataclass(frozen=True)
class ReviewDurationPayload:
    review_duration_ms: Optional[int] = None


@dataclass(frozen=True)
class NotePayload:
    note: Optional[str] = None


@dataclass(frozen=True)
class ReasonPayload:
    reason: Optional[str] = None


@dataclass(frozen=True)
class DeclinePayload:
    rejection_reason: str


@dataclass(frozen=True)
class OutcomeChangePayload:
    change_reason: Optional[str] = None


PAYLOAD_TYPES: Dict[str, Type[Any]] = {
    ledger_models.EVENT_REQUEST_CREATED: RequestCreatedPayload,
    ledger_models.EVENT_REQUEST_REVIEWED: EmptyPayload,
    ledger_models.EVENT_OUTCOME_ASSIGNED: NotePayload,
    ledger_models.EVENT_CLINICIAN_OPENED_REQUEST: ClinicianOpenedPayload,
    ledger_models.EVENT_CLINICIAN_REVIEWED_REQUEST: ReviewDurationPayload,
    ledger_models.EVENT_CLINICIAN_SELECTED_OUTCOME: NotePayload,
    ledger_models.EVENT_TRIAGE_APPROVED: NotePayload,
    ledger_models.EVENT_TRIAGE_NEEDS_CALL: ReasonPayload,
    ledger_models.EVENT_TRIAGE_DECLINED: DeclinePayload,
    ledger_models.EVENT_TRIAGE_OUTCOME_CHANGED: OutcomeChangePayload,
    ledger_models.EVENT_CALL_REQUIRED_FLAGGED: ReasonPayload,
    ledger_models.EVENT_CALL_INITIATED: EmptyPayload,
    ledger_models.EVENT_CALL_COMPLETED: EmptyPayload,
    ledger_models.EVENT_DECISION_AFTER_CALL: EmptyPayload,
    ledger_models.EVENT_NO_PRESCRIBING_IN_PLATFORM: EmptyPayload,
    ledger_models.EVENT_EXTERNAL_PRESCRIBING_INDICATED: EmptyPayload,
}


def payload_type_for(event_type: str) -> Type[Any]:
    """
    Return the payload class registered for event_type.

    Raises:
        ValueError: If event_type is not part of the ledger taxonomy
    """
    try:
        return PAYLOAD_TYPES[event_type]
    except KeyError:
        raise ValueError(f"Unknown compliance event type: {event_type}") from None


def serialize_payload(event_type: str, payload: Any) -> Dict[str, Any]:
    """
    Check payload against the registry and convert it to event_data.

    None-valued fields are dropped so optional context does not clutter
    the stored JSON.

    Raises:
        ValueError: If event_type is unknown
        TypeError: If payload is not the class registered for event_type
    """
    expected = payload_type_for(event_type)
    if payload is None:
        # Payloads with required fields raise TypeError here
        payload = expected()
    if type(payload) is not expected:
        raise TypeError(
            f"{event_type} requires {expected.__name__}, "
            f"got {type(payload).__name__}"
        )
    return {key: value for key, value in asdict(payload).items() if value is not None}
