"""
Fraud Detection Service

Scores an intake submission for abuse signals. Runs once at submission;
the resulting risk score and flags are stored on the Intake so reviewers
see them in the queue.

Checks:
- multiple_daily: three or more intakes from the patient today
- soft_flag: exactly two intakes today (approaching the daily limit)
- duplicate_request: same category/subtype within the last hour
- rapid_completion: form finished in under 30 seconds
- suspicious_medicare: obviously fabricated Medicare numbers

Each flag adds its severity weight to the risk score, capped at 100.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from django.utils import timezone

from intakeguard.constants import (
    FRAUD_DUPLICATE_WINDOW_MINUTES,
    FRAUD_MAX_RISK_SCORE,
    FRAUD_MULTIPLE_DAILY_HIGH,
    FRAUD_MULTIPLE_DAILY_THRESHOLD,
    FRAUD_RAPID_COMPLETION_HIGH_SECONDS,
    FRAUD_RAPID_COMPLETION_SECONDS,
    FRAUD_SEVERITY_WEIGHTS,
)
from intakeguard.intakes.models import Intake

logger = logging.getLogger(__name__)

SUSPICIOUS_MEDICARE_PATTERNS = {
    "repeated_digit": re.compile(r"^(\d)\1{9}$"),
    "sequential": re.compile(r"^1234567890$"),
    "reverse_sequential": re.compile(r"^0987654321$"),
    "all_zeros": re.compile(r"^0{10}$"),
}


@dataclass
class FraudFlag:
    type: str
    severity: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FraudCheckResult:
    flagged: bool
    flags: List[FraudFlag]
    risk_score: int


def _start_of_day(now: datetime) -> datetime:
    return timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)


def check_multiple_daily(patient, now: datetime) -> Optional[FraudFlag]:
    count = Intake.objects.filter(
        patient=patient, created_at__gte=_start_of_day(now)
    ).count()

    if count >= FRAUD_MULTIPLE_DAILY_THRESHOLD:
        severity = "high" if count >= FRAUD_MULTIPLE_DAILY_HIGH else "medium"
        return FraudFlag(
            type="multiple_daily",
            severity=severity,
            details={"count": count, "date": _start_of_day(now).date().isoformat()},
        )
    return None


def check_soft_flag(patient, category: str, now: datetime) -> Optional[FraudFlag]:
    count = Intake.objects.filter(
        patient=patient, created_at__gte=_start_of_day(now)
    ).count()

    if count == FRAUD_MULTIPLE_DAILY_THRESHOLD - 1:
        return FraudFlag(
            type="soft_flag",
            severity="low",
            details={
                "reason": "approaching_daily_limit",
                "current_count": count,
                "threshold": FRAUD_MULTIPLE_DAILY_THRESHOLD,
                "category": category,
            },
        )
    return None


def check_duplicate_request(
    patient,
    category: str,
    subtype: str,
    now: datetime,
    exclude_intake_id: Optional[int] = None,
) -> Optional[FraudFlag]:
    window_start = now - timedelta(minutes=FRAUD_DUPLICATE_WINDOW_MINUTES)
    duplicates = Intake.objects.filter(
        patient=patient,
        category=category,
        subtype=subtype,
        created_at__gte=window_start,
    )
    if exclude_intake_id is not None:
        duplicates = duplicates.exclude(pk=exclude_intake_id)

    existing_id = duplicates.values_list("id", flat=True).first()
    if existing_id is not None:
        return FraudFlag(
            type="duplicate_request",
            severity="medium",
            details={
                "existing_intake_id": existing_id,
                "category": category,
                "subtype": subtype,
            },
        )
    return None


def check_rapid_completion(
    started_at: datetime, finished_at: datetime
) -> Optional[FraudFlag]:
    duration_seconds = (finished_at - started_at).total_seconds()

    if duration_seconds < FRAUD_RAPID_COMPLETION_SECONDS:
        severity = (
            "high" if duration_seconds < FRAUD_RAPID_COMPLETION_HIGH_SECONDS else "medium"
        )
        return FraudFlag(
            type="rapid_completion",
            severity=severity,
            details={"duration_seconds": duration_seconds},
        )
    return None


def check_suspicious_medicare(medicare_number: str) -> Optional[FraudFlag]:
    digits = re.sub(r"[\s-]", "", medicare_number)

    for name, pattern in SUSPICIOUS_MEDICARE_PATTERNS.items():
        if pattern.match(digits):
            # The number itself is PHI; only the pattern name is kept
            return FraudFlag(
                type="suspicious_medicare",
                severity="high",
                details={"pattern": name},
            )
    return None


def calculate_risk_score(flags: List[FraudFlag]) -> int:
    score = sum(
        FRAUD_SEVERITY_WEIGHTS.get(flag.severity, FRAUD_SEVERITY_WEIGHTS["low"])
        for flag in flags
    )
    return min(score, FRAUD_MAX_RISK_SCORE)


def run_fraud_checks(
    patient,
    category: str,
    subtype: str,
    form_started_at: Optional[datetime] = None,
    form_finished_at: Optional[datetime] = None,
    medicare_number: Optional[str] = None,
    exclude_intake_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> FraudCheckResult:
    """
    Run every fraud check for one submission.

    Daily counts include the submission itself when it is already stored;
    pass its id as exclude_intake_id so it is not reported as its own
    duplicate.

    Args:
        patient: Submitting user (None skips the per-patient checks)
        category: Intake category
        subtype: Intake subtype
        form_started_at: When the patient opened the form
        form_finished_at: When the patient submitted it
        medicare_number: Medicare number entered, if any
        exclude_intake_id: The submission's own intake id
        now: Evaluation time (defaults to timezone.now())

    Returns:
        FraudCheckResult: flags raised and the capped risk score
    """
    now = now or timezone.now()
    flags: List[FraudFlag] = []

    if patient is not None:
        multiple_daily = check_multiple_daily(patient, now)
        if multiple_daily:
            flags.append(multiple_daily)

    if medicare_number:
        suspicious_medicare = check_suspicious_medicare(medicare_number)
        if suspicious_medicare:
            flags.append(suspicious_medicare)

    if form_started_at and form_finished_at:
        rapid_completion = check_rapid_completion(form_started_at, form_finished_at)
        if rapid_completion:
            flags.append(rapid_completion)

    if patient is not None:
        duplicate = check_duplicate_request(
            patient, category, subtype, now, exclude_intake_id=exclude_intake_id
        )
        if duplicate:
            flags.append(duplicate)

        soft_flag = check_soft_flag(patient, category, now)
        if soft_flag:
            flags.append(soft_flag)

    risk_score = calculate_risk_score(flags)

    if flags:
        logger.warning(
            f"Fraud checks raised {len(flags)} flag(s), risk score {risk_score}",
            extra={"intake_id": exclude_intake_id},
        )

    return FraudCheckResult(flagged=bool(flags), flags=flags, risk_score=risk_score)
