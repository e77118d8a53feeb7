"""
Logging filters for PHI/PII scrubbing.

Intake answers, patient identifiers and free-text decline reasons must never
reach log files or Sentry. These filters redact them from every record.

Usage:
    LOGGING = {
        'filters': {
            'phi_scrubber': {
                '()': 'intakeguard.logging_filters.PHIScrubberFilter',
            },
        },
        'handlers': {
            'console': {'filters': ['phi_scrubber'], ...},
        },
    }
"""

import logging
import re
from typing import Any, Dict, List, Optional, Pattern, Tuple


# =============================================================================
# PHI/PII Detection Patterns
# =============================================================================

# Medicare card numbers (10 digits, optionally grouped 4-5-1, plus IRN)
MEDICARE_PATTERNS = [
    re.compile(r"\b\d{4}\s?\d{5}\s?\d(?:[-/]\d)?\b"),
    re.compile(r"\bmedicare(?:[\s_]number)?\s*:?\s*[\d\s/-]{10,14}", re.IGNORECASE),
]

# Individual Healthcare Identifier (16 digits starting 8003)
IHI_PATTERNS = [
    re.compile(r"\b8003\s?\d{4}\s?\d{4}\s?\d{4}\b"),
]

DOB_PATTERNS = [
    re.compile(r"\b[Dd][Oo][Bb]\s*:?\s*\d{1,2}[/-]\d{1,2}[/-]\d{2,4}"),
    re.compile(
        r"\bdate[\s_]of[\s_]birth\s*:?\s*\d{1,2}[/-]\d{1,2}[/-]\d{2,4}", re.IGNORECASE
    ),
]

# Australian mobile/landline and international formats
PHONE_PATTERNS = [
    re.compile(r"(?:\+?61\s?|\b0)4\d{2}\s?\d{3}\s?\d{3}\b"),
    re.compile(r"(?:\+?61\s?|\b0)[2378]\s?\d{4}\s?\d{4}\b"),
]

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

PATIENT_NAME_PATTERNS = [
    re.compile(r"\b[Pp]atient[\s_]name\s*:?\s*[A-Za-z\s'-]+", re.IGNORECASE),
    re.compile(r"\b[Nn]ame\s*:?\s*[A-Z][a-z]+\s+[A-Z][a-z]+"),
]

ADDRESS_PATTERNS = [
    re.compile(
        r"\b\d+\s+[A-Za-z\s]+(?:Street|St|Avenue|Ave|Road|Rd|Parade|Pde|"
        r"Lane|Ln|Drive|Dr|Court|Ct|Crescent|Cres)\.?\b",
        re.IGNORECASE,
    ),
    re.compile(r"\baddress\s*:?\s*[^\n]+", re.IGNORECASE),
]

CREDIT_CARD_PATTERNS = [
    re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b"),
]


# =============================================================================
# PHI/PII Scrubber Filter
# =============================================================================


class PHIScrubberFilter(logging.Filter):
    """
    Logging filter that redacts PHI/PII from log messages and string extras.

    Example:
        Input:  "Draft failed for patient name: Jane Citizen, medicare 2123 45670 1"
        Output: "Draft failed for [REDACTED_NAME], [REDACTED_MEDICARE]"
    """

    def __init__(self, name: str = ""):
        super().__init__(name)

        # Order matters: the longer identifiers go first
        self.patterns: Dict[str, Tuple[List[Pattern], str]] = {
            "CREDIT_CARD": (CREDIT_CARD_PATTERNS, "[REDACTED_CC]"),
            "IHI": (IHI_PATTERNS, "[REDACTED_IHI]"),
            "MEDICARE": (MEDICARE_PATTERNS, "[REDACTED_MEDICARE]"),
            "DOB": (DOB_PATTERNS, "[REDACTED_DOB]"),
            "PHONE": (PHONE_PATTERNS, "[REDACTED_PHONE]"),
            "EMAIL": ([EMAIL_PATTERN], "[REDACTED_EMAIL]"),
            "PATIENT_NAME": (PATIENT_NAME_PATTERNS, "[REDACTED_NAME]"),
            "ADDRESS": (ADDRESS_PATTERNS, "[REDACTED_ADDRESS]"),
        }

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.scrub_phi(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: self.scrub_phi(value) if isinstance(value, str) else value
                    for key, value in record.args.items()
                }
            else:
                record.args = tuple(
                    self.scrub_phi(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        for key, value in list(record.__dict__.items()):
            if key in ("msg", "args") or not isinstance(value, str):
                continue
            setattr(record, key, self.scrub_phi(value))

        return True

    def scrub_phi(self, text: str) -> str:
        if not text:
            return text

        scrubbed_text = text
        for patterns, replacement in self.patterns.values():
            for pattern in patterns:
                scrubbed_text = pattern.sub(replacement, scrubbed_text)

        return scrubbed_text


class SelectivePHIScrubberFilter(PHIScrubberFilter):
    """
    Only redacts government identifiers, dates of birth and card numbers.

    For development, where emails and phone numbers help debugging.
    """

    def __init__(self, name: str = ""):
        super().__init__(name)
        self.patterns = {
            "CREDIT_CARD": (CREDIT_CARD_PATTERNS, "[REDACTED_CC]"),
            "IHI": (IHI_PATTERNS, "[REDACTED_IHI]"),
            "MEDICARE": (MEDICARE_PATTERNS, "[REDACTED_MEDICARE]"),
            "DOB": (DOB_PATTERNS, "[REDACTED_DOB]"),
        }


def scrub_dict(
    data: Dict[str, Any], scrubber: Optional[PHIScrubberFilter] = None
) -> Dict[str, Any]:
    """
    Scrub PHI/PII from a dictionary (alert extras, structured log payloads).

    Example:
        >>> scrub_dict({"error": "patient name: Jane Citizen"})
        {'error': '[REDACTED_NAME]'}
    """
    if scrubber is None:
        scrubber = PHIScrubberFilter()

    scrubbed = {}
    for key, value in data.items():
        if isinstance(value, str):
            scrubbed[key] = scrubber.scrub_phi(value)
        elif isinstance(value, dict):
            scrubbed[key] = scrub_dict(value, scrubber)
        elif isinstance(value, list):
            scrubbed[key] = [
                scrubber.scrub_phi(item) if isinstance(item, str) else item
                for item in value
            ]
        else:
            scrubbed[key] = value

    return scrubbed
