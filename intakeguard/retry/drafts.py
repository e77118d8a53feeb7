"""AI draft generation side effect, called by the retry coordinator."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


@dataclass
class DraftResult:
    success: bool
    error: Optional[str] = None


DraftGenerator = Callable[[int], DraftResult]


def generate_draft_via_http(intake_id: int) -> DraftResult:
    """POST the intake id to the draft service and report the outcome."""
    url = getattr(settings, "DRAFT_SERVICE_URL", "")
    if not url:
        return DraftResult(success=False, error="Draft service URL not configured")

    timeout = getattr(settings, "DRAFT_SERVICE_TIMEOUT", 30)
    try:
        response = requests.post(url, json={"intake_id": intake_id}, timeout=timeout)
    except requests.exceptions.Timeout:
        return DraftResult(success=False, error="Request timed out")
    except requests.exceptions.RequestException as e:
        return DraftResult(success=False, error=f"Request failed: {str(e)}")

    if not 200 <= response.status_code < 300:
        return DraftResult(
            success=False,
            error=f"HTTP {response.status_code}: {response.text[:200]}",
        )

    logger.info(f"Draft generated for intake {intake_id}")
    return DraftResult(success=True)


def get_draft_generator() -> DraftGenerator:
    """Load the generator named by settings.DRAFT_GENERATOR."""
    return import_string(settings.DRAFT_GENERATOR)
