"""Read review-queue tuning from settings with constant fallbacks."""

from typing import Any

from django.conf import settings

from intakeguard.constants import REVIEW_QUEUE_DEFAULTS


def queue_setting(name: str) -> Any:
    """
    Return settings.REVIEW_QUEUE[name], or the default from constants.

    Raises:
        KeyError: If name is not a known review-queue setting
    """
    if name not in REVIEW_QUEUE_DEFAULTS:
        raise KeyError(f"Unknown review queue setting: {name}")
    overrides = getattr(settings, "REVIEW_QUEUE", {}) or {}
    return overrides.get(name, REVIEW_QUEUE_DEFAULTS[name])


def monitoring_setting(name: str, default: Any = None) -> Any:
    monitoring_config = getattr(settings, "MONITORING_ALERTS", {}) or {}
    return monitoring_config.get(name, default)
