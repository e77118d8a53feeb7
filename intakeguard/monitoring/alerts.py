"""
Operational alerts for the review-queue workers.

Alerts go to an AlertSink (Sentry by default) and are advisory: a sink that
fails is logged and never breaks the worker that raised the alert.

Usage:
    from intakeguard.monitoring.alerts import AlertThrottle, send_alert

    throttle = AlertThrottle()
    if throttle.should_alert("health:database"):
        send_alert("Database health check failed", level="error",
                   tags={"service": "database"})
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol

import sentry_sdk
from django.core.cache import cache as default_cache
from django.utils import timezone

from intakeguard.conf import monitoring_setting
from intakeguard.constants import ALERT_COOLDOWN_SECONDS
from intakeguard.logging_filters import scrub_dict

logger = logging.getLogger("intakeguard.monitoring.alerts")

LEVEL_TO_LOGGING = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


class AlertSink(Protocol):
    def capture_message(
        self,
        text: str,
        level: str,
        tags: Optional[Dict[str, str]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class SentryAlertSink:
    """Forwards alerts to Sentry and mirrors them to the local log."""

    def capture_message(
        self,
        text: str,
        level: str,
        tags: Optional[Dict[str, str]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        extra = scrub_dict(extra or {})
        logger.log(
            LEVEL_TO_LOGGING.get(level, logging.WARNING),
            f"ALERT: {text}",
            extra={"alert_tags": tags or {}, "alert_extra": extra},
        )
        sentry_sdk.capture_message(text, level=level, tags=tags or {}, extras=extra)


class NullAlertSink:
    """Sink that drops everything; used when alerts are disabled."""

    def capture_message(self, text, level, tags=None, extra=None):
        logger.debug(f"Alert dropped (alerts disabled): {text}")


def get_default_sink() -> AlertSink:
    if not monitoring_setting("enabled", True):
        return NullAlertSink()
    return SentryAlertSink()


def send_alert(
    text: str,
    level: str = "warning",
    tags: Optional[Dict[str, str]] = None,
    extra: Optional[Dict[str, Any]] = None,
    sink: Optional[AlertSink] = None,
) -> bool:
    """
    Send an alert through sink, logging (not raising) any sink failure.

    Returns:
        bool: True if the sink accepted the alert
    """
    sink = sink or get_default_sink()
    try:
        sink.capture_message(text, level=level, tags=tags, extra=extra)
        return True
    except Exception as e:
        logger.error(f"Failed to deliver alert '{text}': {str(e)}", exc_info=True)
        return False


class AlertThrottle:
    """
    Cooldown per alert key, stored in the Django cache.

    With the Redis cache the cooldown is shared by every worker process;
    with LocMem it only holds within one process. Alerts are advisory, so
    an occasional duplicate across processes is acceptable.
    """

    key_prefix = "monitoring_alert"

    def __init__(
        self,
        cache=None,
        cooldown_seconds: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.cache = cache or default_cache
        if cooldown_seconds is None:
            cooldown_seconds = monitoring_setting(
                "cooldown_period", ALERT_COOLDOWN_SECONDS
            )
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock or timezone.now

    def _cache_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def should_alert(self, key: str) -> bool:
        """
        Return True and start a new cooldown if key is not cooling down.

        Args:
            key: Alert identity, e.g. "health:database"
        """
        now = self.clock()
        try:
            return self._start_cooldown(key, now)
        except Exception as e:
            # Without the cache there is no cooldown; send rather than drop
            logger.error(
                f"Alert throttle unavailable for {key}: {str(e)}", exc_info=True
            )
            return True

    def _start_cooldown(self, key: str, now: datetime) -> bool:
        cache_key = self._cache_key(key)

        if self.cache.add(cache_key, now, timeout=self.cooldown_seconds):
            return True

        last_sent = self.cache.get(cache_key)
        if last_sent is not None:
            elapsed = (now - last_sent).total_seconds()
            if elapsed < self.cooldown_seconds:
                logger.debug(f"Alert suppressed (cooldown): {key}")
                return False

        self.cache.set(cache_key, now, timeout=self.cooldown_seconds)
        return True

    def reset(self, key: str) -> None:
        self.cache.delete(self._cache_key(key))
