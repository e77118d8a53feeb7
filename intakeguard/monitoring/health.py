"""
Dependency health checks.

Probes the database, the cache and (when configured) the payment provider.
A failing dependency raises a throttled alert; apart from the throttle
entries in the cache nothing is written.
"""

import time
from typing import Any, Callable, Dict, Optional

import requests
from django.core.cache import cache
from django.db import connection
from django.utils import timezone

from intakeguard.conf import monitoring_setting
from intakeguard.constants import HEALTH_PROBE_TIMEOUT_SECONDS
from intakeguard.logging_utils import get_task_logger
from intakeguard.monitoring.alerts import AlertSink, AlertThrottle, send_alert

logger = get_task_logger("run_health_checks")

STATUS_OK = "ok"
STATUS_ERROR = "error"

CACHE_PROBE_KEY = "health_check:probe"


class HealthCheckResult:
    """Result of a single dependency probe."""

    def __init__(
        self,
        service: str,
        status: str,
        latency_ms: Optional[float] = None,
        error: Optional[str] = None,
    ):
        self.service = service
        self.status = status
        self.latency_ms = latency_ms
        self.error = error

    @property
    def healthy(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> Dict[str, Any]:
        data = {"status": self.status}
        if self.latency_ms is not None:
            data["latency_ms"] = self.latency_ms
        if self.error:
            data["error"] = self.error
        return data


class HealthReport:
    """Aggregate of every probe; healthy only if all of them are."""

    def __init__(self, services: Dict[str, HealthCheckResult]):
        self.services = services
        self.healthy = all(result.healthy for result in services.values())
        self.checked_at = timezone.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "services": {name: result.to_dict() for name, result in self.services.items()},
            "checked_at": self.checked_at.isoformat(),
        }


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 1)


def check_database() -> HealthCheckResult:
    start = time.monotonic()
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
    return HealthCheckResult("database", STATUS_OK, latency_ms=_elapsed_ms(start))


def check_cache() -> HealthCheckResult:
    start = time.monotonic()
    token = str(time.time())
    cache.set(CACHE_PROBE_KEY, token, timeout=30)
    if cache.get(CACHE_PROBE_KEY) != token:
        return HealthCheckResult(
            "cache",
            STATUS_ERROR,
            latency_ms=_elapsed_ms(start),
            error="Cache round trip returned a different value",
        )
    return HealthCheckResult("cache", STATUS_OK, latency_ms=_elapsed_ms(start))


def check_payment_provider(url: str, timeout: Optional[float] = None) -> HealthCheckResult:
    if timeout is None:
        timeout = monitoring_setting("probe_timeout", HEALTH_PROBE_TIMEOUT_SECONDS)
    start = time.monotonic()
    response = requests.get(url, timeout=timeout)
    if response.status_code >= 400:
        return HealthCheckResult(
            "payment_provider",
            STATUS_ERROR,
            latency_ms=_elapsed_ms(start),
            error=f"HTTP {response.status_code}",
        )
    return HealthCheckResult("payment_provider", STATUS_OK, latency_ms=_elapsed_ms(start))


def default_checks() -> Dict[str, Callable[[], HealthCheckResult]]:
    """Probes for the configured dependencies, keyed by service name."""
    checks = {
        "database": check_database,
        "cache": check_cache,
    }
    payment_url = monitoring_setting("payment_provider_url")
    if payment_url:
        checks["payment_provider"] = lambda: check_payment_provider(payment_url)
    return checks


def run_health_checks(
    checks: Optional[Dict[str, Callable[[], HealthCheckResult]]] = None,
    throttle: Optional[AlertThrottle] = None,
    sink: Optional[AlertSink] = None,
) -> HealthReport:
    """
    Run every probe and alert on failures, at most once per cooldown per service.

    Args:
        checks: Probes keyed by service name (defaults to default_checks())
        throttle: Alert cooldown tracker
        sink: Alert destination (defaults to Sentry)

    Returns:
        HealthReport: per-service results and the overall verdict
    """
    checks = checks if checks is not None else default_checks()
    throttle = throttle or AlertThrottle()

    results = {}
    for name, check in checks.items():
        start = time.monotonic()
        try:
            results[name] = check()
        except Exception as e:
            logger.error(f"Health check {name} raised: {str(e)}", exc_info=True)
            results[name] = HealthCheckResult(
                name, STATUS_ERROR, latency_ms=_elapsed_ms(start), error=str(e)
            )

    report = HealthReport(results)

    for name, result in results.items():
        if result.healthy:
            continue
        if not throttle.should_alert(f"health:{name}"):
            continue
        send_alert(
            f"Health check failed: {name}",
            level="error",
            tags={"service": name, "alert_type": "health_check"},
            extra={"error": result.error, "latency_ms": result.latency_ms},
            sink=sink,
        )

    if report.healthy:
        logger.info("All dependencies healthy")
    else:
        failing = [name for name, result in results.items() if not result.healthy]
        logger.warning(f"Unhealthy dependencies: {', '.join(failing)}")

    return report
