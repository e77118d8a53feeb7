"""
Queue SLA monitor.

Finds paid intakes nobody has claimed within the SLA window and raises one
alert per run: critical_sla_breach when anything is past the critical
threshold, otherwise sla_warning. Read-only apart from the alert.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from django.utils import timezone

from intakeguard.conf import queue_setting
from intakeguard.constants import SLA_ALERT_OLDEST_COUNT
from intakeguard.intakes.models import PAYMENT_PAID, STATUS_PAID, Intake
from intakeguard.logging_utils import get_task_logger
from intakeguard.monitoring.alerts import AlertSink, send_alert

logger = get_task_logger("check_stale_queue")

ALERT_CRITICAL = "critical_sla_breach"
ALERT_WARNING = "sla_warning"


@dataclass
class StaleQueueReport:
    stale_count: int = 0
    critical_count: int = 0
    warning_count: int = 0
    oldest_wait_hours: List[float] = field(default_factory=list)
    alert: Optional[str] = None

    def to_dict(self):
        return {
            "stale_count": self.stale_count,
            "critical_count": self.critical_count,
            "warning_count": self.warning_count,
            "oldest_wait_hours": self.oldest_wait_hours,
            "alert": self.alert,
        }


def check_stale_queue(
    now: Optional[datetime] = None,
    sink: Optional[AlertSink] = None,
    warning_hours: Optional[float] = None,
    critical_hours: Optional[float] = None,
    batch_size: Optional[int] = None,
) -> StaleQueueReport:
    """
    Inspect the oldest unclaimed paid intakes and alert on SLA breaches.

    Args:
        now: Evaluation time (defaults to timezone.now())
        sink: Alert destination (defaults to Sentry)
        warning_hours: Wait after which an intake is stale
        critical_hours: Wait after which a stale intake is critical
        batch_size: Max stale intakes inspected

    Returns:
        StaleQueueReport: counts, the oldest wait times and the alert sent
    """
    now = now or timezone.now()
    if warning_hours is None:
        warning_hours = queue_setting("sla_warning_hours")
    if critical_hours is None:
        critical_hours = queue_setting("sla_critical_hours")
    if batch_size is None:
        batch_size = queue_setting("sla_batch_size")

    warning_cutoff = now - timedelta(hours=warning_hours)
    critical_cutoff = now - timedelta(hours=critical_hours)

    stale = list(
        Intake.objects.filter(
            status=STATUS_PAID,
            payment_status=PAYMENT_PAID,
            paid_at__lt=warning_cutoff,
        )
        .order_by("paid_at")
        .values("id", "paid_at")[:batch_size]
    )

    report = StaleQueueReport(stale_count=len(stale))
    if not stale:
        logger.info("No intakes past the queue SLA")
        return report

    critical = [row for row in stale if row["paid_at"] < critical_cutoff]
    report.critical_count = len(critical)
    report.warning_count = len(stale) - len(critical)
    report.oldest_wait_hours = [
        round((now - row["paid_at"]).total_seconds() / 3600, 1)
        for row in stale[:SLA_ALERT_OLDEST_COUNT]
    ]

    if critical:
        report.alert = ALERT_CRITICAL
        message = (
            f"{report.critical_count} intake(s) waiting over {critical_hours}h "
            f"without a reviewer"
        )
        logger.error(message)
        send_alert(
            message,
            level="error",
            tags={"alert_type": ALERT_CRITICAL},
            extra={
                "critical_count": report.critical_count,
                "warning_count": report.warning_count,
                "oldest_wait_hours": report.oldest_wait_hours,
            },
            sink=sink,
        )
    else:
        report.alert = ALERT_WARNING
        message = (
            f"{report.warning_count} intake(s) waiting over {warning_hours}h "
            f"without a reviewer"
        )
        logger.warning(message)
        send_alert(
            message,
            level="warning",
            tags={"alert_type": ALERT_WARNING},
            extra={
                "warning_count": report.warning_count,
                "oldest_wait_hours": report.oldest_wait_hours,
            },
            sink=sink,
        )

    return report
