"""
Prometheus metrics for the review-queue workers.

Registered on the default prometheus_client registry and served with the
request metrics from django_prometheus at /metrics.
"""

from prometheus_client import Counter, Histogram

background_job_started = Counter(
    "intakeguard_background_job_started_total",
    "Periodic worker runs started",
    ["task_name"],
)

background_job_completed = Counter(
    "intakeguard_background_job_completed_total",
    "Periodic worker runs completed without raising",
    ["task_name"],
)

background_job_failed = Counter(
    "intakeguard_background_job_failed_total",
    "Periodic worker runs that raised",
    ["task_name", "error_type"],
)

background_job_duration = Histogram(
    "intakeguard_background_job_duration_seconds",
    "Periodic worker run duration",
    ["task_name"],
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0),
)

claim_attempts = Counter(
    "intakeguard_claim_attempts_total",
    "Claim acquisitions by result",
    ["result"],
)

worker_items = Counter(
    "intakeguard_worker_items_total",
    "Items handled by periodic workers, by outcome",
    ["worker", "outcome"],
)
