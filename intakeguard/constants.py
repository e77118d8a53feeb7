"""
IntakeGuard Constants and Configuration Values.

Centralized location for thresholds and defaults used by the review-queue
workers. Deployments tune these through settings.REVIEW_QUEUE; the values
here apply whenever a key is missing.
"""

# =============================================================================
# Claim Lease
# =============================================================================

# A claim older than this (measured from claimed_at) is stale
CLAIM_LEASE_MINUTES = 45

# Stale claims released per reclaimer invocation
RECLAIM_BATCH_SIZE = 50

# =============================================================================
# Queue SLA
# =============================================================================

# Paid, unclaimed intakes waiting longer than this (from paid_at) are stale
SLA_WARNING_HOURS = 4
SLA_CRITICAL_HOURS = 8

# Stale intakes inspected per SLA monitor invocation
SLA_BATCH_SIZE = 20

# Wait times included in a critical alert
SLA_ALERT_OLDEST_COUNT = 5

# =============================================================================
# Draft Retry
# =============================================================================

DRAFT_RETRY_BATCH_SIZE = 10
DRAFT_RETRY_MAX_ATTEMPTS = 3

# Backoff is 2**attempts minutes, capped here
DRAFT_RETRY_BACKOFF_BASE = 2
DRAFT_RETRY_MAX_BACKOFF_MINUTES = 60

# Retry entries are leased while their side effect runs
DRAFT_RETRY_LEASE_MINUTES = 5

# last_error is truncated to this many characters
DRAFT_RETRY_ERROR_MAX_LENGTH = 1000

# =============================================================================
# Worker Budget
# =============================================================================

# Stop taking new items once a batch has run this long
BATCH_BUDGET_SECONDS = 50

# =============================================================================
# Alerting
# =============================================================================

ALERT_COOLDOWN_SECONDS = 300
HEALTH_PROBE_TIMEOUT_SECONDS = 3

# =============================================================================
# Fraud Detection
# =============================================================================

FRAUD_MULTIPLE_DAILY_THRESHOLD = 3
FRAUD_MULTIPLE_DAILY_HIGH = 5
FRAUD_DUPLICATE_WINDOW_MINUTES = 60
FRAUD_RAPID_COMPLETION_SECONDS = 30
FRAUD_RAPID_COMPLETION_HIGH_SECONDS = 10

FRAUD_SEVERITY_WEIGHTS = {
    "critical": 50,
    "high": 40,
    "medium": 20,
    "low": 10,
}
FRAUD_MAX_RISK_SCORE = 100

# =============================================================================
# Defaults for settings.REVIEW_QUEUE
# =============================================================================

REVIEW_QUEUE_DEFAULTS = {
    "claim_lease_minutes": CLAIM_LEASE_MINUTES,
    "reclaim_batch_size": RECLAIM_BATCH_SIZE,
    "sla_warning_hours": SLA_WARNING_HOURS,
    "sla_critical_hours": SLA_CRITICAL_HOURS,
    "sla_batch_size": SLA_BATCH_SIZE,
    "draft_retry_batch_size": DRAFT_RETRY_BATCH_SIZE,
    "draft_retry_max_attempts": DRAFT_RETRY_MAX_ATTEMPTS,
    "draft_retry_max_backoff_minutes": DRAFT_RETRY_MAX_BACKOFF_MINUTES,
    "batch_budget_seconds": BATCH_BUDGET_SECONDS,
}
