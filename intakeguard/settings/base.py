"""
Django base settings for IntakeGuard project.

Shared settings that are common to development, test and production.
"""

from datetime import timedelta
from pathlib import Path

import redis
from decouple import config

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# =============================================================================
# APPLICATION DEFINITION
# =============================================================================

INSTALLED_APPS = [
    # Django core
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party - API
    "rest_framework",
    # Third-party - Monitoring
    "django_prometheus",
    # IntakeGuard application
    "intakeguard.apps.IntakeGuardConfig",
]

MIDDLEWARE = [
    "django_prometheus.middleware.PrometheusBeforeMiddleware",  # Must be first
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "django_prometheus.middleware.PrometheusAfterMiddleware",  # Must be last
]

X_FRAME_OPTIONS = "DENY"

ROOT_URLCONF = "intakeguard.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "intakeguard.wsgi.application"

# =============================================================================
# AUTHENTICATION & PASSWORD VALIDATION
# =============================================================================

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": (
            "django.contrib.auth.password_validation."
            "UserAttributeSimilarityValidator"
        ),
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
        "OPTIONS": {"min_length": 12},  # HIPAA-recommended minimum
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

# =============================================================================
# DJANGO REST FRAMEWORK
# =============================================================================

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": "100/h",
        "user": "1000/h",
        # Reviewers grabbing work from the queue
        "claim": "120/m",
        # Compliance timeline and readiness lookups
        "read_only": "2000/h",
    },
}

# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# =============================================================================
# STATIC FILES
# =============================================================================

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# =============================================================================
# DEFAULT FIELD TYPE
# =============================================================================

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# LOGGING (Audit Trail with Retention Policy)
# =============================================================================

from intakeguard.logging_config import get_logging_config  # noqa: E402

# Centralized logging configuration with:
# - Daily rotation and per-level retention
# - PHI/PII scrubbing on all handlers (HIPAA compliance)
# - Structured key=value output for log aggregation
LOGGING = get_logging_config(
    base_dir=BASE_DIR,
    environment="production",  # Overridden in dev.py and test.py
    log_level="INFO",
)

# =============================================================================
# CACHE SETTINGS
# =============================================================================

# Production: Redis, shared by every instance (alert throttle, DRF throttles)
# Development/Testing: falls back to local memory cache if Redis unavailable
REDIS_URL = config("REDIS_URL", default="redis://localhost:6379")

try:
    r = redis.Redis.from_url(f"{REDIS_URL}/1", socket_connect_timeout=1)
    r.ping()
    r.close()

    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": f"{REDIS_URL}/1",  # Use database 1 for cache
            "KEY_PREFIX": "intakeguard",
            "TIMEOUT": 300,
        }
    }

except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError):
    # Redis not available - alert throttling becomes process-local
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "intakeguard-cache",
            "OPTIONS": {
                "MAX_ENTRIES": 10000,
            },
            "TIMEOUT": 300,
        }
    }

# =============================================================================
# REVIEW QUEUE
# =============================================================================

# Missing keys fall back to intakeguard.constants (see intakeguard.conf)
REVIEW_QUEUE = {
    # Claim lease, measured from claimed_at
    "claim_lease_minutes": config("CLAIM_LEASE_MINUTES", default=45, cast=int),
    "reclaim_batch_size": config("RECLAIM_BATCH_SIZE", default=50, cast=int),
    # Unclaimed-queue SLA, measured from paid_at
    "sla_warning_hours": config("SLA_WARNING_HOURS", default=4, cast=float),
    "sla_critical_hours": config("SLA_CRITICAL_HOURS", default=8, cast=float),
    "sla_batch_size": config("SLA_BATCH_SIZE", default=20, cast=int),
    # AI draft retries
    "draft_retry_batch_size": config("DRAFT_RETRY_BATCH_SIZE", default=10, cast=int),
    "draft_retry_max_attempts": config(
        "DRAFT_RETRY_MAX_ATTEMPTS", default=3, cast=int
    ),
    "draft_retry_max_backoff_minutes": config(
        "DRAFT_RETRY_MAX_BACKOFF_MINUTES", default=60, cast=int
    ),
    # Scheduler task timeout minus a safety margin
    "batch_budget_seconds": config("WORKER_BATCH_BUDGET_SECONDS", default=50, cast=int),
}

# Side effect invoked by the retry coordinator: generate_draft(intake_id)
DRAFT_GENERATOR = config(
    "DRAFT_GENERATOR", default="intakeguard.retry.drafts.generate_draft_via_http"
)
DRAFT_SERVICE_URL = config("DRAFT_SERVICE_URL", default="")
DRAFT_SERVICE_TIMEOUT = config("DRAFT_SERVICE_TIMEOUT", default=30, cast=int)

# =============================================================================
# PERIODIC WORKERS
# =============================================================================

# Single registry for Celery beat and the in-process ticker (run_workers)
QUEUE_WORKERS = {
    "process_draft_retries": {
        "task": "intakeguard.tasks.process_draft_retries",
        "interval": config("RETRY_WORKER_INTERVAL", default=300, cast=int),
    },
    "check_stale_queue": {
        "task": "intakeguard.tasks.check_stale_queue",
        "interval": config("SLA_WORKER_INTERVAL", default=3600, cast=int),
    },
    "reclaim_stale_claims": {
        "task": "intakeguard.tasks.reclaim_stale_claims",
        "interval": config("RECLAIM_WORKER_INTERVAL", default=600, cast=int),
    },
    "run_health_checks": {
        "task": "intakeguard.tasks.run_health_checks",
        "interval": config("HEALTH_WORKER_INTERVAL", default=300, cast=int),
    },
}

# =============================================================================
# CELERY SETTINGS
# =============================================================================

CELERY_BROKER_URL = config("CELERY_BROKER_URL", default=f"{REDIS_URL}/0")
CELERY_RESULT_BACKEND = config("CELERY_RESULT_BACKEND", default=f"{REDIS_URL}/0")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 60
CELERY_TASK_SOFT_TIME_LIMIT = 55

CELERY_BEAT_SCHEDULE = {
    name: {
        "task": worker["task"],
        "schedule": timedelta(seconds=worker["interval"]),
    }
    for name, worker in QUEUE_WORKERS.items()
}

CELERY_ENABLED = config("CELERY_ENABLED", default=False, cast=bool)

# =============================================================================
# MONITORING ALERTS (Platform Health)
# =============================================================================

MONITORING_ALERTS = {
    "enabled": config("MONITORING_ALERTS_ENABLED", default=True, cast=bool),
    "cooldown_period": config("ALERT_COOLDOWN_SECONDS", default=300, cast=int),
    "probe_timeout": config("HEALTH_PROBE_TIMEOUT", default=3, cast=float),
    # Empty disables the payment provider probe
    "payment_provider_url": config("PAYMENT_PROVIDER_HEALTH_URL", default=""),
}

# =============================================================================
# SECURITY SETTINGS (Common)
# =============================================================================

SESSION_COOKIE_AGE = 1800  # 30 minutes idle timeout (healthcare standard)
SESSION_EXPIRE_AT_BROWSER_CLOSE = True
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
