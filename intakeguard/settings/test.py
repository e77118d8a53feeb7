"""
Test settings for IntakeGuard.
Optimized for fast test execution with a throwaway SQLite file
and simplified configurations.
"""
from .base import *  # noqa: F403, F405
import os

# Override SECRET_KEY for tests (not used in production)
SECRET_KEY = "test-secret-key-not-for-production-use-only"  # pragma: allowlist secret  # noqa: E501

# File-backed SQLite so threaded tests share one database across connections
# (override with DATABASE_URL if set)
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "test_intakeguard.sqlite3",  # noqa: F405
        "OPTIONS": {"timeout": 20},
        "TEST": {"NAME": BASE_DIR / "test_intakeguard.sqlite3"},  # noqa: F405
    }
}

# If DATABASE_URL is explicitly set (like in CI), use it instead
if "DATABASE_URL" in os.environ:
    import dj_database_url

    DATABASES["default"] = dj_database_url.config(
        default=os.environ["DATABASE_URL"],
        conn_max_age=0,  # Don't reuse connections in tests
    )

# Use in-memory cache for tests
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "test-cache",
    }
}

# Disable password hashing for faster user creation in tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Run Celery tasks inline
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_ENABLED = False

# Side effects never leave the process in tests
DRAFT_SERVICE_URL = ""
MONITORING_ALERTS = {
    **MONITORING_ALERTS,  # noqa: F405
    "payment_provider_url": "",
}

# Disable logging during tests to reduce noise
LOGGING = {
    "version": 1,
    "disable_existing_loggers": True,
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "CRITICAL",
        },
    },
}

# Debug mode off in tests (matches production behavior)
DEBUG = False

# Allowed hosts for tests
ALLOWED_HOSTS = ["*"]
