"""
Production settings for IntakeGuard project.

Inherits from base settings and enforces secure production defaults.
"""

import os
from .base import *  # noqa: F403, F405

# =============================================================================
# SECURITY SETTINGS (Production)
# =============================================================================

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config("SECRET_KEY")  # Required in production, no default

DEBUG = False  # Always False in production

# ALLOWED_HOSTS must come from env and must not default to wildcard
ALLOWED_HOSTS = [h.strip() for h in config("ALLOWED_HOSTS").split(",") if h.strip()]

SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=True, cast=bool)
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_HSTS_SECONDS = config("SECURE_HSTS_SECONDS", default=31536000, cast=int)
SECURE_HSTS_INCLUDE_SUBDOMAINS = config(
    "SECURE_HSTS_INCLUDE_SUBDOMAINS", default=True, cast=bool
)

_csrf_origins = config("CSRF_TRUSTED_ORIGINS", default="")
if _csrf_origins:
    CSRF_TRUSTED_ORIGINS = [o.strip() for o in _csrf_origins.split(",") if o.strip()]

# =============================================================================
# DATABASE
# =============================================================================

# Claims and retries rely on row-level atomic UPDATE ... WHERE, so production
# must run on PostgreSQL. Prefer DATABASE_URL for 12-factor compliance.
if "DATABASE_URL" in os.environ:
    import dj_database_url

    DATABASES = {
        "default": dj_database_url.parse(
            os.environ["DATABASE_URL"],
            conn_max_age=config("DB_CONN_MAX_AGE", default=60, cast=int),
            conn_health_checks=config("DB_CONN_HEALTH_CHECKS", default=True, cast=bool),
        )
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": config("DB_NAME", default="intakeguard"),
            "USER": config("DB_USER", default="intakeguard"),
            "PASSWORD": config("DB_PASSWORD", default=""),
            "HOST": config("DB_HOST", default="localhost"),
            "PORT": config("DB_PORT", default="5432"),
            "CONN_MAX_AGE": config("DB_CONN_MAX_AGE", default=60, cast=int),
            "CONN_HEALTH_CHECKS": config(
                "DB_CONN_HEALTH_CHECKS", default=True, cast=bool
            ),
            "OPTIONS": {
                "sslmode": config("DB_SSLMODE", default="require"),
            },
        }
    }

# =============================================================================
# LOGGING (Production)
# =============================================================================

from intakeguard.logging_config import get_logging_config  # noqa: E402

LOGGING = get_logging_config(
    base_dir=BASE_DIR,  # noqa: F405
    environment="production",
    log_level=config("LOG_LEVEL", default="INFO"),
)

# =============================================================================
# ERROR TRACKING (Sentry)
# =============================================================================

SENTRY_DSN = config("SENTRY_DSN", default=None)

if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration
    from sentry_sdk.integrations.celery import CeleryIntegration
    from sentry_sdk.integrations.redis import RedisIntegration

    def filter_phi_from_errors(event, hint):
        """
        Remove potential PHI from error reports before sending to Sentry.

        CRITICAL: Ensures HIPAA compliance by scrubbing sensitive data.
        """
        if "request" in event:
            if "data" in event["request"]:
                event["request"]["data"] = "[REDACTED FOR HIPAA COMPLIANCE]"
            if "cookies" in event["request"]:
                event["request"]["cookies"] = "[REDACTED]"
            if "query_string" in event["request"]:
                event["request"]["query_string"] = "[REDACTED]"

        if "user" in event:
            if "email" in event["user"]:
                event["user"]["email"] = "[REDACTED]"

        # Queue alerts carry ids and counts only; exception text may not
        if "exception" in event:
            from intakeguard.logging_filters import PHIScrubberFilter

            scrubber = PHIScrubberFilter()
            for exc in event["exception"].get("values", []):
                if "value" in exc:
                    exc["value"] = scrubber.scrub_phi(str(exc["value"]))

        return event

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
            CeleryIntegration(),
            RedisIntegration(),
        ],
        environment=config("ENVIRONMENT", default="production"),
        traces_sample_rate=0.1,
        before_send=filter_phi_from_errors,
        send_default_pii=False,
        release=config("SENTRY_RELEASE", default=None),
        server_name=config("SERVER_NAME", default=None),
    )
