"""
Development settings for IntakeGuard project.

Inherits from base settings and adds development-specific configuration.
"""

from .base import *  # noqa: F401, F403
from .base import BASE_DIR, config

# =============================================================================
# SECURITY SETTINGS (Development)
# =============================================================================

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config(
    "SECRET_KEY", default="django-insecure-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config("DEBUG", default=True, cast=bool)

ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="localhost,127.0.0.1").split(",")

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

# =============================================================================
# DATABASE
# =============================================================================

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# =============================================================================
# LOGGING (Development)
# =============================================================================

from intakeguard.logging_config import get_logging_config  # noqa: E402

# Override base logging with development settings
# - Enables DEBUG level logging
# - Uses SelectivePHIScrubberFilter (less aggressive)
LOGGING = get_logging_config(
    base_dir=BASE_DIR,
    environment="development",
    log_level="DEBUG",
)
