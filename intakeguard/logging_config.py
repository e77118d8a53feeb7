"""
Centralized logging configuration for IntakeGuard.

Builds the LOGGING dictConfig for each environment:
- Daily rotation with per-level retention
- PHI/PII scrubbing on every handler
- Structured key=value output (see logging_utils.StructuredLogFormatter)

Usage (settings):
    LOGGING = get_logging_config(base_dir=BASE_DIR, environment="production")
"""

from pathlib import Path
from typing import Any, Dict

# Days of rotated files to keep per handler
RETENTION_DAYS = {
    "debug": 7,
    "app": 30,
    "error": 90,
    # Compliance ledger writes and failures (7 years)
    "audit": 2555,
}


def get_logging_config(
    base_dir: Path,
    environment: str = "production",
    log_level: str = "INFO",
) -> Dict[str, Any]:
    """
    Build a logging dictConfig.

    Args:
        base_dir: Project root; logs go to base_dir / "logs"
        environment: "production" or "development"
        log_level: Level for the intakeguard logger tree

    Returns:
        dict: Configuration suitable for settings.LOGGING
    """
    log_dir = Path(base_dir) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    if environment == "development":
        scrubber = "intakeguard.logging_filters.SelectivePHIScrubberFilter"
    else:
        scrubber = "intakeguard.logging_filters.PHIScrubberFilter"

    def rotating(filename: str, level: str, retention_key: str) -> Dict[str, Any]:
        return {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "filename": str(log_dir / filename),
            "when": "midnight",
            "backupCount": RETENTION_DAYS[retention_key],
            "level": level,
            "formatter": "structured",
            "filters": ["phi_scrubber"],
        }

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
            "filters": ["phi_scrubber"],
        },
        "app_file": rotating("app.log", "INFO", "app"),
        "error_file": rotating("error.log", "WARNING", "error"),
        "audit_file": rotating("audit.log", "INFO", "audit"),
    }
    app_handlers = ["console", "app_file", "error_file"]

    if environment == "development":
        handlers["debug_file"] = rotating("debug.log", "DEBUG", "debug")
        app_handlers.append("debug_file")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "phi_scrubber": {"()": scrubber},
        },
        "formatters": {
            "structured": {
                "()": "intakeguard.logging_utils.StructuredLogFormatter",
            },
        },
        "handlers": handlers,
        "loggers": {
            "django": {
                "handlers": ["console", "error_file"],
                "level": "WARNING",
            },
            "intakeguard": {
                "handlers": app_handlers,
                "level": log_level,
                "propagate": False,
            },
            "intakeguard.compliance": {
                "handlers": app_handlers + ["audit_file"],
                "level": "INFO",
                "propagate": False,
            },
            "celery": {
                "handlers": ["console", "error_file"],
                "level": "INFO",
            },
        },
    }
