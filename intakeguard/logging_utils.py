"""
Structured logging utilities for IntakeGuard.

Provides context management and structured logging helpers so that every
line a worker or reviewer action writes carries the intake, reviewer and
worker it belongs to.

Usage:
    from intakeguard.logging_utils import get_logger, add_log_context

    logger = get_logger(__name__)

    with add_log_context(intake_id=intake.id, reviewer_id=user.id):
        logger.info("Claim acquired")
"""

import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

from django.http import HttpRequest


_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that automatically includes context in log records.

    Context is read from a ContextVar, so it follows the current thread or
    async task.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        context = _log_context.get({})

        extra = kwargs.get("extra", {})
        extra.update(context)
        kwargs["extra"] = extra

        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a logger with automatic context injection.

    Args:
        name: Logger name (typically __name__)

    Returns:
        ContextualLoggerAdapter: Logger with context support
    """
    base_logger = logging.getLogger(name)
    return ContextualLoggerAdapter(base_logger, {})


def set_log_context(**kwargs: Any) -> None:
    """Set context for all subsequent log messages in this context."""
    current_context = _log_context.get({}).copy()
    current_context.update(kwargs)
    _log_context.set(current_context)


def clear_log_context() -> None:
    _log_context.set({})


def get_log_context() -> Dict[str, Any]:
    return _log_context.get({}).copy()


class add_log_context:
    """
    Context manager to temporarily add log context.

    Usage:
        with add_log_context(worker="reclaim_stale_claims"):
            logger.info("Scanning")  # Includes worker
        # Context is restored after the block
    """

    def __init__(self, **kwargs: Any):
        self.new_context = kwargs
        self.previous_context: Optional[Dict[str, Any]] = None

    def __enter__(self):
        self.previous_context = get_log_context()
        set_log_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context is not None:
            _log_context.set(self.previous_context)
        else:
            clear_log_context()


def extract_request_context(request: HttpRequest) -> Dict[str, Any]:
    """
    Extract logging context from an HTTP request.

    Args:
        request: Django HTTP request

    Returns:
        Dict[str, Any]: Context dictionary with request information
    """
    context = {}

    if hasattr(request, "user") and request.user.is_authenticated:
        context["reviewer_id"] = request.user.id

    context["method"] = request.method
    context["path"] = request.path

    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        context["ip"] = x_forwarded_for.split(",")[0].strip()
    else:
        context["ip"] = request.META.get("REMOTE_ADDR", "unknown")

    return context


class StructuredLogFormatter(logging.Formatter):
    """
    Log formatter that outputs structured (key=value) logs.

    Example output:
        2026-01-28 10:30:45 INFO worker=check_stale_queue intake_id=42 message="SLA warning"
    """

    context_fields = [
        "worker",
        "task_name",
        "intake_id",
        "reviewer_id",
        "retry_id",
        "event_type",
        "method",
        "path",
        "ip",
    ]

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, self.datefmt)
        parts = [f"{timestamp} {record.levelname} logger={record.name}"]

        for field in self.context_fields:
            if hasattr(record, field):
                value = getattr(record, field)
                if isinstance(value, str) and " " in value:
                    parts.append(f'{field}="{value}"')
                else:
                    parts.append(f"{field}={value}")

        msg = record.getMessage()
        if " " in msg or "=" in msg:
            parts.append(f'message="{msg}"')
        else:
            parts.append(f"message={msg}")

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)

        if record.exc_text:
            parts.append(f"\n{record.exc_text}")

        return " ".join(parts)


def get_task_logger(task_name: str) -> ContextualLoggerAdapter:
    """
    Get a logger for a periodic worker with the task name included.

    Usage:
        logger = get_task_logger("process_draft_retries")
        logger.info("Batch started")  # Includes task_name=process_draft_retries
    """
    logger = get_logger(f"intakeguard.tasks.{task_name}")

    class TaskLoggerAdapter(ContextualLoggerAdapter):
        def process(self, msg, kwargs):
            msg, kwargs = super().process(msg, kwargs)
            kwargs["extra"]["task_name"] = task_name
            return msg, kwargs

    return TaskLoggerAdapter(logger.logger, {})
