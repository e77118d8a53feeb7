"""
Celery task monitoring for the review-queue workers.

Records start/completion/failure counters and a duration histogram for each
periodic worker run (see intakeguard.metrics).
"""

import logging
import time
from functools import wraps
from typing import Any, Callable

from intakeguard.metrics import (
    background_job_completed,
    background_job_duration,
    background_job_failed,
    background_job_started,
)

logger = logging.getLogger(__name__)


def monitor_task(task_func: Callable) -> Callable:
    """
    Decorator to record Prometheus metrics for a Celery task.

    Usage:
        @shared_task(name="intakeguard.tasks.check_stale_queue")
        @monitor_task
        def check_stale_queue():
            ...

    Args:
        task_func: The task function to monitor

    Returns:
        Wrapped task function with monitoring
    """

    @wraps(task_func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        task_name = task_func.__name__

        background_job_started.labels(task_name=task_name).inc()
        start_time = time.time()

        try:
            result = task_func(*args, **kwargs)
        except Exception as e:
            duration = time.time() - start_time
            error_type = e.__class__.__name__
            background_job_failed.labels(
                task_name=task_name, error_type=error_type
            ).inc()
            background_job_duration.labels(task_name=task_name).observe(duration)
            logger.error(
                f"Task {task_name} failed after {duration:.2f}s "
                f"with {error_type}: {str(e)}"
            )
            # Re-raise to maintain Celery's error handling
            raise

        duration = time.time() - start_time
        background_job_completed.labels(task_name=task_name).inc()
        background_job_duration.labels(task_name=task_name).observe(duration)
        logger.info(f"Task {task_name} completed successfully in {duration:.2f}s")
        return result

    return wrapper
