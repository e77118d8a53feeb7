"""
Periodic worker scheduling.

settings.QUEUE_WORKERS is the single registry of periodic workers. Celery
beat reads it through CELERY_BEAT_SCHEDULE in production; the Ticker below
reads the same registry to drive workers in-process (run_workers command,
tests with a virtual clock).
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.utils.module_loading import import_string

from intakeguard.conf import queue_setting

logger = logging.getLogger(__name__)


class BatchBudget:
    """
    Wall-clock budget for one worker invocation.

    Workers check exhausted() before taking each item and stop once the
    budget is spent; the rest of the batch waits for the next run.
    """

    def __init__(
        self,
        seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if seconds is None:
            seconds = queue_setting("batch_budget_seconds")
        self.seconds = seconds
        self.clock = clock
        self.started_at = clock()

    @property
    def elapsed(self) -> float:
        return self.clock() - self.started_at

    @property
    def remaining(self) -> float:
        return max(0.0, self.seconds - self.elapsed)

    def exhausted(self) -> bool:
        return self.elapsed >= self.seconds


@dataclass
class WorkerSpec:
    name: str
    task: str
    interval: timedelta


def get_worker_specs(registry: Optional[Dict[str, Dict[str, Any]]] = None) -> List[WorkerSpec]:
    """
    Build WorkerSpec entries from a QUEUE_WORKERS-style registry.

    Raises:
        ValueError: If an entry has a non-positive interval
    """
    if registry is None:
        registry = getattr(settings, "QUEUE_WORKERS", {})

    specs = []
    for name, entry in registry.items():
        interval = entry["interval"]
        if not isinstance(interval, timedelta):
            interval = timedelta(seconds=interval)
        if interval <= timedelta(0):
            raise ValueError(f"Worker {name} needs a positive interval")
        specs.append(WorkerSpec(name=name, task=entry["task"], interval=interval))
    return specs


def run_task_inline(spec: WorkerSpec) -> Any:
    """Import the worker's Celery task and run it in this process."""
    task = import_string(spec.task)
    return task()


class Ticker:
    """
    In-process scheduler driven by an explicit clock.

    run_due(now) runs every worker whose interval has elapsed since its last
    run (or that has never run). The ticker holds no lock: overlapping
    workers are safe because each one coordinates through the database.
    """

    def __init__(
        self,
        workers: Optional[List[WorkerSpec]] = None,
        runner: Callable[[WorkerSpec], Any] = run_task_inline,
    ):
        self.workers = workers if workers is not None else get_worker_specs()
        self.runner = runner
        self.last_run: Dict[str, datetime] = {}

    def is_due(self, spec: WorkerSpec, now: datetime) -> bool:
        last = self.last_run.get(spec.name)
        return last is None or now - last >= spec.interval

    def next_due_at(self, now: datetime) -> datetime:
        """Earliest time any worker becomes due."""
        due_times = [
            self.last_run[spec.name] + spec.interval
            if spec.name in self.last_run
            else now
            for spec in self.workers
        ]
        return min(due_times, default=now)

    def run_due(self, now: datetime) -> List[str]:
        """
        Run the workers due at now.

        A worker that raises is logged and still counts as run, so a broken
        worker does not fire on every tick.

        Returns:
            list: Names of workers that were started
        """
        ran = []
        for spec in self.workers:
            if not self.is_due(spec, now):
                continue
            self.last_run[spec.name] = now
            ran.append(spec.name)
            try:
                result = self.runner(spec)
                logger.info(f"Worker {spec.name} finished: {result}")
            except Exception as e:
                logger.error(
                    f"Worker {spec.name} failed: {str(e)}",
                    exc_info=True,
                    extra={"worker": spec.name},
                )
        return ran
