from datetime import timedelta

from django.db import models

from intakeguard.constants import (
    DRAFT_RETRY_BACKOFF_BASE,
    DRAFT_RETRY_MAX_ATTEMPTS,
    DRAFT_RETRY_MAX_BACKOFF_MINUTES,
)
from intakeguard.core.models import BaseModel

OUTCOME_PENDING = "pending"
OUTCOME_SUCCEEDED = "succeeded"
OUTCOME_EXHAUSTED = "exhausted"

OUTCOME_CHOICES = [
    (OUTCOME_PENDING, "Pending"),
    (OUTCOME_SUCCEEDED, "Succeeded"),
    (OUTCOME_EXHAUSTED, "Exhausted"),
]


def compute_backoff(attempts, max_backoff_minutes=DRAFT_RETRY_MAX_BACKOFF_MINUTES):
    """
    Delay before the next attempt after `attempts` failures.

    2**attempts minutes, capped at max_backoff_minutes.
    """
    minutes = min(DRAFT_RETRY_BACKOFF_BASE**attempts, max_backoff_minutes)
    return timedelta(minutes=minutes)


class DraftRetry(BaseModel):
    """
    A pending retry of AI draft generation for one intake.

    Entries are never deleted. Once completed_at is set the entry is inert
    and outcome records how it ended.
    """

    intake = models.ForeignKey(
        "intakeguard.Intake", on_delete=models.CASCADE, related_name="draft_retries"
    )
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=DRAFT_RETRY_MAX_ATTEMPTS)
    next_retry_at = models.DateTimeField()
    completed_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True, null=True)
    outcome = models.CharField(
        max_length=20, choices=OUTCOME_CHOICES, default=OUTCOME_PENDING
    )

    class Meta:
        verbose_name = "Draft Retry"
        verbose_name_plural = "Draft Retries"
        ordering = ["next_retry_at"]
        indexes = [
            models.Index(
                fields=["outcome", "next_retry_at"],
                name="idx_draftretry_due",
            ),
        ]

    def __str__(self):
        return f"DraftRetry {self.pk} intake={self.intake_id} ({self.outcome})"

    @property
    def is_terminal(self):
        return self.completed_at is not None and self.outcome != OUTCOME_PENDING
