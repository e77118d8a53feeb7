from django.db import models
from django.db.models import Q

from intakeguard.core.models import BaseModel

REQUEST_TYPE_MED_CERT = "med_cert"
REQUEST_TYPE_REPEAT_RX = "repeat_rx"
REQUEST_TYPE_INTAKE = "intake"

REQUEST_TYPE_CHOICES = [
    (REQUEST_TYPE_MED_CERT, "Medical Certificate"),
    (REQUEST_TYPE_REPEAT_RX, "Repeat Prescription"),
    (REQUEST_TYPE_INTAKE, "Consultation Intake"),
]

STATUS_SUBMITTED = "submitted"
STATUS_PAID = "paid"
STATUS_CLAIMED = "claimed"
STATUS_PENDING_INFO = "pending_info"
STATUS_APPROVED = "approved"
STATUS_DECLINED = "declined"
STATUS_ESCALATED = "escalated"

STATUS_CHOICES = [
    (STATUS_SUBMITTED, "Submitted"),
    (STATUS_PAID, "Paid - Awaiting Review"),
    (STATUS_CLAIMED, "Claimed by Reviewer"),
    (STATUS_PENDING_INFO, "Pending Information"),
    (STATUS_APPROVED, "Approved"),
    (STATUS_DECLINED, "Declined"),
    (STATUS_ESCALATED, "Escalated"),
]

# Statuses a claim holder may move an intake to
COMPLETION_STATUSES = (
    STATUS_APPROVED,
    STATUS_DECLINED,
    STATUS_ESCALATED,
    STATUS_PENDING_INFO,
)

PAYMENT_UNPAID = "unpaid"
PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_REFUNDED = "refunded"
PAYMENT_FAILED = "failed"

PAYMENT_STATUS_CHOICES = [
    (PAYMENT_UNPAID, "Unpaid"),
    (PAYMENT_PENDING, "Pending"),
    (PAYMENT_PAID, "Paid"),
    (PAYMENT_REFUNDED, "Refunded"),
    (PAYMENT_FAILED, "Failed"),
]


class Intake(BaseModel):
    """
    A submitted patient request awaiting (or past) clinician review.

    The claim is encoded as (claimed_by, claimed_at). Only conditional
    updates in intakeguard.claims.services may change it.
    """

    request_type = models.CharField(
        max_length=20, choices=REQUEST_TYPE_CHOICES, default=REQUEST_TYPE_INTAKE
    )
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_SUBMITTED
    )
    payment_status = models.CharField(
        max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_UNPAID
    )
    patient = models.ForeignKey(
        "auth.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="intakes",
    )
    claimed_by = models.ForeignKey(
        "auth.User",
        # A live claim must be released before its holder can be deleted
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="claimed_intakes",
    )
    claimed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(
        "auth.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_intakes",
    )
    decided_at = models.DateTimeField(null=True, blank=True)
    category = models.CharField(max_length=50, blank=True, default="")
    subtype = models.CharField(max_length=50, blank=True, default="")
    risk_score = models.PositiveSmallIntegerField(default=0)
    risk_flags = models.JSONField(default=list, blank=True)

    class Meta:
        verbose_name = "Intake"
        verbose_name_plural = "Intakes"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "payment_status", "paid_at"],
                name="idx_intake_queue_age",
            ),
            models.Index(
                fields=["status", "claimed_at"],
                name="idx_intake_claim_age",
            ),
            models.Index(
                fields=["patient", "created_at"],
                name="idx_intake_patient_recent",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status=STATUS_CLAIMED, claimed_by__isnull=False)
                    | (~Q(status=STATUS_CLAIMED) & Q(claimed_by__isnull=True))
                ),
                name="intake_claim_consistent",
            ),
        ]

    def __str__(self):
        return f"Intake {self.pk} ({self.status})"

    @property
    def is_claimed(self):
        return self.status == STATUS_CLAIMED and self.claimed_by_id is not None
