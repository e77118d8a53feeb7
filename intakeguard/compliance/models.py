from django.core.exceptions import PermissionDenied
from django.db import models
from django.utils import timezone

# Lifecycle
EVENT_REQUEST_CREATED = "request_created"
EVENT_REQUEST_REVIEWED = "request_reviewed"
EVENT_OUTCOME_ASSIGNED = "outcome_assigned"
# Clinician involvement
EVENT_CLINICIAN_OPENED_REQUEST = "clinician_opened_request"
EVENT_CLINICIAN_REVIEWED_REQUEST = "clinician_reviewed_request"
EVENT_CLINICIAN_SELECTED_OUTCOME = "clinician_selected_outcome"
# Triage outcome
EVENT_TRIAGE_APPROVED = "triage_approved"
EVENT_TRIAGE_NEEDS_CALL = "triage_needs_call"
EVENT_TRIAGE_DECLINED = "triage_declined"
EVENT_TRIAGE_OUTCOME_CHANGED = "triage_outcome_changed"
# Synchronous contact
EVENT_CALL_REQUIRED_FLAGGED = "call_required_flagged"
EVENT_CALL_INITIATED = "call_initiated"
EVENT_CALL_COMPLETED = "call_completed"
EVENT_DECISION_AFTER_CALL = "decision_after_call"
# Prescribing boundary
EVENT_NO_PRESCRIBING_IN_PLATFORM = "no_prescribing_in_platform"
EVENT_EXTERNAL_PRESCRIBING_INDICATED = "external_prescribing_indicated"

EVENT_TYPE_CHOICES = [
    (EVENT_REQUEST_CREATED, "Request Created"),
    (EVENT_REQUEST_REVIEWED, "Request Reviewed"),
    (EVENT_OUTCOME_ASSIGNED, "Outcome Assigned"),
    (EVENT_CLINICIAN_OPENED_REQUEST, "Clinician Opened Request"),
    (EVENT_CLINICIAN_REVIEWED_REQUEST, "Clinician Reviewed Request"),
    (EVENT_CLINICIAN_SELECTED_OUTCOME, "Clinician Selected Outcome"),
    (EVENT_TRIAGE_APPROVED, "Triage Approved"),
    (EVENT_TRIAGE_NEEDS_CALL, "Triage Needs Call"),
    (EVENT_TRIAGE_DECLINED, "Triage Declined"),
    (EVENT_TRIAGE_OUTCOME_CHANGED, "Triage Outcome Changed"),
    (EVENT_CALL_REQUIRED_FLAGGED, "Call Required Flagged"),
    (EVENT_CALL_INITIATED, "Call Initiated"),
    (EVENT_CALL_COMPLETED, "Call Completed"),
    (EVENT_DECISION_AFTER_CALL, "Decision After Call"),
    (EVENT_NO_PRESCRIBING_IN_PLATFORM, "No Prescribing In Platform"),
    (EVENT_EXTERNAL_PRESCRIBING_INDICATED, "External Prescribing Indicated"),
]

OUTCOME_APPROVED = "approved"
OUTCOME_NEEDS_CALL = "needs_call"
OUTCOME_DECLINED = "declined"

TRIAGE_OUTCOME_CHOICES = [
    (OUTCOME_APPROVED, "Approved"),
    (OUTCOME_NEEDS_CALL, "Needs Call"),
    (OUTCOME_DECLINED, "Declined"),
]

ROLE_PATIENT = "patient"
ROLE_CLINICIAN = "clinician"
ROLE_ADMIN = "admin"
ROLE_SYSTEM = "system"

ACTOR_ROLE_CHOICES = [
    (ROLE_PATIENT, "Patient"),
    (ROLE_CLINICIAN, "Clinician"),
    (ROLE_ADMIN, "Admin"),
    (ROLE_SYSTEM, "System"),
]


class ImmutableLedgerError(PermissionDenied):
    """Raised on any attempt to modify or remove a compliance ledger entry."""


class ComplianceAuditQuerySet(models.QuerySet):
    """QuerySet that refuses bulk modification of ledger rows."""

    def update(self, **kwargs):
        raise ImmutableLedgerError("Compliance audit entries cannot be updated")

    def delete(self):
        raise ImmutableLedgerError("Compliance audit entries cannot be deleted")

    def for_request(self, request_id):
        return self.filter(request_id=request_id).order_by("created_at", "id")


class ComplianceAuditEntry(models.Model):
    """
    One immutable compliance ledger record.

    request_id and actor_id are plain integers rather than foreign keys so
    that removing an intake or user never touches the ledger.
    """

    event_type = models.CharField(max_length=50, choices=EVENT_TYPE_CHOICES)
    request_id = models.BigIntegerField()
    request_type = models.CharField(max_length=20)
    actor_id = models.BigIntegerField(null=True, blank=True)
    actor_role = models.CharField(max_length=20, choices=ACTOR_ROLE_CHOICES)
    is_human_action = models.BooleanField(default=True)
    outcome = models.CharField(
        max_length=20, choices=TRIAGE_OUTCOME_CHOICES, null=True, blank=True
    )
    previous_outcome = models.CharField(
        max_length=20, choices=TRIAGE_OUTCOME_CHOICES, null=True, blank=True
    )
    call_required = models.BooleanField(null=True, blank=True)
    call_occurred = models.BooleanField(null=True, blank=True)
    call_completed_before_decision = models.BooleanField(null=True, blank=True)
    prescribing_occurred_in_platform = models.BooleanField(default=False)
    external_prescribing_reference = models.CharField(
        max_length=255, null=True, blank=True
    )
    event_data = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    objects = ComplianceAuditQuerySet.as_manager()

    class Meta:
        verbose_name = "Compliance Audit Entry"
        verbose_name_plural = "Compliance Audit Entries"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["request_id", "created_at"],
                name="idx_compliance_timeline",
            ),
            models.Index(
                fields=["event_type", "created_at"],
                name="idx_compliance_event_type",
            ),
        ]

    def __str__(self):
        return f"{self.event_type} request={self.request_id} at {self.created_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableLedgerError("Compliance audit entries cannot be updated")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableLedgerError("Compliance audit entries cannot be deleted")
