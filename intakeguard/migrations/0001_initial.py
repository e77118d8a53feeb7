# Generated manually for the review-queue models

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Intake",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "request_type",
                    models.CharField(
                        choices=[
                            ("med_cert", "Medical Certificate"),
                            ("repeat_rx", "Repeat Prescription"),
                            ("intake", "Consultation Intake"),
                        ],
                        default="intake",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("submitted", "Submitted"),
                            ("paid", "Paid - Awaiting Review"),
                            ("claimed", "Claimed by Reviewer"),
                            ("pending_info", "Pending Information"),
                            ("approved", "Approved"),
                            ("declined", "Declined"),
                            ("escalated", "Escalated"),
                        ],
                        default="submitted",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("unpaid", "Unpaid"),
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("refunded", "Refunded"),
                            ("failed", "Failed"),
                        ],
                        default="unpaid",
                        max_length=20,
                    ),
                ),
                ("claimed_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("decided_at", models.DateTimeField(blank=True, null=True)),
                ("category", models.CharField(blank=True, default="", max_length=50)),
                ("subtype", models.CharField(blank=True, default="", max_length=50)),
                ("risk_score", models.PositiveSmallIntegerField(default=0)),
                ("risk_flags", models.JSONField(blank=True, default=list)),
                (
                    "claimed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="claimed_intakes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="intakes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_intakes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Intake",
                "verbose_name_plural": "Intakes",
                "ordering": ["-created_at"],
                "indexes": [
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
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("claimed_by__isnull", False), ("status", "claimed")),
                            models.Q(
                                models.Q(("status", "claimed"), _negated=True),
                                ("claimed_by__isnull", True),
                            ),
                            _connector="OR",
                        ),
                        name="intake_claim_consistent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DraftRetry",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("max_attempts", models.PositiveIntegerField(default=3)),
                ("next_retry_at", models.DateTimeField()),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("last_error", models.TextField(blank=True, null=True)),
                (
                    "outcome",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("succeeded", "Succeeded"),
                            ("exhausted", "Exhausted"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "intake",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="draft_retries",
                        to="intakeguard.intake",
                    ),
                ),
            ],
            options={
                "verbose_name": "Draft Retry",
                "verbose_name_plural": "Draft Retries",
                "ordering": ["next_retry_at"],
                "indexes": [
                    models.Index(
                        fields=["outcome", "next_retry_at"],
                        name="idx_draftretry_due",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ComplianceAuditEntry",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("request_created", "Request Created"),
                            ("request_reviewed", "Request Reviewed"),
                            ("outcome_assigned", "Outcome Assigned"),
                            ("clinician_opened_request", "Clinician Opened Request"),
                            (
                                "clinician_reviewed_request",
                                "Clinician Reviewed Request",
                            ),
                            (
                                "clinician_selected_outcome",
                                "Clinician Selected Outcome",
                            ),
                            ("triage_approved", "Triage Approved"),
                            ("triage_needs_call", "Triage Needs Call"),
                            ("triage_declined", "Triage Declined"),
                            ("triage_outcome_changed", "Triage Outcome Changed"),
                            ("call_required_flagged", "Call Required Flagged"),
                            ("call_initiated", "Call Initiated"),
                            ("call_completed", "Call Completed"),
                            ("decision_after_call", "Decision After Call"),
                            (
                                "no_prescribing_in_platform",
                                "No Prescribing In Platform",
                            ),
                            (
                                "external_prescribing_indicated",
                                "External Prescribing Indicated",
                            ),
                        ],
                        max_length=50,
                    ),
                ),
                ("request_id", models.BigIntegerField()),
                ("request_type", models.CharField(max_length=20)),
                ("actor_id", models.BigIntegerField(blank=True, null=True)),
                (
                    "actor_role",
                    models.CharField(
                        choices=[
                            ("patient", "Patient"),
                            ("clinician", "Clinician"),
                            ("admin", "Admin"),
                            ("system", "System"),
                        ],
                        max_length=20,
                    ),
                ),
                ("is_human_action", models.BooleanField(default=True)),
                (
                    "outcome",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("approved", "Approved"),
                            ("needs_call", "Needs Call"),
                            ("declined", "Declined"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "previous_outcome",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("approved", "Approved"),
                            ("needs_call", "Needs Call"),
                            ("declined", "Declined"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("call_required", models.BooleanField(blank=True, null=True)),
                ("call_occurred", models.BooleanField(blank=True, null=True)),
                (
                    "call_completed_before_decision",
                    models.BooleanField(blank=True, null=True),
                ),
                (
                    "prescribing_occurred_in_platform",
                    models.BooleanField(default=False),
                ),
                (
                    "external_prescribing_reference",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                ("event_data", models.JSONField(blank=True, default=dict)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True, null=True)),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
            ],
            options={
                "verbose_name": "Compliance Audit Entry",
                "verbose_name_plural": "Compliance Audit Entries",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["request_id", "created_at"],
                        name="idx_compliance_timeline",
                    ),
                    models.Index(
                        fields=["event_type", "created_at"],
                        name="idx_compliance_event_type",
                    ),
                ],
            },
        ),
    ]
