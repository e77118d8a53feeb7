"""
Tests for the compliance audit ledger: typed writes, immutability, the
request timeline and audit readiness.
"""

from datetime import timedelta
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from intakeguard.compliance import ledger
from intakeguard.compliance.ledger import (
    ComplianceEvent,
    check_audit_readiness,
    get_compliance_timeline,
    log_event,
)
from intakeguard.compliance.models import ComplianceAuditEntry, ImmutableLedgerError
from intakeguard.compliance.payloads import (
    DeclinePayload,
    EmptyPayload,
    NotePayload,
    ReasonPayload,
    payload_type_for,
    serialize_payload,
)
from intakeguard.tests.factories import ComplianceAuditEntryFactory

REQUEST_ID = 501
CLINICIAN_ID = 77


class LogEventTests(TestCase):
    def test_writes_entry_and_returns_id(self):
        entry_id = ledger.log_triage_approved(
            REQUEST_ID, "med_cert", CLINICIAN_ID, note="Straightforward"
        )

        row = ComplianceAuditEntry.objects.get(pk=entry_id)
        self.assertEqual(row.event_type, "triage_approved")
        self.assertEqual(row.outcome, "approved")
        self.assertEqual(row.actor_role, "clinician")
        self.assertEqual(row.event_data, {"note": "Straightforward"})
        self.assertTrue(row.is_human_action)

    def test_none_fields_are_dropped_from_event_data(self):
        entry_id = ledger.log_triage_needs_call(REQUEST_ID, "repeat_rx", CLINICIAN_ID)

        row = ComplianceAuditEntry.objects.get(pk=entry_id)
        self.assertEqual(row.event_data, {})
        self.assertTrue(row.call_required)

    def test_wrong_payload_type_raises_before_write(self):
        event = ComplianceEvent(
            event_type="triage_declined",
            request_id=REQUEST_ID,
            request_type="med_cert",
            actor_role="clinician",
            actor_id=CLINICIAN_ID,
            payload=NotePayload(note="not a decline"),
        )

        with self.assertRaises(TypeError):
            log_event(event)
        self.assertFalse(ComplianceAuditEntry.objects.exists())

    def test_decline_requires_reason(self):
        event = ComplianceEvent(
            event_type="triage_declined",
            request_id=REQUEST_ID,
            request_type="med_cert",
            actor_role="clinician",
        )

        with self.assertRaises(TypeError):
            log_event(event)

    def test_unknown_event_type_raises(self):
        event = ComplianceEvent(
            event_type="patient_waved",
            request_id=REQUEST_ID,
            request_type="med_cert",
            actor_role="patient",
        )

        with self.assertRaises(ValueError):
            log_event(event)

    def test_database_failure_returns_none_and_alerts(self):
        with patch.object(
            ComplianceAuditEntry.objects, "create", side_effect=DatabaseError("disk full")
        ), patch("intakeguard.compliance.ledger.send_alert") as mock_alert:
            result = ledger.log_call_initiated(REQUEST_ID, "med_cert", CLINICIAN_ID)

        self.assertIsNone(result)
        mock_alert.assert_called_once()
        self.assertEqual(mock_alert.call_args.kwargs["level"], "error")
        self.assertEqual(
            mock_alert.call_args.kwargs["tags"], {"event_type": "call_initiated"}
        )

    def test_every_wrapper_writes_its_event_type(self):
        calls = [
            (ledger.log_request_created, (REQUEST_ID, "med_cert", 1), "request_created"),
            (ledger.log_request_reviewed, (REQUEST_ID, "med_cert", CLINICIAN_ID), "request_reviewed"),
            (ledger.log_outcome_assigned, (REQUEST_ID, "med_cert", CLINICIAN_ID, "approved"), "outcome_assigned"),
            (ledger.log_clinician_opened_request, (REQUEST_ID, "med_cert", CLINICIAN_ID), "clinician_opened_request"),
            (ledger.log_clinician_reviewed_request, (REQUEST_ID, "med_cert", CLINICIAN_ID, 4200), "clinician_reviewed_request"),
            (ledger.log_clinician_selected_outcome, (REQUEST_ID, "med_cert", CLINICIAN_ID, "approved"), "clinician_selected_outcome"),
            (ledger.log_triage_approved, (REQUEST_ID, "med_cert", CLINICIAN_ID), "triage_approved"),
            (ledger.log_triage_needs_call, (REQUEST_ID, "med_cert", CLINICIAN_ID), "triage_needs_call"),
            (ledger.log_triage_declined, (REQUEST_ID, "med_cert", CLINICIAN_ID, "Outside scope"), "triage_declined"),
            (ledger.log_triage_outcome_changed, (REQUEST_ID, "med_cert", CLINICIAN_ID, "declined", "approved"), "triage_outcome_changed"),
            (ledger.log_call_required_flagged, (REQUEST_ID, "med_cert", CLINICIAN_ID), "call_required_flagged"),
            (ledger.log_call_initiated, (REQUEST_ID, "med_cert", CLINICIAN_ID), "call_initiated"),
            (ledger.log_call_completed, (REQUEST_ID, "med_cert", CLINICIAN_ID, True), "call_completed"),
            (ledger.log_decision_after_call, (REQUEST_ID, "med_cert", CLINICIAN_ID, "approved"), "decision_after_call"),
            (ledger.log_no_prescribing_in_platform, (REQUEST_ID, "med_cert", CLINICIAN_ID), "no_prescribing_in_platform"),
            (ledger.log_external_prescribing_indicated, (REQUEST_ID, "med_cert", CLINICIAN_ID, "eScript"), "external_prescribing_indicated"),
        ]

        for wrapper, args, event_type in calls:
            with self.subTest(event_type=event_type):
                entry_id = wrapper(*args)
                self.assertIsNotNone(entry_id)
                self.assertEqual(
                    ComplianceAuditEntry.objects.get(pk=entry_id).event_type, event_type
                )


class LedgerImmutabilityTests(TestCase):
    def setUp(self):
        self.entry = ComplianceAuditEntryFactory(request_id=REQUEST_ID)

    def test_save_of_existing_entry_is_refused(self):
        self.entry.actor_role = "admin"

        with self.assertRaises(ImmutableLedgerError):
            self.entry.save()

    def test_delete_is_refused(self):
        with self.assertRaises(ImmutableLedgerError):
            self.entry.delete()

    def test_queryset_update_is_refused(self):
        with self.assertRaises(ImmutableLedgerError):
            ComplianceAuditEntry.objects.filter(pk=self.entry.pk).update(outcome="declined")

    def test_queryset_delete_is_refused(self):
        with self.assertRaises(ImmutableLedgerError):
            ComplianceAuditEntry.objects.filter(request_id=REQUEST_ID).delete()

        self.assertTrue(ComplianceAuditEntry.objects.filter(pk=self.entry.pk).exists())


class TimelineTests(TestCase):
    def test_orders_by_time_then_id(self):
        now = timezone.now()
        later = ComplianceAuditEntryFactory(
            request_id=REQUEST_ID, event_type="triage_approved", created_at=now
        )
        earlier = ComplianceAuditEntryFactory(
            request_id=REQUEST_ID,
            event_type="clinician_opened_request",
            created_at=now - timedelta(minutes=3),
        )
        tie = ComplianceAuditEntryFactory(
            request_id=REQUEST_ID, event_type="no_prescribing_in_platform", created_at=now
        )
        ComplianceAuditEntryFactory(request_id=REQUEST_ID + 1, created_at=now)

        timeline = get_compliance_timeline(REQUEST_ID)

        self.assertEqual([row.id for row in timeline], [earlier.id, later.id, tie.id])

    def test_unknown_request_is_empty(self):
        self.assertEqual(get_compliance_timeline(999), [])


class AuditReadinessTests(TestCase):
    def _approved_by_clinician(self):
        ledger.log_clinician_opened_request(REQUEST_ID, "med_cert", CLINICIAN_ID)
        ledger.log_clinician_selected_outcome(
            REQUEST_ID, "med_cert", CLINICIAN_ID, "approved"
        )
        ledger.log_triage_approved(REQUEST_ID, "med_cert", CLINICIAN_ID)

    def test_complete_record_is_ready(self):
        self._approved_by_clinician()

        readiness = check_audit_readiness(REQUEST_ID)

        self.assertTrue(readiness.ready)
        self.assertEqual(readiness.missing, [])
        self.assertEqual(readiness.outcome, "approved")
        self.assertEqual(readiness.reviewed_by, CLINICIAN_ID)
        self.assertIsNotNone(readiness.decision_at)
        self.assertTrue(readiness.has_human_review)

    def test_empty_ledger_lists_everything_missing(self):
        readiness = check_audit_readiness(REQUEST_ID)

        self.assertFalse(readiness.ready)
        self.assertEqual(
            readiness.missing, ["outcome", "clinician_selected_outcome", "human_review"]
        )

    def test_patient_only_activity_lacks_human_review(self):
        ledger.log_request_created(REQUEST_ID, "med_cert", 1)

        readiness = check_audit_readiness(REQUEST_ID)

        self.assertIn("human_review", readiness.missing)

    def test_required_call_must_precede_decision(self):
        ledger.log_call_required_flagged(REQUEST_ID, "med_cert", CLINICIAN_ID)
        self._approved_by_clinician()

        readiness = check_audit_readiness(REQUEST_ID)

        self.assertFalse(readiness.ready)
        self.assertTrue(readiness.call_required)
        self.assertEqual(readiness.missing, ["call_completed_before_decision"])

    def test_call_completed_before_decision_satisfies_requirement(self):
        ledger.log_call_required_flagged(REQUEST_ID, "med_cert", CLINICIAN_ID)
        ledger.log_call_completed(REQUEST_ID, "med_cert", CLINICIAN_ID, before_decision=True)
        self._approved_by_clinician()

        readiness = check_audit_readiness(REQUEST_ID)

        self.assertTrue(readiness.ready)
        self.assertTrue(readiness.call_completed_before_decision)

    def test_call_completed_after_decision_is_not_enough(self):
        ledger.log_call_required_flagged(REQUEST_ID, "med_cert", CLINICIAN_ID)
        self._approved_by_clinician()
        ledger.log_call_completed(REQUEST_ID, "med_cert", CLINICIAN_ID, before_decision=False)

        readiness = check_audit_readiness(REQUEST_ID)

        self.assertIn("call_completed_before_decision", readiness.missing)
        self.assertFalse(readiness.call_completed_before_decision)

    def test_needs_call_outcome_does_not_require_completed_call(self):
        ledger.log_clinician_selected_outcome(
            REQUEST_ID, "med_cert", CLINICIAN_ID, "needs_call"
        )
        ledger.log_triage_needs_call(REQUEST_ID, "med_cert", CLINICIAN_ID)

        readiness = check_audit_readiness(REQUEST_ID)

        self.assertTrue(readiness.ready)

    def test_in_platform_prescribing_is_flagged(self):
        self._approved_by_clinician()
        ComplianceAuditEntryFactory(
            request_id=REQUEST_ID,
            event_type="external_prescribing_indicated",
            prescribing_occurred_in_platform=True,
        )

        readiness = check_audit_readiness(REQUEST_ID)

        self.assertEqual(readiness.missing, ["prescribing_boundary_violated"])

    def test_latest_outcome_wins(self):
        self._approved_by_clinician()
        ledger.log_triage_outcome_changed(
            REQUEST_ID, "med_cert", CLINICIAN_ID + 1, "declined", "approved"
        )

        readiness = check_audit_readiness(REQUEST_ID)

        self.assertEqual(readiness.outcome, "declined")
        self.assertEqual(readiness.reviewed_by, CLINICIAN_ID + 1)

    def test_to_dict_serializes_decision_time(self):
        self._approved_by_clinician()

        data = check_audit_readiness(REQUEST_ID).to_dict()

        self.assertTrue(data["ready"])
        self.assertIsInstance(data["decision_at"], str)


class PayloadTests(TestCase):
    def test_registry_knows_every_event_type(self):
        self.assertIs(payload_type_for("call_completed"), EmptyPayload)
        self.assertIs(payload_type_for("triage_declined"), DeclinePayload)

    def test_subclass_or_sibling_payload_is_rejected(self):
        with self.assertRaises(TypeError):
            serialize_payload("triage_needs_call", NotePayload(note="x"))

    def test_reason_payload_serializes(self):
        self.assertEqual(
            serialize_payload("triage_needs_call", ReasonPayload(reason="Allergy history")),
            {"reason": "Allergy history"},
        )
