"""
Tests for the claim manager and the stale claim reclaimer.

Concurrent callers are simulated by interleaving calls against the same row;
each step is a single conditional UPDATE, so the interleavings below cover
the orders two overlapping requests or workers can actually produce.
"""

from datetime import timedelta
from unittest.mock import Mock, patch

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import ProtectedError
from django.test import TestCase
from django.utils import timezone

from intakeguard.claims import services as claim_services
from intakeguard.claims.services import (
    acquire_claim,
    complete_claim,
    reclaim_stale_claims,
    release_claim,
)
from intakeguard.compliance.models import ComplianceAuditEntry
from intakeguard.intakes.models import Intake
from intakeguard.scheduling import BatchBudget
from intakeguard.tests.factories import (
    AdminFactory,
    IntakeFactory,
    ReviewerFactory,
)


class AcquireClaimTests(TestCase):
    def setUp(self):
        self.intake = IntakeFactory(paid=True)
        self.reviewer = ReviewerFactory()
        self.other = ReviewerFactory()

    def test_claim_paid_intake(self):
        result = acquire_claim(self.intake.id, self.reviewer)

        self.assertTrue(result.ok)
        self.assertIsNone(result.reason)
        self.assertEqual(result.claimed_by_id, self.reviewer.id)

        self.intake.refresh_from_db()
        self.assertEqual(self.intake.status, "claimed")
        self.assertEqual(self.intake.claimed_by, self.reviewer)
        self.assertIsNotNone(self.intake.claimed_at)

    def test_claim_records_clinician_opened_request(self):
        acquire_claim(
            self.intake.id,
            self.reviewer,
            ip_address="10.0.0.5",
            user_agent="pytest",
        )

        entry = ComplianceAuditEntry.objects.get(request_id=self.intake.id)
        self.assertEqual(entry.event_type, "clinician_opened_request")
        self.assertEqual(entry.actor_id, self.reviewer.id)
        self.assertEqual(entry.actor_role, "clinician")
        self.assertEqual(entry.request_type, "med_cert")
        self.assertEqual(entry.ip_address, "10.0.0.5")
        self.assertEqual(entry.event_data, {"forced": False})

    def test_second_reviewer_gets_already_claimed(self):
        acquire_claim(self.intake.id, self.reviewer)

        result = acquire_claim(self.intake.id, self.other)

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "already_claimed")
        self.assertEqual(result.claimed_by_id, self.reviewer.id)
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.claimed_by, self.reviewer)

    def test_only_one_of_many_reviewers_wins(self):
        reviewers = [ReviewerFactory() for _ in range(8)]

        results = [acquire_claim(self.intake.id, reviewer) for reviewer in reviewers]

        winners = [result for result in results if result.ok]
        self.assertEqual(len(winners), 1)
        self.assertEqual(winners[0].claimed_by_id, reviewers[0].id)
        for loser in results[1:]:
            self.assertEqual(loser.reason, "already_claimed")
            self.assertEqual(loser.claimed_by_id, reviewers[0].id)
        self.assertEqual(
            ComplianceAuditEntry.objects.filter(request_id=self.intake.id).count(), 1
        )

    def test_missing_intake_is_not_found(self):
        result = acquire_claim(999999, self.reviewer)

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "not_found")

    def test_unpaid_intake_is_not_claimable(self):
        unpaid = IntakeFactory()

        result = acquire_claim(unpaid.id, self.reviewer)

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "not_claimable")
        unpaid.refresh_from_db()
        self.assertEqual(unpaid.status, "submitted")

    def test_decided_intake_is_not_claimable(self):
        decided = IntakeFactory(approved=True)

        result = acquire_claim(decided.id, self.reviewer)

        self.assertEqual(result.reason, "not_claimable")

    def test_holder_claiming_again_gets_already_claimed(self):
        first = acquire_claim(self.intake.id, self.reviewer)
        self.intake.refresh_from_db()
        claimed_at = self.intake.claimed_at

        again = acquire_claim(
            self.intake.id, self.reviewer, now=timezone.now() + timedelta(minutes=5)
        )

        self.assertTrue(first.ok)
        self.assertFalse(again.ok)
        self.assertEqual(again.reason, "already_claimed")
        self.assertEqual(again.claimed_by_id, self.reviewer.id)
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.claimed_by, self.reviewer)
        self.assertEqual(self.intake.claimed_at, claimed_at)
        self.assertEqual(
            ComplianceAuditEntry.objects.filter(request_id=self.intake.id).count(), 1
        )

    def test_holder_forcing_own_claim_changes_nothing(self):
        acquire_claim(self.intake.id, self.reviewer)

        result = acquire_claim(self.intake.id, self.reviewer, force=True)

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "already_claimed")
        self.assertEqual(
            ComplianceAuditEntry.objects.filter(request_id=self.intake.id).count(), 1
        )

    def test_ledger_failure_does_not_fail_claim(self):
        with patch(
            "intakeguard.compliance.ledger.ComplianceAuditEntry.objects.create",
            side_effect=DatabaseError("ledger down"),
        ), patch("intakeguard.compliance.ledger.send_alert") as mock_alert:
            result = acquire_claim(self.intake.id, self.reviewer)

        self.assertTrue(result.ok)
        mock_alert.assert_called_once()
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.status, "claimed")

    def test_ledger_lookup_failure_does_not_fail_claim(self):
        lookup = Mock()
        lookup.filter.return_value.values_list.return_value.first.side_effect = (
            DatabaseError("connection reset")
        )

        with patch.object(claim_services.Intake, "objects", lookup), patch(
            "intakeguard.claims.services.send_alert"
        ) as mock_alert:
            entry_id = claim_services._record_opened(
                self.intake.id, self.reviewer, None, None
            )

        self.assertIsNone(entry_id)
        mock_alert.assert_called_once()
        self.assertEqual(
            mock_alert.call_args.kwargs["tags"],
            {"event_type": "clinician_opened_request"},
        )
        self.assertFalse(
            ComplianceAuditEntry.objects.filter(request_id=self.intake.id).exists()
        )

    def test_claim_stands_when_ledger_lookup_fails(self):
        real_filter = Intake.objects.filter
        broken_lookup = Mock()
        broken_lookup.values_list.return_value.first.side_effect = DatabaseError(
            "connection reset"
        )

        def filter_then_break(*args, **kwargs):
            # The claim UPDATE goes through; the request_type read after it fails
            if "status" in kwargs:
                return real_filter(*args, **kwargs)
            return broken_lookup

        with patch.object(
            Intake.objects, "filter", side_effect=filter_then_break
        ), patch("intakeguard.claims.services.send_alert") as mock_alert:
            result = acquire_claim(self.intake.id, self.reviewer)

        self.assertTrue(result.ok)
        mock_alert.assert_called_once()
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.status, "claimed")
        self.assertEqual(self.intake.claimed_by, self.reviewer)


class ForcedClaimTests(TestCase):
    def setUp(self):
        self.intake = IntakeFactory(paid=True)
        self.reviewer = ReviewerFactory()
        self.admin = AdminFactory()
        acquire_claim(self.intake.id, self.reviewer)

    def test_force_takes_over_claim(self):
        result = acquire_claim(self.intake.id, self.admin, force=True)

        self.assertTrue(result.ok)
        self.assertEqual(result.claimed_by_id, self.admin.id)
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.claimed_by, self.admin)

        takeover = ComplianceAuditEntry.objects.filter(request_id=self.intake.id).last()
        self.assertEqual(takeover.actor_role, "admin")
        self.assertEqual(
            takeover.event_data,
            {"forced": True, "previous_holder_id": self.reviewer.id},
        )

    def test_takeover_of_holder_that_already_left_is_a_no_op(self):
        # Holder released between the admin reading the row and updating it
        release_claim(self.intake.id, self.reviewer)
        newcomer = ReviewerFactory()
        acquire_claim(self.intake.id, newcomer)

        result = claim_services._take_over(
            self.intake.id, self.admin, self.reviewer.id, None, None, timezone.now()
        )

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "already_claimed")
        self.assertEqual(result.claimed_by_id, newcomer.id)
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.claimed_by, newcomer)

    def test_force_on_unclaimed_intake_is_plain_claim(self):
        release_claim(self.intake.id, self.reviewer)

        result = acquire_claim(self.intake.id, self.admin, force=True)

        self.assertTrue(result.ok)
        latest = ComplianceAuditEntry.objects.filter(request_id=self.intake.id).last()
        self.assertEqual(latest.event_data, {"forced": False})


class ReleaseClaimTests(TestCase):
    def setUp(self):
        self.intake = IntakeFactory(paid=True)
        self.reviewer = ReviewerFactory()
        acquire_claim(self.intake.id, self.reviewer)

    def test_owner_release_returns_intake_to_queue(self):
        result = release_claim(self.intake.id, self.reviewer)

        self.assertTrue(result.ok)
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.status, "paid")
        self.assertIsNone(self.intake.claimed_by)
        self.assertIsNone(self.intake.claimed_at)

    def test_non_owner_release_is_a_no_op(self):
        other = ReviewerFactory()

        result = release_claim(self.intake.id, other)

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "not_owner")
        self.assertEqual(result.claimed_by_id, self.reviewer.id)
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.status, "claimed")
        self.assertEqual(self.intake.claimed_by, self.reviewer)

    def test_release_missing_intake(self):
        result = release_claim(999999, self.reviewer)

        self.assertEqual(result.reason, "not_found")

    def test_released_intake_can_be_claimed_again(self):
        release_claim(self.intake.id, self.reviewer)
        other = ReviewerFactory()

        result = acquire_claim(self.intake.id, other)

        self.assertTrue(result.ok)


class CompleteClaimTests(TestCase):
    def setUp(self):
        self.intake = IntakeFactory(paid=True)
        self.reviewer = ReviewerFactory()
        acquire_claim(self.intake.id, self.reviewer)

    def test_owner_completes_intake(self):
        now = timezone.now()

        result = complete_claim(self.intake.id, self.reviewer, "approved", now=now)

        self.assertTrue(result.ok)
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.status, "approved")
        self.assertIsNone(self.intake.claimed_by)
        self.assertIsNone(self.intake.claimed_at)
        self.assertEqual(self.intake.reviewed_by, self.reviewer)
        self.assertEqual(self.intake.decided_at, now)

    def test_non_owner_cannot_complete(self):
        other = ReviewerFactory()

        result = complete_claim(self.intake.id, other, "declined")

        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "not_owner")
        self.intake.refresh_from_db()
        self.assertEqual(self.intake.status, "claimed")

    def test_rejects_non_completion_status(self):
        with self.assertRaises(ValueError):
            complete_claim(self.intake.id, self.reviewer, "paid")

    def test_completed_intake_cannot_be_claimed(self):
        complete_claim(self.intake.id, self.reviewer, "escalated")

        result = acquire_claim(self.intake.id, ReviewerFactory())

        self.assertEqual(result.reason, "not_claimable")


class ClaimConstraintTests(TestCase):
    def test_claimed_status_requires_holder(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Intake.objects.create(status="claimed", payment_status="paid")

    def test_holder_requires_claimed_status(self):
        reviewer = ReviewerFactory()
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Intake.objects.create(
                    status="paid", payment_status="paid", claimed_by=reviewer
                )

    def test_holder_with_live_claim_cannot_be_deleted(self):
        reviewer = ReviewerFactory()
        intake = IntakeFactory(paid=True)
        acquire_claim(intake.id, reviewer)

        with self.assertRaises(ProtectedError):
            reviewer.delete()

        intake.refresh_from_db()
        self.assertEqual(intake.claimed_by, reviewer)

    def test_holder_can_be_deleted_after_release(self):
        reviewer = ReviewerFactory()
        intake = IntakeFactory(paid=True)
        acquire_claim(intake.id, reviewer)
        release_claim(intake.id, reviewer)

        reviewer.delete()

        intake.refresh_from_db()
        self.assertEqual(intake.status, "paid")
        self.assertIsNone(intake.claimed_by)


class InterleavingBudget(BatchBudget):
    """Budget that runs a competing action before the first item is handled."""

    def __init__(self, action):
        super().__init__(seconds=60)
        self.action = action

    def exhausted(self):
        if self.action is not None:
            action, self.action = self.action, None
            action()
        return False


class ReclaimStaleClaimsTests(TestCase):
    def setUp(self):
        self.now = timezone.now()
        self.reviewer = ReviewerFactory()

    def _claimed(self, minutes_ago):
        return IntakeFactory(
            claimed=True,
            claimed_by=self.reviewer,
            claimed_at=self.now - timedelta(minutes=minutes_ago),
        )

    def test_reclaims_claim_past_lease(self):
        stale = self._claimed(46)

        report = reclaim_stale_claims(now=self.now)

        self.assertEqual(report.scanned, 1)
        self.assertEqual(report.reclaimed, 1)
        stale.refresh_from_db()
        self.assertEqual(stale.status, "paid")
        self.assertIsNone(stale.claimed_by)
        self.assertIsNone(stale.claimed_at)

    def test_leaves_claim_within_lease(self):
        fresh = self._claimed(44)

        report = reclaim_stale_claims(now=self.now)

        self.assertEqual(report.scanned, 0)
        fresh.refresh_from_db()
        self.assertEqual(fresh.status, "claimed")

    def test_custom_lease(self):
        claim = self._claimed(20)

        report = reclaim_stale_claims(now=self.now, lease=timedelta(minutes=15))

        self.assertEqual(report.reclaimed, 1)
        claim.refresh_from_db()
        self.assertEqual(claim.status, "paid")

    def test_overlapping_runs_reclaim_once(self):
        self._claimed(60)
        self._claimed(50)

        first = reclaim_stale_claims(now=self.now)
        second = reclaim_stale_claims(now=self.now)

        self.assertEqual(first.reclaimed, 2)
        self.assertEqual(second.reclaimed, 0)
        self.assertEqual(second.scanned, 0)

    def test_concurrent_run_between_scan_and_update_is_skipped(self):
        self._claimed(60)

        budget = InterleavingBudget(lambda: reclaim_stale_claims(now=self.now))
        report = reclaim_stale_claims(now=self.now, budget=budget)

        self.assertEqual(report.scanned, 1)
        self.assertEqual(report.reclaimed, 0)
        self.assertEqual(report.skipped, 1)

    def test_reclaimed_then_reclaimed_again_row_is_left_alone(self):
        stale = self._claimed(60)
        newcomer = ReviewerFactory()

        def release_and_reclaim():
            release_claim(stale.id, self.reviewer)
            acquire_claim(stale.id, newcomer, now=self.now)

        budget = InterleavingBudget(release_and_reclaim)
        report = reclaim_stale_claims(now=self.now, budget=budget)

        self.assertEqual(report.reclaimed, 0)
        stale.refresh_from_db()
        self.assertEqual(stale.status, "claimed")
        self.assertEqual(stale.claimed_by, newcomer)

    def test_batch_size_takes_oldest_first(self):
        oldest = self._claimed(120)
        middle = self._claimed(90)
        newest = self._claimed(60)

        report = reclaim_stale_claims(now=self.now, batch_size=2)

        self.assertEqual(report.reclaimed, 2)
        for intake, expected in ((oldest, "paid"), (middle, "paid"), (newest, "claimed")):
            intake.refresh_from_db()
            self.assertEqual(intake.status, expected)

    def test_spent_budget_stops_run(self):
        claim = self._claimed(60)

        report = reclaim_stale_claims(now=self.now, budget=BatchBudget(seconds=0))

        self.assertEqual(report.scanned, 0)
        claim.refresh_from_db()
        self.assertEqual(claim.status, "claimed")
