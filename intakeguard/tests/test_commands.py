"""
Tests for the worker management commands and Celery task wrappers.
"""

from datetime import timedelta
from io import StringIO
from unittest.mock import Mock, patch

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from intakeguard import tasks
from intakeguard.retry.drafts import DraftResult
from intakeguard.tests.factories import DraftRetryFactory, IntakeFactory, ReviewerFactory


def run(command, *args):
    out = StringIO()
    call_command(command, *args, stdout=out)
    return out.getvalue()


class ReclaimCommandTests(TestCase):
    def setUp(self):
        self.stale = IntakeFactory(
            claimed=True,
            claimed_by=ReviewerFactory(),
            claimed_at=timezone.now() - timedelta(hours=2),
        )

    def test_dry_run_lists_without_releasing(self):
        output = run("reclaim_stale_claims", "--dry-run")

        self.assertIn("DRY RUN", output)
        self.assertIn(f"Intake {self.stale.id}", output)
        self.stale.refresh_from_db()
        self.assertEqual(self.stale.status, "claimed")

    def test_releases_stale_claims(self):
        output = run("reclaim_stale_claims")

        self.assertIn("reclaimed 1", output)
        self.stale.refresh_from_db()
        self.assertEqual(self.stale.status, "paid")

    def test_lease_override(self):
        output = run("reclaim_stale_claims", "--lease-minutes", "180")

        self.assertIn("reclaimed 0", output)

    @patch("intakeguard.management.commands.reclaim_stale_claims.reclaim_stale_claims")
    def test_worker_error_is_reported_not_raised(self, mock_reclaim):
        mock_reclaim.side_effect = RuntimeError("database is locked")

        output = run("reclaim_stale_claims")

        self.assertIn("Error reclaiming stale claims", output)


class StaleQueueCommandTests(TestCase):
    def test_within_sla(self):
        self.assertIn("Queue within SLA", run("check_stale_queue"))

    @patch("intakeguard.monitoring.alerts.SentryAlertSink.capture_message")
    def test_dry_run_sends_no_alert(self, mock_capture):
        IntakeFactory(paid=True, paid_at=timezone.now() - timedelta(hours=9))

        output = run("check_stale_queue", "--dry-run")

        self.assertIn("1 critical", output)
        mock_capture.assert_not_called()


class DraftRetryCommandTests(TestCase):
    @patch(
        "intakeguard.retry.services.get_draft_generator",
        return_value=lambda intake_id: DraftResult(success=True),
    )
    def test_processes_due_retries(self, _):
        entry = DraftRetryFactory()

        output = run("process_draft_retries")

        self.assertIn("1 succeeded", output)
        entry.refresh_from_db()
        self.assertEqual(entry.outcome, "succeeded")

    def test_dry_run_lists_due_retries(self):
        entry = DraftRetryFactory()

        output = run("process_draft_retries", "--dry-run")

        self.assertIn(f"Retry {entry.id}", output)
        entry.refresh_from_db()
        self.assertEqual(entry.attempts, 0)


class HealthCommandTests(TestCase):
    def test_reports_each_service(self):
        output = run("run_health_checks", "--no-alert")

        self.assertIn("database", output)
        self.assertIn("cache", output)
        self.assertIn("[OK]", output)


class RunWorkersCommandTests(TestCase):
    @patch(
        "intakeguard.retry.services.get_draft_generator",
        return_value=lambda intake_id: DraftResult(success=True),
    )
    def test_once_runs_every_worker(self, _):
        stale = IntakeFactory(
            claimed=True,
            claimed_by=ReviewerFactory(),
            claimed_at=timezone.now() - timedelta(hours=1),
        )
        entry = DraftRetryFactory()

        output = run("run_workers", "--once")

        self.assertIn("Ran 4 worker(s)", output)
        stale.refresh_from_db()
        self.assertEqual(stale.status, "paid")
        entry.refresh_from_db()
        self.assertEqual(entry.outcome, "succeeded")


class TaskTests(TestCase):
    def test_reclaim_task_returns_report(self):
        result = tasks.reclaim_stale_claims()

        self.assertEqual(result, {"scanned": 0, "reclaimed": 0, "skipped": 0})

    def test_sla_task_returns_report(self):
        result = tasks.check_stale_queue()

        self.assertEqual(result["stale_count"], 0)
        self.assertIsNone(result["alert"])

    @patch(
        "intakeguard.retry.services.get_draft_generator",
        return_value=lambda intake_id: DraftResult(success=True),
    )
    def test_retry_task_returns_report(self, _):
        DraftRetryFactory()

        result = tasks.process_draft_retries()

        self.assertEqual(result["succeeded"], 1)

    def test_health_task_returns_report(self):
        result = tasks.run_health_checks()

        self.assertTrue(result["healthy"])

    @patch(
        "intakeguard.retry.services.get_draft_generator",
        return_value=lambda intake_id: DraftResult(success=True),
    )
    def test_generate_intake_drafts(self, _):
        intake = IntakeFactory(paid=True)

        result = tasks.generate_intake_drafts(intake.id)

        self.assertEqual(result, {"intake_id": intake.id, "success": True})

    @patch("intakeguard.tasks.CELERY_ENABLED", True)
    def test_enqueue_uses_delay_when_celery_enabled(self):
        task = Mock()

        tasks.enqueue_or_run_sync(task, 12)

        task.delay.assert_called_once_with(12)
        task.assert_not_called()

    def test_enqueue_runs_inline_without_celery(self):
        task = Mock(return_value="done")

        self.assertEqual(tasks.enqueue_or_run_sync(task, 12), "done")
        task.delay.assert_not_called()

    def test_task_failure_propagates(self):
        with patch(
            "intakeguard.claims.services.reclaim_stale_claims",
            side_effect=RuntimeError("boom"),
        ):
            with self.assertRaises(RuntimeError):
                tasks.reclaim_stale_claims()
