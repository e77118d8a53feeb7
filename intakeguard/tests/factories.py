"""
Factory classes for generating test data for review-queue models.

Uses factory_boy to create valid test instances with sensible defaults.
Traits cover the common queue states (paid, claimed, decided).
"""

from datetime import timedelta

import factory
from django.contrib.auth.models import User
from django.utils import timezone
from factory.django import DjangoModelFactory

from intakeguard.compliance.models import ComplianceAuditEntry
from intakeguard.intakes.models import Intake
from intakeguard.retry.models import DraftRetry


class UserFactory(DjangoModelFactory):
    """Factory for Django User model."""

    class Meta:
        model = User
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda obj: f"{obj.username}@example.com")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")
    is_active = True
    is_staff = False
    is_superuser = False

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        """Set password after creation."""
        if not create:
            return
        if extracted:
            obj.set_password(extracted)
        else:
            obj.set_password("testpass123")


class ReviewerFactory(UserFactory):
    username = factory.Sequence(lambda n: f"reviewer{n}")


class AdminFactory(UserFactory):
    username = factory.Sequence(lambda n: f"admin{n}")
    is_staff = True


class IntakeFactory(DjangoModelFactory):
    """Factory for Intake model (submitted, unpaid by default)."""

    class Meta:
        model = Intake

    patient = factory.SubFactory(UserFactory)
    request_type = "med_cert"
    category = "medical_certificate"
    subtype = "work"

    class Params:
        paid = factory.Trait(
            status="paid",
            payment_status="paid",
            paid_at=factory.LazyFunction(timezone.now),
        )
        claimed = factory.Trait(
            status="claimed",
            payment_status="paid",
            paid_at=factory.LazyFunction(lambda: timezone.now() - timedelta(hours=1)),
            claimed_by=factory.SubFactory(ReviewerFactory),
            claimed_at=factory.LazyFunction(timezone.now),
        )
        approved = factory.Trait(
            status="approved",
            payment_status="paid",
            paid_at=factory.LazyFunction(lambda: timezone.now() - timedelta(hours=2)),
            reviewed_by=factory.SubFactory(ReviewerFactory),
            decided_at=factory.LazyFunction(timezone.now),
        )


class DraftRetryFactory(DjangoModelFactory):
    """Factory for DraftRetry model (pending and due now by default)."""

    class Meta:
        model = DraftRetry

    intake = factory.SubFactory(IntakeFactory, paid=True)
    attempts = 0
    max_attempts = 3
    next_retry_at = factory.LazyFunction(timezone.now)
    last_error = "Draft service unavailable"


class ComplianceAuditEntryFactory(DjangoModelFactory):
    """Factory for ComplianceAuditEntry model."""

    class Meta:
        model = ComplianceAuditEntry

    event_type = "clinician_opened_request"
    request_id = factory.Sequence(lambda n: n + 1)
    request_type = "med_cert"
    actor_id = 1
    actor_role = "clinician"
