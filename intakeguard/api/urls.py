"""
IntakeGuard API URL Configuration
"""

from django.urls import path

from .views import (
    AuditReadinessView,
    ClaimIntakeView,
    ComplianceTimelineView,
    HealthCheckView,
    ReleaseIntakeView,
)

urlpatterns = [
    path("health/", HealthCheckView.as_view(), name="api-health"),
    path(
        "intakes/<int:intake_id>/claim/",
        ClaimIntakeView.as_view(),
        name="intake-claim",
    ),
    path(
        "intakes/<int:intake_id>/release/",
        ReleaseIntakeView.as_view(),
        name="intake-release",
    ),
    path(
        "intakes/<int:intake_id>/compliance/timeline/",
        ComplianceTimelineView.as_view(),
        name="intake-compliance-timeline",
    ),
    path(
        "intakes/<int:intake_id>/compliance/readiness/",
        AuditReadinessView.as_view(),
        name="intake-compliance-readiness",
    ),
]
