"""
IntakeGuard API Views

Thin HTTP layer over the claim manager, the compliance ledger read side and
the dependency health check. Business rules live in the service modules.
"""

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response
from rest_framework.views import APIView

from intakeguard.claims.services import (
    REASON_NOT_FOUND,
    acquire_claim,
    release_claim,
)
from intakeguard.compliance.ledger import (
    check_audit_readiness,
    get_compliance_timeline,
)
from intakeguard.intakes.models import Intake
from intakeguard.logging_utils import add_log_context, extract_request_context
from intakeguard.monitoring.health import run_health_checks

from .serializers import (
    AuditReadinessSerializer,
    ClaimRequestSerializer,
    ClaimResultSerializer,
    ComplianceAuditEntrySerializer,
)
from .throttling import ClaimRateThrottle, ReadOnlyThrottle


def _claim_response(result):
    data = ClaimResultSerializer(result).data
    if result.ok:
        return Response(data, status=status.HTTP_200_OK)
    if result.reason == REASON_NOT_FOUND:
        return Response(data, status=status.HTTP_404_NOT_FOUND)
    return Response(data, status=status.HTTP_409_CONFLICT)


class ClaimIntakeView(APIView):
    """
    Claim an intake for review.

    POST /api/intakes/<id>/claim/  {"force": false}

    Returns:
        200: Claimed
        404: No such intake
        409: Already claimed (the caller included), or not in the queue
    """

    throttle_classes = [ClaimRateThrottle]

    def post(self, request, intake_id):
        serializer = ClaimRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        force = serializer.validated_data["force"]

        if force and not request.user.is_staff:
            raise PermissionDenied("Only admins can take over a claim")

        context = extract_request_context(request)
        ip_address = context.get("ip")
        if ip_address == "unknown":
            ip_address = None

        with add_log_context(**context):
            result = acquire_claim(
                intake_id,
                request.user,
                force=force,
                ip_address=ip_address,
                user_agent=request.META.get("HTTP_USER_AGENT"),
            )
        return _claim_response(result)


class ReleaseIntakeView(APIView):
    """
    Release the caller's claim on an intake.

    POST /api/intakes/<id>/release/

    Returns:
        200: Released
        404: No such intake
        409: The caller does not hold the claim
    """

    throttle_classes = [ClaimRateThrottle]

    def post(self, request, intake_id):
        with add_log_context(**extract_request_context(request)):
            result = release_claim(intake_id, request.user)
        return _claim_response(result)


class ComplianceTimelineView(APIView):
    """
    Compliance ledger entries for an intake, oldest first.

    GET /api/intakes/<id>/compliance/timeline/
    """

    throttle_classes = [ReadOnlyThrottle]

    def get(self, request, intake_id):
        get_object_or_404(Intake, pk=intake_id)
        entries = get_compliance_timeline(intake_id)
        serializer = ComplianceAuditEntrySerializer(entries, many=True)
        return Response({"request_id": intake_id, "entries": serializer.data})


class AuditReadinessView(APIView):
    """
    Whether an intake's ledger holds the minimum evidence for audit.

    GET /api/intakes/<id>/compliance/readiness/
    """

    throttle_classes = [ReadOnlyThrottle]

    def get(self, request, intake_id):
        get_object_or_404(Intake, pk=intake_id)
        readiness = check_audit_readiness(intake_id)
        return Response(AuditReadinessSerializer(readiness).data)


class HealthCheckView(APIView):
    """
    Dependency health check endpoint (no auth required).

    GET /api/health/

    Returns:
        200: Every dependency is healthy
        503: At least one dependency failed
    """

    authentication_classes = []
    permission_classes = []

    def get(self, request):
        report = run_health_checks()
        status_code = (
            status.HTTP_200_OK
            if report.healthy
            else status.HTTP_503_SERVICE_UNAVAILABLE
        )
        return Response(report.to_dict(), status=status_code)
