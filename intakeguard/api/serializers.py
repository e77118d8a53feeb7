"""
IntakeGuard API Serializers

Request-body validation for the claim endpoints and read-only
representations of compliance ledger entries.
"""

from rest_framework import serializers

from intakeguard.compliance.models import ComplianceAuditEntry


class ClaimRequestSerializer(serializers.Serializer):
    force = serializers.BooleanField(required=False, default=False)


class ClaimResultSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    reason = serializers.CharField(allow_null=True)
    claimed_by = serializers.IntegerField(allow_null=True, source="claimed_by_id")


class ComplianceAuditEntrySerializer(serializers.ModelSerializer):
    """Timeline entry; ip_address and user_agent stay out of API responses."""

    class Meta:
        model = ComplianceAuditEntry
        fields = [
            "id",
            "event_type",
            "actor_id",
            "actor_role",
            "is_human_action",
            "outcome",
            "previous_outcome",
            "call_required",
            "call_occurred",
            "call_completed_before_decision",
            "prescribing_occurred_in_platform",
            "external_prescribing_reference",
            "event_data",
            "created_at",
        ]
        read_only_fields = fields


class AuditReadinessSerializer(serializers.Serializer):
    request_id = serializers.IntegerField()
    ready = serializers.BooleanField()
    missing = serializers.ListField(child=serializers.CharField())
    outcome = serializers.CharField(allow_null=True)
    reviewed_by = serializers.IntegerField(allow_null=True)
    decision_at = serializers.DateTimeField(allow_null=True)
    call_required = serializers.BooleanField()
    call_completed_before_decision = serializers.BooleanField(allow_null=True)
    has_human_review = serializers.BooleanField()
