from django.contrib import admin

from .models import ComplianceAuditEntry, DraftRetry, Intake


@admin.register(Intake)
class IntakeAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "request_type",
        "status",
        "payment_status",
        "claimed_by",
        "claimed_at",
        "paid_at",
        "risk_score",
    )
    list_filter = ("status", "payment_status", "request_type")
    search_fields = ("id", "category", "subtype")
    # Claim fields change only through conditional updates in claims.services
    readonly_fields = ("claimed_by", "claimed_at", "risk_score", "risk_flags")


@admin.register(DraftRetry)
class DraftRetryAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "intake",
        "outcome",
        "attempts",
        "max_attempts",
        "next_retry_at",
        "completed_at",
    )
    list_filter = ("outcome",)
    readonly_fields = ("attempts", "completed_at", "outcome", "last_error")

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ComplianceAuditEntry)
class ComplianceAuditEntryAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "request_id",
        "event_type",
        "actor_role",
        "actor_id",
        "outcome",
        "created_at",
    )
    list_filter = ("event_type", "actor_role", "outcome")
    search_fields = ("request_id",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
