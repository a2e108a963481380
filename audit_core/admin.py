# audit_core/admin.py

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    AuditorProfile,
    AuditForm,
    AuditSample,
    AuditLog,
    AuditDraft,
    AuditReport,
    SkippedSample,
    DeletedSample,
)


# =============================================================
# Auditor profiles
# =============================================================

@admin.register(AuditorProfile)
class AuditorProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "rights", "is_inactive", "is_protected", "updated_at")
    list_filter = ("is_inactive", "is_protected")
    search_fields = ("user__username",)
    readonly_fields = ("created_at", "updated_at")

    def get_readonly_fields(self, request, obj=None):
        ro = list(super().get_readonly_fields(request, obj))
        # Protection is granted on creation only
        if obj is not None and obj.is_protected:
            ro.append("is_protected")
        return ro

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.is_protected:
            return False
        return super().has_delete_permission(request, obj)


# =============================================================
# Forms
# =============================================================

@admin.register(AuditForm)
class AuditFormAdmin(admin.ModelAdmin):
    list_display = ("name", "section_count", "created_by", "updated_at")
    search_fields = ("name",)
    readonly_fields = ("created_at", "updated_at")

    def section_count(self, obj):
        return len(obj.sections or [])

    section_count.short_description = "Sections"


# =============================================================
# Samples (status is engine-owned)
# =============================================================

@admin.register(AuditSample)
class AuditSampleAdmin(admin.ModelAdmin):
    list_display = (
        "sample_id",
        "customer_name",
        "ticket_id",
        "form_type",
        "status_badge",
        "assigned_to",
        "priority",
        "has_draft",
        "created_at",
    )
    list_filter = ("status", "priority", "form_type", "has_draft")
    search_fields = ("sample_id", "customer_name", "ticket_id", "assigned_to__username")
    ordering = ("id",)

    readonly_fields = (
        "sample_id",
        "status",
        "assigned_to",
        "assigned_at",
        "skip_reason",
        "has_draft",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False

    def status_badge(self, obj):
        colours = {
            "available": "#2e7d32",
            "assigned": "#1565c0",
            "inProgress": "#ed6c02",
            "completed": "#616161",
            "skipped": "#c62828",
        }
        return format_html(
            '<span style="color:{};font-weight:bold;">{}</span>',
            colours.get(obj.status, "#000"),
            obj.get_status_display(),
        )

    status_badge.short_description = "Status"


# =============================================================
# Side records (READ-ONLY)
# =============================================================

class ReadOnlyAdmin(admin.ModelAdmin):
    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditDraft)
class AuditDraftAdmin(ReadOnlyAdmin):
    list_display = ("sample_id", "form_name", "saved_by", "updated_at")
    search_fields = ("sample_id",)


@admin.register(AuditReport)
class AuditReportAdmin(ReadOnlyAdmin):
    list_display = ("audit_id", "form_name", "agent", "auditor_name", "score", "has_fatal", "created_at")
    list_filter = ("form_name", "has_fatal")
    search_fields = ("audit_id", "agent", "agent_id", "auditor_name")
    ordering = ("-created_at",)


@admin.register(SkippedSample)
class SkippedSampleAdmin(ReadOnlyAdmin):
    list_display = ("audit_id", "form_name", "auditor_name", "reason", "status", "created_at")
    list_filter = ("status", "form_name")
    search_fields = ("audit_id", "auditor_name")
    ordering = ("-created_at",)


@admin.register(DeletedSample)
class DeletedSampleAdmin(ReadOnlyAdmin):
    list_display = ("sample_id", "status_at_deletion", "deleted_by_name", "deleted_at")
    search_fields = ("sample_id", "deleted_by_name")
    ordering = ("-deleted_at",)


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ("action", "user", "created_at")
    list_filter = ("action",)
    search_fields = ("action", "user__username")
    ordering = ("-created_at",)
