from __future__ import annotations

from typing import List

from rest_framework import serializers

from .models import (
    AuditDraft,
    AuditLog,
    AuditReport,
    AuditSample,
    DeletedSample,
    SkippedSample,
)
from .services.assignment import STRATEGIES
from .workflows import allowed_next_states


# ===============================================================
# Sample
# ===============================================================

class AuditSampleSerializer(serializers.ModelSerializer):
    assigned_to_username = serializers.CharField(source="assigned_to.username", read_only=True, default=None)
    uploaded_at = serializers.DateTimeField(read_only=True)
    allowed_next_states = serializers.SerializerMethodField()

    class Meta:
        model = AuditSample
        fields = (
            "id",
            "sample_id",
            "customer_name",
            "ticket_id",
            "form_type",
            "status",
            "allowed_next_states",
            "assigned_to",
            "assigned_to_username",
            "assigned_at",
            "priority",
            "metadata",
            "skip_reason",
            "has_draft",
            "batch_id",
            "uploaded_by",
            "date",
            "uploaded_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_allowed_next_states(self, obj: AuditSample) -> List[str]:
        return allowed_next_states(obj.status)


class SampleCreateSerializer(serializers.Serializer):
    """
    Intake payload. Status and assignment are never accepted here.
    """

    sample_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    customer_name = serializers.CharField(max_length=255)
    ticket_id = serializers.CharField(max_length=255)
    form_type = serializers.CharField(max_length=255)
    priority = serializers.ChoiceField(choices=AuditSample.Priority.choices, required=False)
    metadata = serializers.JSONField(required=False)
    batch_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    date = serializers.DateTimeField(required=False)

    def validate_metadata(self, value):
        if value is not None and not isinstance(value, dict):
            raise serializers.ValidationError("metadata must be an object.")
        return value


# ===============================================================
# Assignment payloads
# ===============================================================

class AssignSerializer(serializers.Serializer):
    auditor_id = serializers.IntegerField(required=False)
    random = serializers.BooleanField(required=False, default=False)
    exclude_self = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs.get("auditor_id") is None and not attrs.get("random"):
            raise serializers.ValidationError("Provide auditor_id or set random to true.")
        return attrs


class BulkAssignSerializer(serializers.Serializer):
    sample_ids = serializers.ListField(child=serializers.CharField(max_length=64), allow_empty=True)
    auditor_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)
    strategy = serializers.ChoiceField(choices=sorted(STRATEGIES), required=False)


# ===============================================================
# Lifecycle payloads
# ===============================================================

class AnswersSerializer(serializers.Serializer):
    answers = serializers.DictField(required=False, default=dict)
    remarks = serializers.DictField(required=False, default=dict)


class SkipSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True, trim_whitespace=True)


# ===============================================================
# Records (READ-ONLY)
# ===============================================================

class AuditDraftSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditDraft
        fields = ("sample_id", "form_name", "answers", "remarks", "saved_by", "updated_at")
        read_only_fields = fields


class AuditReportSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditReport
        fields = (
            "id",
            "audit_id",
            "form_name",
            "agent",
            "agent_id",
            "auditor",
            "auditor_name",
            "section_answers",
            "score",
            "max_score",
            "raw_score",
            "raw_max_score",
            "has_fatal",
            "created_at",
        )
        read_only_fields = fields


class SkippedSampleSerializer(serializers.ModelSerializer):
    class Meta:
        model = SkippedSample
        fields = ("id", "audit_id", "form_name", "agent", "agent_id", "auditor", "auditor_name", "reason", "status", "created_at")
        read_only_fields = fields


class DeletedSampleSerializer(serializers.ModelSerializer):
    class Meta:
        model = DeletedSample
        fields = ("id", "original_id", "sample_id", "status_at_deletion", "snapshot", "deleted_by", "deleted_by_name", "deleted_at")
        read_only_fields = fields


class AuditLogSerializer(serializers.ModelSerializer):
    user_username = serializers.CharField(source="user.username", read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ("id", "user", "user_username", "action", "details", "created_at")
        read_only_fields = fields


class AuditorSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    username = serializers.CharField()
    workload = serializers.IntegerField()
