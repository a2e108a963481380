# audit_core/models/records.py
"""
Side records written by lifecycle transitions. All append-only.
"""

from django.conf import settings
from django.db import models


class AuditReport(models.Model):
    """
    Immutable completed-audit record.
    """

    audit_id = models.CharField(max_length=64, db_index=True)
    form_name = models.CharField(max_length=255)
    agent = models.CharField(max_length=255)
    agent_id = models.CharField(max_length=255)

    auditor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="audit_reports",
    )
    auditor_name = models.CharField(max_length=150)

    section_answers = models.JSONField(default=list, blank=True)
    score = models.PositiveIntegerField()
    max_score = models.PositiveIntegerField(default=100)
    raw_score = models.FloatField(default=0)
    raw_max_score = models.FloatField(default=0)
    has_fatal = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.audit_id}: {self.score}/{self.max_score}"


class SkippedSample(models.Model):
    """
    Skip record kept for review by elevated roles.
    """

    class State(models.TextChoices):
        SKIPPED = "skipped", "Skipped"
        RESTORED = "restored", "Restored"

    audit_id = models.CharField(max_length=64, db_index=True)
    form_name = models.CharField(max_length=255)
    agent = models.CharField(max_length=255)
    agent_id = models.CharField(max_length=255)

    auditor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="skipped_samples",
    )
    auditor_name = models.CharField(max_length=150)
    reason = models.TextField()

    status = models.CharField(
        max_length=16,
        choices=State.choices,
        default=State.SKIPPED,
        db_index=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.audit_id} skipped by {self.auditor_name}"


class DeletedSample(models.Model):
    """
    Provenance for permanently deleted samples: who, when, and what.
    """

    original_id = models.PositiveBigIntegerField()
    sample_id = models.CharField(max_length=64, db_index=True)
    status_at_deletion = models.CharField(max_length=20)
    snapshot = models.JSONField(default=dict, blank=True)

    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="deleted_samples",
    )
    deleted_by_name = models.CharField(max_length=150)
    deleted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-deleted_at"]

    def __str__(self):
        return f"{self.sample_id} deleted by {self.deleted_by_name}"
