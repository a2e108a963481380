# audit_core/models/core.py

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from audit_core.workflows import (
    ASSIGNED,
    AVAILABLE,
    COMPLETED,
    IN_PROGRESS,
    SKIPPED,
)
from audit_core.workflows.guards import WorkflowWriteGuardMixin


def _default_rights():
    return [getattr(settings, "AUDIT_CAPABILITY", "audit")]


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Auditor profile (identity + capability)
# ============================================================
class AuditorProfile(TimeStampedModel):
    """
    Audit-specific identity data for a Django user.

    `rights` is a plain list of capability strings ("audit",
    "manage_samples", ...). Protected profiles cannot be deactivated or
    lose rights; this replaces any special-casing of a literal username.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="auditor_profile",
    )
    rights = models.JSONField(default=_default_rights, blank=True)
    is_inactive = models.BooleanField(default=False, db_index=True)
    is_protected = models.BooleanField(default=False)

    class Meta:
        ordering = ["user_id"]

    def has_right(self, right: str) -> bool:
        return isinstance(self.rights, list) and right in self.rights

    def clean(self):
        if not isinstance(self.rights, list):
            raise ValidationError({"rights": "Rights must be a list of strings."})

        if self.is_protected and self.pk:
            old = AuditorProfile.objects.only("rights", "is_inactive").get(pk=self.pk)
            if self.is_inactive and not old.is_inactive:
                raise ValidationError("Protected accounts cannot be deactivated.")
            lost = set(old.rights or []) - set(self.rights or [])
            if lost:
                raise ValidationError(
                    {"rights": f"Protected accounts cannot lose rights: {', '.join(sorted(lost))}"}
                )

    def __str__(self):
        return f"{self.user.username} ({', '.join(self.rights or [])})"


# ============================================================
# Form catalog
# ============================================================
class AuditForm(TimeStampedModel):
    """
    Stored form definition. `sections` holds the section/question schema
    read by audit_core.services.forms.
    """

    name = models.CharField(max_length=255, unique=True)
    sections = models.JSONField(default=list, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_forms",
    )

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


# ============================================================
# Audit sample
# ============================================================
class AuditSample(WorkflowWriteGuardMixin, TimeStampedModel):
    GUARDED_FIELDS = ("status", "assigned_to_id", "sample_id")

    class Status(models.TextChoices):
        AVAILABLE = "available", "Available"
        ASSIGNED = "assigned", "Assigned"
        IN_PROGRESS = "inProgress", "In progress"
        COMPLETED = "completed", "Completed"
        SKIPPED = "skipped", "Skipped"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"

    # Filled by the store right after insert when the caller does not supply one
    sample_id = models.CharField(max_length=64, unique=True, null=True, blank=True)

    customer_name = models.CharField(max_length=255)
    ticket_id = models.CharField(max_length=255)
    form_type = models.CharField(max_length=255, db_index=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.AVAILABLE,
        editable=False,
        db_index=True,
    )

    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assigned_samples",
    )
    assigned_at = models.DateTimeField(null=True, blank=True)

    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM,
    )
    metadata = models.JSONField(default=dict, blank=True)
    skip_reason = models.TextField(blank=True, default="")
    has_draft = models.BooleanField(default=False)

    batch_id = models.CharField(max_length=64, blank=True, default="")
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="uploaded_samples",
    )
    date = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                name="audit_sample_assignee_matches_status",
                condition=(
                    Q(status=AVAILABLE, assigned_to__isnull=True)
                    | Q(status__in=[ASSIGNED, IN_PROGRESS, COMPLETED], assigned_to__isnull=False)
                    | Q(status=SKIPPED)
                ),
            ),
        ]
        indexes = [
            models.Index(fields=["assigned_to", "status"], name="sample_assignee_status_idx"),
        ]

    @property
    def uploaded_at(self):
        return self.created_at

    def __str__(self):
        return f"{self.sample_id} ({self.status})"


# ============================================================
# Audit log (reporting mirror)
# ============================================================
class AuditLog(TimeStampedModel):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    action = models.CharField(max_length=255, db_index=True)
    details = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["action", "created_at"], name="audit_action_time_idx"),
        ]

    def __str__(self):
        return self.action
