# audit_core/models/drafts.py

from django.conf import settings
from django.db import models


class AuditDraft(models.Model):
    """
    Saved, resumable answer set for an in-progress sample.

    Keyed by the sample's public id rather than a foreign key so the draft
    lifecycle stays independent of the sample row.

    answers / remarks are opaque maps of question id -> value:
      {
        "q-greeting": "Yes",
        "q-resolution": ["Refund", "Escalated"]
      }
    """

    sample_id = models.CharField(max_length=64, unique=True)
    form_name = models.CharField(max_length=255, blank=True, default="")

    answers = models.JSONField(default=dict, blank=True)
    remarks = models.JSONField(default=dict, blank=True)

    saved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_drafts",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-updated_at", "id")

    def __str__(self):
        return f"Draft for {self.sample_id}"
