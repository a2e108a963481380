# audit_core/workflows/guards.py

from django.core.exceptions import PermissionDenied
from django.db import models


class WorkflowWriteGuardMixin(models.Model):
    """
    Keep lifecycle-controlled columns out of reach of plain .save() calls.

    A sample's status, assignee and identifier only change through
    SampleStore, which is the one caller allowed to pass the bypass flag.
    Saving any other field (priority, metadata, ...) goes through untouched.

    Escape hatch:
      - save(_workflow_bypass=True), OR
      - instance._workflow_bypass = True
    """

    GUARDED_FIELDS = ("status",)
    WORKFLOW_BYPASS_KWARG = "_workflow_bypass"

    class Meta:
        abstract = True

    def guarded_changes(self):
        """
        Names of guarded fields whose in-memory value differs from the stored row.
        """
        if self.pk is None or not self.GUARDED_FIELDS:
            return []

        stored = self.__class__.objects.filter(pk=self.pk).values(*self.GUARDED_FIELDS).first()
        if stored is None:
            return []

        return [name for name in self.GUARDED_FIELDS if stored[name] != getattr(self, name, None)]

    def save(self, *args, **kwargs):
        bypass = bool(
            kwargs.pop(self.WORKFLOW_BYPASS_KWARG, False)
            or getattr(self, "_workflow_bypass", False)
        )

        if not bypass:
            changed = self.guarded_changes()
            if changed:
                raise PermissionDenied(
                    f"{self.__class__.__name__} {', '.join(changed)} can only be changed "
                    "through SampleStore."
                )

        return super().save(*args, **kwargs)
