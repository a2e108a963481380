# audit_core/models/__init__.py

from .core import (
    TimeStampedModel,
    AuditorProfile,
    AuditForm,
    AuditSample,
    AuditLog,
)
from .drafts import AuditDraft
from .records import AuditReport, SkippedSample, DeletedSample

__all__ = [
    "TimeStampedModel",
    "AuditorProfile",
    "AuditForm",
    "AuditSample",
    "AuditLog",
    "AuditDraft",
    "AuditReport",
    "SkippedSample",
    "DeletedSample",
]
