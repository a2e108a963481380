# audit_core/services/store.py
"""
Sample store: the single writer of AuditSample rows.

Lifecycle and assignment services never call .save() on samples directly;
they go through SampleStore.update() so status writes pass the workflow
guard in one place and storage failures surface as PersistenceError.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction

from audit_core.exceptions import NotFound, PersistenceError, ValidationError
from audit_core.models import AuditSample
from audit_core.workflows import (
    ATTRIBUTED_STATES,
    AVAILABLE,
    SKIPPED,
    is_known_state,
    normalize_state,
)


# Fields a caller may pass to create()/update()
WRITABLE_FIELDS = {
    "sample_id",
    "customer_name",
    "ticket_id",
    "form_type",
    "status",
    "assigned_to",
    "assigned_to_id",
    "assigned_at",
    "priority",
    "metadata",
    "skip_reason",
    "has_draft",
    "batch_id",
    "uploaded_by",
    "uploaded_by_id",
    "date",
}


def _id_prefix() -> str:
    return getattr(settings, "AUDIT_SAMPLE_ID_PREFIX", "AS")


def format_sample_id(pk: int) -> str:
    return f"{_id_prefix()}-{pk:06d}"


@contextmanager
def persistence_errors(action: str) -> Iterator[None]:
    """
    Re-raise storage failures as PersistenceError.
    """
    try:
        yield
    except IntegrityError as exc:
        raise PersistenceError(f"{action} violated a storage constraint: {exc}") from exc
    except DatabaseError as exc:
        raise PersistenceError(f"{action} failed: {exc}") from exc


class SampleStore:
    model = AuditSample

    # ---------------------------------------------------------
    # Reads
    # ---------------------------------------------------------
    def get(self, sample_id: str) -> AuditSample:
        with persistence_errors("Loading sample"):
            sample = (
                self.model.objects.select_related("assigned_to")
                .filter(sample_id=sample_id)
                .first()
            )
        if sample is None:
            raise NotFound(f"Sample {sample_id} does not exist.", sample_id=sample_id)
        return sample

    def get_for_update(self, sample_id: str) -> AuditSample:
        """
        Lock the sample row for the rest of the current transaction.
        Must be called inside transaction.atomic().
        """
        with persistence_errors("Locking sample"):
            sample = (
                self.model.objects.select_for_update()
                .filter(sample_id=sample_id)
                .first()
            )
        if sample is None:
            raise NotFound(f"Sample {sample_id} does not exist.", sample_id=sample_id)
        return sample

    def exists(self, sample_id: str) -> bool:
        with persistence_errors("Loading sample"):
            return self.model.objects.filter(sample_id=sample_id).exists()

    def available_ids(self, sample_ids: Iterable[str]) -> List[str]:
        """
        The subset of sample_ids that are currently available, in the given order.
        """
        ids = list(sample_ids)
        with persistence_errors("Filtering available samples"):
            found = set(
                self.model.objects.filter(sample_id__in=ids, status=AVAILABLE)
                .values_list("sample_id", flat=True)
            )
        return [sid for sid in ids if sid in found]

    def list_by_status(self, status: Optional[str] = None, *, assigned_to=None) -> List[AuditSample]:
        """
        Samples in insertion order. Skipped samples only appear when
        status="skipped" is requested explicitly.
        """
        qs = self.model.objects.select_related("assigned_to").order_by("id")

        if status:
            status = normalize_state(status)
            if not is_known_state(status):
                raise ValidationError(f"Unknown sample status: {status}")
            qs = qs.filter(status=status)
        else:
            qs = qs.exclude(status=SKIPPED)

        if assigned_to is not None:
            qs = qs.filter(assigned_to_id=getattr(assigned_to, "pk", assigned_to))

        with persistence_errors("Listing samples"):
            return list(qs)

    # ---------------------------------------------------------
    # Writes
    # ---------------------------------------------------------
    def create(self, **fields: Any) -> AuditSample:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown sample fields: {', '.join(sorted(unknown))}")

        status = normalize_state(fields.pop("status", None) or AVAILABLE)
        if not is_known_state(status):
            raise ValidationError(f"Unknown sample status: {status}")

        has_assignee = bool(fields.get("assigned_to") or fields.get("assigned_to_id"))
        if status == AVAILABLE and has_assignee:
            raise ValidationError("Available samples cannot have an assignee.")
        if status in ATTRIBUTED_STATES - {SKIPPED} and not has_assignee:
            raise ValidationError(f"Samples in status '{status}' need an assignee.")

        for name in ("customer_name", "ticket_id", "form_type"):
            if not str(fields.get(name) or "").strip():
                raise ValidationError(f"{name} is required.", missing=[name])

        supplied_id = str(fields.pop("sample_id", "") or "").strip()
        if supplied_id and self.exists(supplied_id):
            raise ValidationError(f"Sample {supplied_id} already exists.", sample_id=supplied_id)

        with persistence_errors("Creating sample"), transaction.atomic():
            sample = self.model(status=status, sample_id=supplied_id or None, **fields)
            sample.save(_workflow_bypass=True)
            if not supplied_id:
                sample.sample_id = format_sample_id(sample.pk)
                self.model.objects.filter(pk=sample.pk).update(sample_id=sample.sample_id)

        return sample

    def update(self, sample_id: str, /, **fields: Any) -> AuditSample:
        """
        Merge fields into the sample. The state machine is not checked here.
        """
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown sample fields: {', '.join(sorted(unknown))}")

        if "sample_id" in fields:
            new_id = fields.pop("sample_id")
            if not new_id:
                raise ValidationError("sample_id cannot be cleared.", sample_id=sample_id)
            if new_id != sample_id:
                raise ValidationError("sample_id is immutable.", sample_id=sample_id)

        if "status" in fields:
            fields["status"] = normalize_state(fields["status"])
            if not is_known_state(fields["status"]):
                raise ValidationError(f"Unknown sample status: {fields['status']}")

        with persistence_errors("Updating sample"), transaction.atomic():
            sample = self.get_for_update(sample_id)
            for name, value in fields.items():
                setattr(sample, name, value)
            sample.save(_workflow_bypass=True)

        return sample

    def delete(self, sample_id: str) -> bool:
        with persistence_errors("Deleting sample"):
            deleted, _ = self.model.objects.filter(sample_id=sample_id).delete()
        return deleted > 0


def as_record(sample: AuditSample) -> Dict[str, Any]:
    """
    Plain dict of every sample field, used for provenance snapshots.
    """
    assignee = sample.assigned_to
    return {
        "id": sample.sample_id,
        "customer_name": sample.customer_name,
        "ticket_id": sample.ticket_id,
        "form_type": sample.form_type,
        "status": sample.status,
        "assigned_to": sample.assigned_to_id,
        "assigned_to_username": getattr(assignee, "username", None),
        "assigned_at": sample.assigned_at.isoformat() if sample.assigned_at else None,
        "priority": sample.priority,
        "metadata": sample.metadata or {},
        "skip_reason": sample.skip_reason,
        "has_draft": sample.has_draft,
        "batch_id": sample.batch_id,
        "uploaded_by": sample.uploaded_by_id,
        "date": sample.date.isoformat() if sample.date else None,
        "uploaded_at": sample.created_at.isoformat() if sample.created_at else None,
    }
