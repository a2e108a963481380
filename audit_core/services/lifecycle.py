# audit_core/services/lifecycle.py
"""
Lifecycle controller: every status transition after assignment.

  available -> assigned -> inProgress -> completed
  assigned | inProgress -> skipped
  assigned | inProgress | skipped -> available   (reset, managers only)

Each transition locks the sample row and writes the status change together
with its side records (draft, report, skip record, deletion provenance) in
one transaction. Events are emitted once that transaction has closed.

Permission checks (who may reset or delete) live in the API layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction

from audit_core.exceptions import InvalidState, NotFound, ValidationError
from audit_core.models import AuditDraft, AuditReport, AuditSample, DeletedSample, SkippedSample
from audit_core.services import forms
from audit_core.services.events import (
    SAMPLE_COMPLETED,
    SAMPLE_CREATED,
    SAMPLE_DELETED,
    SAMPLE_DRAFT_SAVED,
    SAMPLE_RESET,
    SAMPLE_SKIPPED,
    SAMPLE_STARTED,
    EventSink,
    SampleEvent,
    default_sink,
)
from audit_core.services.store import SampleStore, as_record, persistence_errors
from audit_core.workflows import (
    AVAILABLE,
    COMPLETED,
    IN_PROGRESS,
    SKIPPED,
    validate_transition,
)

logger = logging.getLogger(__name__)


@dataclass
class StartResult:
    sample: AuditSample
    answers: Dict[str, Any] = field(default_factory=dict)
    remarks: Dict[str, Any] = field(default_factory=dict)
    form: Optional[forms.FormDefinition] = None
    warnings: List[str] = field(default_factory=list)
    resumed: bool = False


def _user_id(user) -> Optional[int]:
    return getattr(user, "pk", user)


def _username(user) -> str:
    if not user:
        return "system"
    try:
        return user.get_username()
    except AttributeError:
        return str(user)


def _all_empty(*maps: Optional[Mapping[str, Any]]) -> bool:
    for m in maps:
        for value in (m or {}).values():
            if not forms.is_empty_answer(value):
                return False
    return True


class LifecycleController:
    def __init__(
        self,
        store: Optional[SampleStore] = None,
        catalog: Optional[forms.FormCatalog] = None,
        sink: Optional[EventSink] = None,
        purge_draft_on_complete: Optional[bool] = None,
    ):
        self.store = store or SampleStore()
        self.catalog = catalog or forms.FormCatalog()
        self.sink = sink or default_sink()
        if purge_draft_on_complete is None:
            purge_draft_on_complete = getattr(settings, "AUDIT_PURGE_DRAFT_ON_COMPLETE", True)
        self.purge_draft_on_complete = bool(purge_draft_on_complete)

    # ---------------------------------------------------------
    # helpers
    # ---------------------------------------------------------
    def _require(self, sample: AuditSample, target: str, *, allow_reset: bool = False) -> None:
        try:
            validate_transition(sample.status, target, allow_reset=allow_reset)
        except ValueError as exc:
            raise InvalidState(str(exc), sample_id=sample.sample_id, status=sample.status) from exc

    def _require_owner(self, sample: AuditSample, auditor_id) -> None:
        if sample.assigned_to_id != _user_id(auditor_id):
            raise InvalidState(
                f"Sample {sample.sample_id} is not assigned to this auditor.",
                sample_id=sample.sample_id,
                status=sample.status,
            )

    def _emit(self, kind: str, sample_id: str, actor=None, **payload: Any) -> None:
        self.sink.emit(SampleEvent(kind=kind, sample_id=sample_id, actor_id=_user_id(actor), payload=payload))

    # ---------------------------------------------------------
    # intake
    # ---------------------------------------------------------
    def create_sample(self, *, created_by=None, **fields: Any) -> AuditSample:
        if created_by is not None and "uploaded_by" not in fields and "uploaded_by_id" not in fields:
            fields["uploaded_by_id"] = _user_id(created_by)
        sample = self.store.create(**fields)
        logger.info("Sample %s created", sample.sample_id)
        self._emit(SAMPLE_CREATED, sample.sample_id, created_by, form_type=sample.form_type)
        return sample

    # ---------------------------------------------------------
    # start / resume
    # ---------------------------------------------------------
    def start(self, sample_id: str, auditor_id) -> StartResult:
        """
        assigned -> inProgress for the assignee, loading any saved draft.

        Calling start on a sample already inProgress for the same auditor
        resumes it without a transition. A missing form definition is
        reported in `warnings`; the sample still enters inProgress.
        """
        resumed = False
        with persistence_errors("Starting sample"), transaction.atomic():
            sample = self.store.get_for_update(sample_id)
            self._require_owner(sample, auditor_id)

            if sample.status == IN_PROGRESS:
                resumed = True
            else:
                self._require(sample, IN_PROGRESS)
                sample = self.store.update(sample_id, status=IN_PROGRESS)

            draft = AuditDraft.objects.filter(sample_id=sample_id).first()

        result = StartResult(sample=sample, resumed=resumed)
        form_name = sample.form_type
        if draft is not None:
            result.answers = dict(draft.answers or {})
            result.remarks = dict(draft.remarks or {})
            form_name = draft.form_name or form_name

        result.form = self.catalog.get(form_name)
        if result.form is None:
            result.warnings.append(f"Form definition '{form_name}' was not found.")
            logger.warning("Sample %s started without form definition %r", sample_id, form_name)

        if not resumed:
            logger.info("Sample %s started by auditor %s", sample_id, _user_id(auditor_id))
            self._emit(SAMPLE_STARTED, sample_id, auditor_id, has_draft=draft is not None)
        return result

    def resume(self, sample_id: str, auditor_id) -> StartResult:
        return self.start(sample_id, auditor_id)

    # ---------------------------------------------------------
    # drafts
    # ---------------------------------------------------------
    def save_draft(
        self,
        sample_id: str,
        answers: Optional[Mapping[str, Any]],
        remarks: Optional[Mapping[str, Any]] = None,
        *,
        saved_by=None,
    ) -> AuditDraft:
        with persistence_errors("Saving draft"), transaction.atomic():
            sample = self.store.get_for_update(sample_id)
            if sample.status != IN_PROGRESS:
                raise InvalidState(
                    f"Drafts can only be saved for samples in progress (currently '{sample.status}').",
                    sample_id=sample_id,
                    status=sample.status,
                )

            if _all_empty(answers, remarks):
                raise ValidationError("Draft is empty: nothing to save.", sample_id=sample_id)

            draft, _ = AuditDraft.objects.update_or_create(
                sample_id=sample_id,
                defaults={
                    "form_name": sample.form_type,
                    "answers": dict(answers or {}),
                    "remarks": dict(remarks or {}),
                    "saved_by_id": _user_id(saved_by),
                },
            )
            if not sample.has_draft:
                self.store.update(sample_id, has_draft=True)

        self._emit(SAMPLE_DRAFT_SAVED, sample_id, saved_by)
        return draft

    # ---------------------------------------------------------
    # complete
    # ---------------------------------------------------------
    def complete(
        self,
        sample_id: str,
        answers: Optional[Mapping[str, Any]],
        remarks: Optional[Mapping[str, Any]] = None,
        *,
        completed_by=None,
    ) -> AuditReport:
        answers = dict(answers or {})
        remarks = dict(remarks or {})

        with persistence_errors("Completing sample"), transaction.atomic():
            sample = self.store.get_for_update(sample_id)
            self._require(sample, COMPLETED)

            form = self.catalog.get(sample.form_type)
            if form is None:
                raise NotFound(
                    f"Form definition '{sample.form_type}' does not exist.",
                    sample_id=sample_id,
                    form_name=sample.form_type,
                )

            missing = forms.missing_mandatory(form, answers)
            if missing:
                raise ValidationError(
                    f"{len(missing)} mandatory question(s) unanswered.",
                    missing=missing,
                    sample_id=sample_id,
                )

            result = forms.score(form, answers, remarks)
            auditor = sample.assigned_to

            report = AuditReport.objects.create(
                audit_id=sample_id,
                form_name=form.name,
                agent=sample.customer_name,
                agent_id=sample.ticket_id,
                auditor=auditor,
                auditor_name=_username(auditor),
                section_answers=result.section_answers,
                score=result.score,
                max_score=result.max_score,
                raw_score=result.raw_score,
                raw_max_score=result.raw_max_score,
                has_fatal=result.has_fatal,
            )

            changes: Dict[str, Any] = {"status": COMPLETED}
            if self.purge_draft_on_complete:
                AuditDraft.objects.filter(sample_id=sample_id).delete()
                changes["has_draft"] = False
            self.store.update(sample_id, **changes)

        logger.info("Sample %s completed: score=%s fatal=%s", sample_id, report.score, report.has_fatal)
        self._emit(
            SAMPLE_COMPLETED,
            sample_id,
            completed_by or auditor,
            score=report.score,
            has_fatal=report.has_fatal,
            report_id=report.pk,
        )
        return report

    # ---------------------------------------------------------
    # skip
    # ---------------------------------------------------------
    def skip(self, sample_id: str, auditor_id, reason: str) -> SkippedSample:
        reason = (reason or "").strip()

        with persistence_errors("Skipping sample"), transaction.atomic():
            sample = self.store.get_for_update(sample_id)
            self._require(sample, SKIPPED)
            self._require_owner(sample, auditor_id)

            if not reason:
                raise ValidationError("A reason is required to skip a sample.", sample_id=sample_id)

            auditor = sample.assigned_to
            record = SkippedSample.objects.create(
                audit_id=sample_id,
                form_name=sample.form_type,
                agent=sample.customer_name,
                agent_id=sample.ticket_id,
                auditor=auditor,
                auditor_name=_username(auditor),
                reason=reason,
            )
            self.store.update(sample_id, status=SKIPPED, skip_reason=reason)

        logger.info("Sample %s skipped by auditor %s", sample_id, _user_id(auditor_id))
        self._emit(SAMPLE_SKIPPED, sample_id, auditor_id, reason=reason)
        return record

    # ---------------------------------------------------------
    # reset (managers)
    # ---------------------------------------------------------
    def reset(self, sample_id: str, *, reset_by=None) -> AuditSample:
        """
        Return a sample to the pool. Drafts are kept; open skip records
        for the sample are marked restored.
        """
        with persistence_errors("Resetting sample"), transaction.atomic():
            sample = self.store.get_for_update(sample_id)
            previous = sample.status
            self._require(sample, AVAILABLE, allow_reset=True)

            sample = self.store.update(
                sample_id,
                status=AVAILABLE,
                assigned_to=None,
                assigned_at=None,
                skip_reason="",
            )
            SkippedSample.objects.filter(
                audit_id=sample_id,
                status=SkippedSample.State.SKIPPED,
            ).update(status=SkippedSample.State.RESTORED)

        logger.info("Sample %s reset from %s", sample_id, previous)
        self._emit(SAMPLE_RESET, sample_id, reset_by, previous_status=previous)
        return sample

    # ---------------------------------------------------------
    # permanent delete (managers)
    # ---------------------------------------------------------
    def permanent_delete(self, sample_id: str, deleted_by) -> DeletedSample:
        if deleted_by is None:
            raise ValidationError("deleted_by is required for a permanent delete.", sample_id=sample_id)
        if not hasattr(deleted_by, "get_username"):
            user = get_user_model().objects.filter(pk=deleted_by).first()
            if user is None:
                raise NotFound(f"User {deleted_by} does not exist.", user_id=deleted_by)
            deleted_by = user

        with persistence_errors("Deleting sample"), transaction.atomic():
            sample = self.store.get_for_update(sample_id)

            snapshot = as_record(sample)
            draft = AuditDraft.objects.filter(sample_id=sample_id).first()
            if draft is not None:
                snapshot["draft"] = {
                    "form_name": draft.form_name,
                    "answers": draft.answers,
                    "remarks": draft.remarks,
                }

            record = DeletedSample.objects.create(
                original_id=sample.pk,
                sample_id=sample_id,
                status_at_deletion=sample.status,
                snapshot=snapshot,
                deleted_by_id=_user_id(deleted_by),
                deleted_by_name=_username(deleted_by),
            )

            if draft is not None:
                draft.delete()
            self.store.delete(sample_id)

        logger.info("Sample %s permanently deleted (was %s)", sample_id, record.status_at_deletion)
        self._emit(SAMPLE_DELETED, sample_id, deleted_by, status_at_deletion=record.status_at_deletion)
        return record
