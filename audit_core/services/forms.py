# audit_core/services/forms.py
"""
Form catalog, visibility and scoring.

Form definitions are stored as JSON on AuditForm.sections:

  [
    {
      "id": "s-opening",
      "name": "Opening",
      "controlledBy": null,
      "questions": [
        {
          "id": "q-greeting",
          "text": "Did the agent greet the customer?",
          "mandatory": true,
          "isFatal": false,
          "weightage": 10,
          "controlledBy": null,
          "visibleOnValues": ["Yes"],
          "controlsSection": false,
          "controlledSectionId": null,
          "fatalValues": ["No"]
        }
      ]
    }
  ]

Answers and remarks are opaque maps of question id -> value.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.conf import settings

from audit_core.models import AuditForm

logger = logging.getLogger(__name__)


DEFAULT_FATAL_ANSWERS = ["No", "Failed", "Missing"]
DEFAULT_FAILING_ANSWERS = ["No", "Failed"]


def _as_values(raw: Any) -> List[str]:
    """
    visibleOnValues / fatalValues may be a list or a comma separated string.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        return [v.strip() for v in raw.split(",") if v.strip()]
    if isinstance(raw, (list, tuple, set)):
        return [str(v).strip() for v in raw if str(v).strip()]
    return [str(raw).strip()]


def _answer_values(answer: Any) -> List[str]:
    if answer is None:
        return []
    if isinstance(answer, (list, tuple)):
        return [str(v).strip() for v in answer]
    return [str(answer).strip()]


def is_empty_answer(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


# ---------------------------------------------------------------------
# Definition types
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Question:
    id: str
    text: str = ""
    mandatory: bool = False
    is_fatal: bool = False
    weightage: float = 0
    controlled_by: Optional[str] = None
    visible_on_values: List[str] = field(default_factory=list)
    controls_section: bool = False
    controlled_section_id: Optional[str] = None
    fatal_values: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Question":
        try:
            weightage = float(data.get("weightage") or 0)
        except (TypeError, ValueError):
            weightage = 0
        return cls(
            id=str(data.get("id") or ""),
            text=str(data.get("text") or ""),
            mandatory=bool(data.get("mandatory")),
            is_fatal=bool(data.get("isFatal")),
            weightage=weightage,
            controlled_by=data.get("controlledBy") or None,
            visible_on_values=_as_values(data.get("visibleOnValues")),
            controls_section=bool(data.get("controlsSection")),
            controlled_section_id=data.get("controlledSectionId") or None,
            fatal_values=_as_values(data.get("fatalValues")),
        )


@dataclass(frozen=True)
class Section:
    id: str
    name: str = ""
    controlled_by: Optional[str] = None
    questions: List[Question] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Section":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or data.get("title") or ""),
            controlled_by=data.get("controlledBy") or None,
            questions=[Question.from_dict(q) for q in data.get("questions") or [] if isinstance(q, Mapping)],
        )


@dataclass(frozen=True)
class FormDefinition:
    name: str
    sections: List[Section] = field(default_factory=list)

    @classmethod
    def from_sections(cls, name: str, sections: Iterable[Mapping[str, Any]]) -> "FormDefinition":
        return cls(
            name=name,
            sections=[Section.from_dict(s) for s in sections or [] if isinstance(s, Mapping)],
        )

    def all_questions(self) -> List[Question]:
        return [q for s in self.sections for q in s.questions]


@dataclass
class ScoreResult:
    score: int
    max_score: int
    raw_score: float
    raw_max_score: float
    has_fatal: bool
    section_answers: List[Dict[str, Any]]


# ---------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------

class FormCatalog:
    def get(self, name: str) -> Optional[FormDefinition]:
        if not name:
            return None
        form = AuditForm.objects.filter(name=name).first()
        if form is None:
            return None
        return FormDefinition.from_sections(form.name, form.sections)


# ---------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------

def _section_controller(form: FormDefinition, section: Section) -> Optional[Question]:
    for q in form.all_questions():
        if q.controls_section and q.controlled_section_id == section.id:
            return q
    return None


def _matches(answer: Any, allowed: List[str]) -> bool:
    values = _answer_values(answer) or [""]
    return any(v in allowed for v in values)


def is_section_visible(form: FormDefinition, section: Section, answers: Mapping[str, Any]) -> bool:
    if not section.controlled_by:
        return True
    controller = _section_controller(form, section)
    if controller is None:
        return True
    return _matches(answers.get(controller.id), controller.visible_on_values)


def is_question_visible(section: Section, question: Question, answers: Mapping[str, Any]) -> bool:
    if not question.controlled_by:
        return True
    controller = next((q for q in section.questions if q.id == question.controlled_by), None)
    if controller is None:
        return True
    allowed = controller.visible_on_values or question.visible_on_values
    return _matches(answers.get(controller.id), allowed)


def visible_questions(form: FormDefinition, answers: Mapping[str, Any]) -> List[Question]:
    out: List[Question] = []
    for section in form.sections:
        if not is_section_visible(form, section, answers):
            continue
        out.extend(q for q in section.questions if is_question_visible(section, q, answers))
    return out


def missing_mandatory(form: FormDefinition, answers: Mapping[str, Any]) -> List[str]:
    return [
        q.id
        for q in visible_questions(form, answers)
        if q.mandatory and is_empty_answer(answers.get(q.id))
    ]


# ---------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------

def _fatal_defaults() -> List[str]:
    return list(getattr(settings, "AUDIT_FATAL_ANSWERS", DEFAULT_FATAL_ANSWERS))


def _failing_answers() -> List[str]:
    return list(getattr(settings, "AUDIT_FAILING_ANSWERS", DEFAULT_FAILING_ANSWERS))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score(
    form: FormDefinition,
    answers: Mapping[str, Any],
    remarks: Optional[Mapping[str, Any]] = None,
) -> ScoreResult:
    """
    Percentage score over the visible questions.

    raw_max_score sums the weightage of every visible question. A visible
    question earns its weightage when answered with a non-failing value.
    Any fatal question answered with one of its fatal values forces 0.
    """
    remarks = remarks or {}
    failing = _failing_answers()
    fatal_defaults = _fatal_defaults()

    raw_score = 0.0
    raw_max = 0.0
    has_fatal = False
    section_answers: List[Dict[str, Any]] = []

    for section in form.sections:
        if not is_section_visible(form, section, answers):
            continue

        rows = []
        for q in section.questions:
            if not is_question_visible(section, q, answers):
                continue

            answer = answers.get(q.id)
            values = _answer_values(answer)

            if q.weightage > 0:
                raw_max += q.weightage
                if not is_empty_answer(answer) and not any(v in failing for v in values):
                    raw_score += q.weightage

            if q.is_fatal:
                triggers = q.fatal_values or fatal_defaults
                if any(v in triggers for v in values):
                    has_fatal = True

            rows.append(
                {
                    "questionId": q.id,
                    "text": q.text,
                    "answer": answer,
                    "remarks": remarks.get(q.id),
                    "weightage": q.weightage,
                    "isFatal": q.is_fatal,
                }
            )

        section_answers.append({"sectionId": section.id, "sectionName": section.name, "answers": rows})

    if has_fatal:
        pct = 0
    elif raw_max > 0:
        pct = _round_half_up(raw_score / raw_max * 100)
    else:
        pct = 100

    logger.debug("Scored form %s: %s/%s fatal=%s", form.name, raw_score, raw_max, has_fatal)

    return ScoreResult(
        score=pct,
        max_score=100,
        raw_score=raw_score,
        raw_max_score=raw_max,
        has_fatal=has_fatal,
        section_answers=section_answers,
    )
