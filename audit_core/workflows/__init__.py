# audit_core/workflows/__init__.py
from __future__ import annotations

from typing import Any, Dict, List, Set


# ===============================================================
# Canonical sample lifecycle
# ===============================================================

AVAILABLE = "available"
ASSIGNED = "assigned"
IN_PROGRESS = "inProgress"
COMPLETED = "completed"
SKIPPED = "skipped"

SAMPLE_STATES: Set[str] = {
    AVAILABLE,
    ASSIGNED,
    IN_PROGRESS,
    COMPLETED,
    SKIPPED,
}

# Forward edges only. The admin reset edge is kept separately below.
SAMPLE_TRANSITIONS: Dict[str, Set[str]] = {
    AVAILABLE: {ASSIGNED},
    ASSIGNED: {IN_PROGRESS, SKIPPED},
    IN_PROGRESS: {COMPLETED, SKIPPED},
    COMPLETED: set(),
    SKIPPED: set(),
}

RESET_SOURCES: Set[str] = {ASSIGNED, IN_PROGRESS, SKIPPED}

# Statuses that count towards an auditor's workload
WORKLOAD_STATES: Set[str] = {ASSIGNED, IN_PROGRESS}

# Statuses that require an assignee
ATTRIBUTED_STATES: Set[str] = {ASSIGNED, IN_PROGRESS, COMPLETED, SKIPPED}

TERMINAL_STATES: Set[str] = {
    state for state, nexts in SAMPLE_TRANSITIONS.items() if not nexts
}

_STATE_LOOKUP: Dict[str, str] = {s.lower(): s for s in SAMPLE_STATES}
_STATE_LOOKUP.update({"in_progress": IN_PROGRESS, "in-progress": IN_PROGRESS})


def normalize_state(value: str) -> str:
    """
    Map loosely formatted input ("InProgress", " ASSIGNED ") onto a
    canonical state. Unknown values are returned stripped, unchanged.
    """
    raw = str(value or "").strip()
    return _STATE_LOOKUP.get(raw.lower(), raw)


def is_known_state(value: str) -> bool:
    return normalize_state(value) in SAMPLE_STATES


def validate_transition(current: str, target: str, *, allow_reset: bool = False) -> None:
    """
    Raises ValueError if current -> target is not a legal sample transition.

    allow_reset enables the admin-only edge back to `available`.
    """
    cur = normalize_state(current)
    tgt = normalize_state(target)

    if cur not in SAMPLE_STATES:
        raise ValueError(f"Unknown sample state: {cur}")

    if tgt not in SAMPLE_STATES:
        raise ValueError(f"Unknown sample state: {tgt}")

    if allow_reset and tgt == AVAILABLE and cur in RESET_SOURCES:
        return

    if tgt not in SAMPLE_TRANSITIONS.get(cur, set()):
        raise ValueError(f"Invalid sample transition: {cur} -> {tgt}")


def allowed_next_states(current: str, *, include_reset: bool = False) -> List[str]:
    cur = normalize_state(current)
    nxt = set(SAMPLE_TRANSITIONS.get(cur, set()))
    if include_reset and cur in RESET_SOURCES:
        nxt.add(AVAILABLE)
    return sorted(nxt)


def workflow_definition() -> Dict[str, Any]:
    """
    Stable JSON-serializable definition for UI.
    """
    return {
        "kind": "sample",
        "states": sorted(SAMPLE_STATES),
        "transitions": {k: sorted(v) for k, v in SAMPLE_TRANSITIONS.items()},
        "reset_sources": sorted(RESET_SOURCES),
        "terminal_states": sorted(TERMINAL_STATES),
    }


__all__ = [
    "AVAILABLE",
    "ASSIGNED",
    "IN_PROGRESS",
    "COMPLETED",
    "SKIPPED",
    "SAMPLE_STATES",
    "SAMPLE_TRANSITIONS",
    "RESET_SOURCES",
    "WORKLOAD_STATES",
    "ATTRIBUTED_STATES",
    "TERMINAL_STATES",
    "normalize_state",
    "is_known_state",
    "validate_transition",
    "allowed_next_states",
    "workflow_definition",
]
