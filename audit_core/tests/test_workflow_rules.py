import pytest

from audit_core.workflows import (
    allowed_next_states,
    is_known_state,
    normalize_state,
    validate_transition,
    workflow_definition,
)


@pytest.mark.parametrize(
    "current,target",
    [
        ("available", "assigned"),
        ("assigned", "inProgress"),
        ("assigned", "skipped"),
        ("inProgress", "completed"),
        ("inProgress", "skipped"),
    ],
)
def test_forward_edges_are_allowed(current, target):
    validate_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("available", "inProgress"),
        ("assigned", "completed"),
        ("completed", "available"),
        ("skipped", "assigned"),
        ("inProgress", "assigned"),
    ],
)
def test_illegal_edges_are_rejected(current, target):
    with pytest.raises(ValueError):
        validate_transition(current, target)


def test_reset_edge_needs_explicit_flag():
    with pytest.raises(ValueError):
        validate_transition("skipped", "available")

    for source in ("assigned", "inProgress", "skipped"):
        validate_transition(source, "available", allow_reset=True)

    with pytest.raises(ValueError):
        validate_transition("completed", "available", allow_reset=True)


def test_state_normalization():
    assert normalize_state(" ASSIGNED ") == "assigned"
    assert normalize_state("in_progress") == "inProgress"
    assert normalize_state("InProgress") == "inProgress"
    assert is_known_state("Skipped")
    assert not is_known_state("archived")


def test_allowed_next_states():
    assert allowed_next_states("assigned") == ["inProgress", "skipped"]
    assert allowed_next_states("skipped") == []
    assert allowed_next_states("skipped", include_reset=True) == ["available"]


def test_definition_is_serializable():
    definition = workflow_definition()
    assert definition["terminal_states"] == ["completed", "skipped"]
    assert definition["transitions"]["available"] == ["assigned"]
