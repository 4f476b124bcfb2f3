"""Unit tests for the declarative state tables."""

from __future__ import annotations

import pytest

from collab_workflow.orchestrator.workflow.conditions import ConditionKind
from collab_workflow.orchestrator.workflow.registry import (
    PHASE_BATCHING,
    REGISTRIES,
    STRICT_INTERLEAVE,
    StateRegistry,
    Transition,
    UnknownStateError,
    WorkflowState,
    display_name,
    get_registry,
    phase_for_state,
)

_EMPTINESS_GUARDS = {
    ConditionKind.NO_PENDING_BRAINSTORM_ITEMS,
    ConditionKind.NO_PENDING_ROUGH_DRAFT_ITEMS,
    ConditionKind.NO_ITEMS_REMAINING,
}


@pytest.mark.parametrize("registry", list(REGISTRIES.values()), ids=list(REGISTRIES))
def test_emptiness_guard_precedes_item_type_guards(registry: StateRegistry) -> None:
    for state in registry.states():
        kinds = [t.condition.kind if t.condition else None for t in state.transitions]
        empties = [i for i, k in enumerate(kinds) if k in _EMPTINESS_GUARDS]
        typed = [i for i, k in enumerate(kinds) if k == ConditionKind.ITEM_TYPE]
        if empties and typed:
            assert max(empties) < min(typed), state.id


@pytest.mark.parametrize("registry", list(REGISTRIES.values()), ids=list(REGISTRIES))
def test_unguarded_transition_is_last(registry: StateRegistry) -> None:
    for state in registry.states():
        for t in state.transitions[:-1]:
            assert t.condition is not None, f"{state.id} -> {t.to}"


def test_lookup_and_reverse_lookup() -> None:
    assert PHASE_BATCHING.skill_for_state("execute-batch") == "executing-plans"
    assert PHASE_BATCHING.skill_for_state("batch-router") is None
    assert PHASE_BATCHING.skill_for_state("nope") is None
    assert PHASE_BATCHING.state_for_skill("executing-plans") == "execute-batch"
    assert PHASE_BATCHING.state_for_skill("gather-session-goals") == "gather-goals"
    assert PHASE_BATCHING.state_for_skill("not-a-skill") is None
    assert PHASE_BATCHING.get("nope") is None
    assert "collab-start" in PHASE_BATCHING


def test_require_unknown_state() -> None:
    with pytest.raises(UnknownStateError) as excinfo:
        PHASE_BATCHING.require("brainstorm-nowhere")
    assert excinfo.value.state_id == "brainstorm-nowhere"
    assert isinstance(excinfo.value, KeyError)


def test_registry_rejects_bad_tables() -> None:
    with pytest.raises(ValueError, match="Duplicate"):
        StateRegistry("dup", [WorkflowState("a", None), WorkflowState("a", None)])
    with pytest.raises(ValueError, match="unknown state"):
        StateRegistry("dangling", [WorkflowState("a", None, (Transition("b"),))])


def test_get_registry() -> None:
    assert get_registry() is PHASE_BATCHING
    assert get_registry("strict-interleave") is STRICT_INTERLEAVE
    with pytest.raises(ValueError, match="Unknown workflow topology"):
        get_registry("waterfall")


def test_phase_batching_has_no_context_checks() -> None:
    assert not [s.id for s in PHASE_BATCHING.states() if s.id.startswith("clear-")]
    assert [s.id for s in STRICT_INTERLEAVE.states() if s.id.startswith("clear-")]


def test_status_marks() -> None:
    marked = {s.id: s.marks.status.value for s in PHASE_BATCHING.states() if s.marks}
    assert marked == {
        "brainstorm-validating": "brainstormed",
        "task-planning": "complete",
        "systematic-debugging": "brainstormed",
        "rough-draft-blueprint": "complete",
    }


@pytest.mark.parametrize(
    ("state_id", "label"),
    [
        ("brainstorm-exploring", "Exploring"),
        ("execute-batch", "Executing"),
        ("clear-bs1", "Context Check"),
        ("clear-anything", "Context Check"),
        ("", ""),
        ("unknown-state", "unknown-state"),
        ("Brainstorm-Exploring", "Brainstorm-Exploring"),
    ],
)
def test_display_name(state_id: str, label: str) -> None:
    assert display_name(state_id) == label


@pytest.mark.parametrize(
    ("state_id", "phase"),
    [
        ("brainstorm-validating", "brainstorming"),
        ("systematic-debugging", "brainstorming"),
        ("rough-draft-confirm", "rough-draft/confirm"),
        ("rough-draft-blueprint", "rough-draft/blueprint"),
        ("build-task-graph", "rough-draft/task-graph"),
        ("execute-batch", "implementation"),
        ("clear-pre-execute", "implementation"),
        ("clear-post-batch", "implementation"),
        ("bug-review", "review"),
        ("done", "complete"),
        ("vibe-active", "vibe"),
    ],
)
def test_phase_for_state(state_id: str, phase: str) -> None:
    assert phase_for_state(state_id) == phase
