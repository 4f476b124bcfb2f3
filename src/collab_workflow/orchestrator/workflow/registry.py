"""Declarative workflow state tables.

Every state is a record: id, the skill invoked while the session sits in it
(``None`` for routing nodes), and its transitions in evaluation order. The
transition resolver is a generic interpreter over these tables, so guard order
can be audited here by reading the data.

Routing rule: a router that checks both "pending work of type X" and "no
pending work" must list the emptiness guard first. Once an item leaves the
pending pool its type is stale; checking type first would loop forever.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from .conditions import (
    BATCHES_REMAINING,
    NO_BATCHES_REMAINING,
    NO_ITEMS_REMAINING,
    NO_PENDING_BRAINSTORM_ITEMS,
    NO_PENDING_ROUGH_DRAFT_ITEMS,
    PENDING_BRAINSTORM_ITEMS,
    Condition,
    item_type,
    session_type,
)
from .models import ItemStatus, SessionType, WorkItemType

Topology = Literal["phase-batching", "strict-interleave"]

CLEAR_SKILL = "collab-clear"


class ItemSelector(str, Enum):
    """Rules for picking a work item out of the session's item list."""

    PENDING_BRAINSTORM = "pending_brainstorm"
    PENDING_ROUGH_DRAFT = "pending_rough_draft"
    BRAINSTORMED_TASK = "brainstormed_task"
    PENDING_BUGFIX = "pending_bugfix"


@dataclass(frozen=True, slots=True)
class StatusMark:
    """Status applied to the current item when a state's skill completes.

    ``infer`` picks the item when the session lost track of its current item.
    """

    status: ItemStatus
    infer: ItemSelector


@dataclass(frozen=True, slots=True)
class Transition:
    to: str
    condition: Condition | None = None


@dataclass(frozen=True, slots=True)
class WorkflowState:
    id: str
    skill: str | None
    transitions: tuple[Transition, ...] = ()
    marks: StatusMark | None = None
    selects: ItemSelector | None = None
    advances_batch: bool = False
    syncs_tasks: bool = False

    @property
    def is_routing(self) -> bool:
        return self.skill is None


class UnknownStateError(KeyError):
    def __init__(self, state_id: str) -> None:
        self.state_id = state_id
        super().__init__(f"Unknown workflow state: {state_id!r}")

    def __str__(self) -> str:
        return str(self.args[0])


class StateRegistry:
    """Immutable lookup over an ordered set of workflow states."""

    def __init__(self, name: str, states: Iterable[WorkflowState]) -> None:
        self.name = name
        self._states: tuple[WorkflowState, ...] = tuple(states)
        self._by_id: dict[str, WorkflowState] = {}
        for state in self._states:
            if state.id in self._by_id:
                raise ValueError(f"Duplicate workflow state id: {state.id}")
            self._by_id[state.id] = state

        for state in self._states:
            for t in state.transitions:
                if t.to not in self._by_id:
                    raise ValueError(f"State {state.id!r} transitions to unknown state {t.to!r}")

    def __contains__(self, state_id: object) -> bool:
        return state_id in self._by_id

    def __len__(self) -> int:
        return len(self._states)

    def states(self) -> tuple[WorkflowState, ...]:
        return self._states

    def get(self, state_id: str) -> WorkflowState | None:
        return self._by_id.get(state_id)

    def require(self, state_id: str) -> WorkflowState:
        state = self._by_id.get(state_id)
        if state is None:
            raise UnknownStateError(state_id)
        return state

    def skill_for_state(self, state_id: str) -> str | None:
        state = self._by_id.get(state_id)
        return state.skill if state is not None else None

    def state_for_skill(self, skill: str) -> str | None:
        """Reverse lookup used when a driver reports completion by skill name."""

        for state in self._states:
            if state.skill == skill:
                return state.id
        return None


def _go(to: str, condition: Condition | None = None) -> Transition:
    return Transition(to=to, condition=condition)


_MARK_BRAINSTORMED = StatusMark(ItemStatus.BRAINSTORMED, ItemSelector.PENDING_BRAINSTORM)
_MARK_DEBUGGED = StatusMark(ItemStatus.BRAINSTORMED, ItemSelector.PENDING_BUGFIX)
_MARK_TASK_PLANNED = StatusMark(ItemStatus.COMPLETE, ItemSelector.BRAINSTORMED_TASK)
_MARK_DRAFTED = StatusMark(ItemStatus.COMPLETE, ItemSelector.PENDING_ROUGH_DRAFT)

_FINISHING_STATES: tuple[WorkflowState, ...] = (
    WorkflowState(
        id="workflow-complete",
        skill="finishing-a-development-branch",
        transitions=(_go("cleanup"),),
    ),
    WorkflowState(id="cleanup", skill="collab-cleanup", transitions=(_go("done"),)),
    WorkflowState(id="done", skill=None),
)


PHASE_BATCHING = StateRegistry(
    "phase-batching",
    (
        # Entry
        WorkflowState(
            id="collab-start",
            skill="collab-start",
            transitions=(
                _go("vibe-active", session_type(SessionType.VIBE)),
                _go("gather-goals"),
            ),
        ),
        WorkflowState(
            id="vibe-active",
            skill="vibe-active",
            transitions=(
                _go("brainstorm-item-router", PENDING_BRAINSTORM_ITEMS),
                _go("cleanup"),
            ),
        ),
        WorkflowState(
            id="gather-goals",
            skill="gather-session-goals",
            transitions=(_go("brainstorm-item-router"),),
        ),
        # Brainstorm phase: every item, one at a time
        WorkflowState(
            id="brainstorm-item-router",
            skill=None,
            selects=ItemSelector.PENDING_BRAINSTORM,
            transitions=(
                _go("rough-draft-confirm", NO_PENDING_BRAINSTORM_ITEMS),
                _go("systematic-debugging", item_type(WorkItemType.BUGFIX)),
                _go("brainstorm-exploring", item_type(WorkItemType.CODE)),
                _go("brainstorm-exploring", item_type(WorkItemType.TASK)),
            ),
        ),
        WorkflowState(
            id="brainstorm-exploring",
            skill="brainstorming-exploring",
            transitions=(_go("brainstorm-clarifying"),),
        ),
        WorkflowState(
            id="brainstorm-clarifying",
            skill="brainstorming-clarifying",
            transitions=(_go("brainstorm-designing"),),
        ),
        WorkflowState(
            id="brainstorm-designing",
            skill="brainstorming-designing",
            transitions=(_go("brainstorm-validating"),),
        ),
        WorkflowState(
            id="brainstorm-validating",
            skill="brainstorming-validating",
            marks=_MARK_BRAINSTORMED,
            transitions=(_go("item-type-router"),),
        ),
        WorkflowState(
            id="item-type-router",
            skill=None,
            transitions=(
                _go("task-planning", item_type(WorkItemType.TASK)),
                _go("brainstorm-item-router"),
            ),
        ),
        WorkflowState(
            id="task-planning",
            skill="task-planning",
            marks=_MARK_TASK_PLANNED,
            transitions=(_go("brainstorm-item-router"),),
        ),
        WorkflowState(
            id="systematic-debugging",
            skill="systematic-debugging",
            marks=_MARK_DEBUGGED,
            transitions=(_go("brainstorm-item-router"),),
        ),
        # Rough-draft phase: code and bugfix items only
        WorkflowState(
            id="rough-draft-confirm",
            skill="rough-draft-confirm",
            transitions=(_go("rough-draft-item-router"),),
        ),
        WorkflowState(
            id="rough-draft-item-router",
            skill=None,
            selects=ItemSelector.PENDING_ROUGH_DRAFT,
            transitions=(
                _go("ready-to-implement", NO_PENDING_ROUGH_DRAFT_ITEMS),
                _go("rough-draft-blueprint", item_type(WorkItemType.CODE)),
                _go("rough-draft-blueprint", item_type(WorkItemType.BUGFIX)),
            ),
        ),
        WorkflowState(
            id="rough-draft-blueprint",
            skill="rough-draft-blueprint",
            marks=_MARK_DRAFTED,
            transitions=(_go("rough-draft-item-router"),),
        ),
        # Execution
        WorkflowState(
            id="ready-to-implement",
            skill="ready-to-implement",
            syncs_tasks=True,
            transitions=(_go("batch-router"),),
        ),
        WorkflowState(
            id="batch-router",
            skill=None,
            transitions=(
                _go("execute-batch", BATCHES_REMAINING),
                _go("bug-review", NO_BATCHES_REMAINING),
            ),
        ),
        WorkflowState(
            id="execute-batch",
            skill="executing-plans",
            advances_batch=True,
            transitions=(_go("log-batch-complete"),),
        ),
        WorkflowState(
            id="log-batch-complete",
            skill=None,
            transitions=(_go("batch-router"),),
        ),
        WorkflowState(
            id="bug-review",
            skill="bug-review",
            transitions=(_go("completeness-review"),),
        ),
        WorkflowState(
            id="completeness-review",
            skill="completeness-review",
            transitions=(_go("workflow-complete"),),
        ),
        *_FINISHING_STATES,
    ),
)


def _clear(state_id: str, to: str) -> WorkflowState:
    return WorkflowState(id=state_id, skill=CLEAR_SKILL, transitions=(_go(to),))


STRICT_INTERLEAVE = StateRegistry(
    "strict-interleave",
    (
        WorkflowState(
            id="collab-start",
            skill="collab-start",
            transitions=(
                _go("vibe-active", session_type(SessionType.VIBE)),
                _go("gather-goals"),
            ),
        ),
        WorkflowState(
            id="vibe-active",
            skill="vibe-active",
            transitions=(
                _go("work-item-router", PENDING_BRAINSTORM_ITEMS),
                _go("cleanup"),
            ),
        ),
        WorkflowState(
            id="gather-goals",
            skill="gather-session-goals",
            transitions=(_go("clear-pre-item"),),
        ),
        _clear("clear-pre-item", "work-item-router"),
        WorkflowState(
            id="work-item-router",
            skill=None,
            selects=ItemSelector.PENDING_BRAINSTORM,
            transitions=(
                _go("ready-to-implement", NO_ITEMS_REMAINING),
                _go("brainstorm-exploring", item_type(WorkItemType.CODE)),
                _go("brainstorm-exploring", item_type(WorkItemType.TASK)),
                _go("systematic-debugging", item_type(WorkItemType.BUGFIX)),
            ),
        ),
        WorkflowState(
            id="brainstorm-exploring",
            skill="brainstorming-exploring",
            transitions=(_go("clear-bs1"),),
        ),
        _clear("clear-bs1", "brainstorm-clarifying"),
        WorkflowState(
            id="brainstorm-clarifying",
            skill="brainstorming-clarifying",
            transitions=(_go("clear-bs2"),),
        ),
        _clear("clear-bs2", "brainstorm-designing"),
        WorkflowState(
            id="brainstorm-designing",
            skill="brainstorming-designing",
            transitions=(_go("clear-bs3"),),
        ),
        _clear("clear-bs3", "brainstorm-validating"),
        WorkflowState(
            id="brainstorm-validating",
            skill="brainstorming-validating",
            marks=_MARK_BRAINSTORMED,
            transitions=(_go("item-type-router"),),
        ),
        WorkflowState(
            id="item-type-router",
            skill=None,
            transitions=(
                _go("task-planning", item_type(WorkItemType.TASK)),
                _go("clear-pre-rough"),
            ),
        ),
        _clear("clear-pre-rough", "rough-draft-interface"),
        WorkflowState(
            id="rough-draft-interface",
            skill="rough-draft-interface",
            transitions=(_go("clear-rd1"),),
        ),
        _clear("clear-rd1", "rough-draft-pseudocode"),
        WorkflowState(
            id="rough-draft-pseudocode",
            skill="rough-draft-pseudocode",
            transitions=(_go("clear-rd2"),),
        ),
        _clear("clear-rd2", "rough-draft-skeleton"),
        WorkflowState(
            id="rough-draft-skeleton",
            skill="rough-draft-skeleton",
            transitions=(_go("clear-rd3"),),
        ),
        _clear("clear-rd3", "build-task-graph"),
        WorkflowState(
            id="build-task-graph",
            skill="build-task-graph",
            transitions=(_go("clear-rd4"),),
        ),
        _clear("clear-rd4", "rough-draft-handoff"),
        WorkflowState(
            id="rough-draft-handoff",
            skill="rough-draft-handoff",
            marks=_MARK_DRAFTED,
            transitions=(_go("clear-post-item"),),
        ),
        WorkflowState(
            id="task-planning",
            skill="task-planning",
            marks=_MARK_TASK_PLANNED,
            transitions=(_go("clear-post-item"),),
        ),
        WorkflowState(
            id="systematic-debugging",
            skill="systematic-debugging",
            marks=_MARK_DEBUGGED,
            transitions=(_go("clear-pre-rough"),),
        ),
        _clear("clear-post-item", "work-item-router"),
        WorkflowState(
            id="ready-to-implement",
            skill="ready-to-implement",
            syncs_tasks=True,
            transitions=(_go("clear-pre-execute"),),
        ),
        _clear("clear-pre-execute", "batch-router"),
        WorkflowState(
            id="batch-router",
            skill=None,
            transitions=(
                _go("execute-batch", BATCHES_REMAINING),
                _go("workflow-complete", NO_BATCHES_REMAINING),
            ),
        ),
        WorkflowState(
            id="execute-batch",
            skill="executing-plans",
            advances_batch=True,
            transitions=(_go("log-batch-complete"),),
        ),
        WorkflowState(
            id="log-batch-complete",
            skill=None,
            transitions=(_go("clear-post-batch"),),
        ),
        _clear("clear-post-batch", "batch-router"),
        *_FINISHING_STATES,
    ),
)

REGISTRIES: dict[str, StateRegistry] = {
    PHASE_BATCHING.name: PHASE_BATCHING,
    STRICT_INTERLEAVE.name: STRICT_INTERLEAVE,
}


def get_registry(topology: str = "phase-batching") -> StateRegistry:
    try:
        return REGISTRIES[topology]
    except KeyError:
        raise ValueError(
            f"Unknown workflow topology {topology!r}; expected one of {sorted(REGISTRIES)}"
        ) from None


STATE_DISPLAY_NAMES: dict[str, str] = {
    "collab-start": "Starting",
    "gather-goals": "Gathering Goals",
    "vibe-active": "Vibing",
    "brainstorm-exploring": "Exploring",
    "brainstorm-clarifying": "Clarifying",
    "brainstorm-designing": "Designing",
    "brainstorm-validating": "Validating",
    "systematic-debugging": "Investigating",
    "task-planning": "Planning Task",
    "rough-draft-confirm": "Confirming Rough Draft",
    "rough-draft-blueprint": "Drafting Blueprint",
    "rough-draft-interface": "Defining Interfaces",
    "rough-draft-pseudocode": "Writing Pseudocode",
    "rough-draft-skeleton": "Building Skeleton",
    "build-task-graph": "Building Tasks",
    "rough-draft-handoff": "Preparing Handoff",
    "ready-to-implement": "Ready",
    "execute-batch": "Executing",
    "log-batch-complete": "Logging",
    "bug-review": "Reviewing Bugs",
    "completeness-review": "Reviewing Completeness",
    "workflow-complete": "Finishing",
    "cleanup": "Cleaning Up",
    "done": "Done",
    "work-item-router": "Routing",
    "brainstorm-item-router": "Routing",
    "rough-draft-item-router": "Routing",
    "item-type-router": "Routing",
    "batch-router": "Routing",
}


def display_name(state_id: str) -> str:
    """Human-readable label for a state id. Unknown ids are returned unchanged."""

    if state_id in STATE_DISPLAY_NAMES:
        return STATE_DISPLAY_NAMES[state_id]
    if state_id.startswith("clear-"):
        return "Context Check"
    return state_id


_IMPLEMENTATION_STATES = frozenset(
    {
        "ready-to-implement",
        "batch-router",
        "execute-batch",
        "log-batch-complete",
        "clear-pre-execute",
        "clear-post-batch",
    }
)
_REVIEW_STATES = frozenset({"bug-review", "completeness-review"})
_COMPLETE_STATES = frozenset({"workflow-complete", "cleanup", "done"})
_BRAINSTORM_STATES = frozenset(
    {"systematic-debugging", "task-planning", "item-type-router", "work-item-router"}
)


def phase_for_state(state_id: str) -> str:
    """Coarse phase label persisted alongside the state id."""

    if state_id.startswith("brainstorm") or state_id in _BRAINSTORM_STATES:
        return "brainstorming"
    if state_id == "rough-draft-confirm":
        return "rough-draft/confirm"
    if state_id.startswith("rough-draft"):
        return "rough-draft/" + state_id.removeprefix("rough-draft-")
    if state_id == "build-task-graph":
        return "rough-draft/task-graph"
    if state_id in _IMPLEMENTATION_STATES:
        return "implementation"
    if state_id in _REVIEW_STATES:
        return "review"
    if state_id in _COMPLETE_STATES:
        return "complete"
    if state_id == "vibe-active":
        return "vibe"
    if state_id.startswith("clear-"):
        return "transition"
    return "brainstorming"
