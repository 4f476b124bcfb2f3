"""Transition guards.

A guard is a small tagged value (kind + optional payload). All evaluation goes
through :func:`evaluate`, which dispatches on the kind. Predicates are pure
functions of a :class:`SessionSnapshot`; they never call out or mutate.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .models import (
    ROUGH_DRAFT_ITEM_TYPES,
    ItemStatus,
    SessionSnapshot,
    SessionType,
    WorkItemType,
)


class ConditionKind(str, Enum):
    ITEM_TYPE = "item_type"
    SESSION_TYPE = "session_type"
    NO_PENDING_BRAINSTORM_ITEMS = "no_pending_brainstorm_items"
    PENDING_BRAINSTORM_ITEMS = "pending_brainstorm_items"
    PENDING_ROUGH_DRAFT_ITEMS = "pending_rough_draft_items"
    NO_PENDING_ROUGH_DRAFT_ITEMS = "no_pending_rough_draft_items"
    BATCHES_REMAINING = "batches_remaining"
    NO_BATCHES_REMAINING = "no_batches_remaining"
    NO_ITEMS_REMAINING = "no_items_remaining"


@dataclass(frozen=True, slots=True)
class Condition:
    """A guard attached to a transition.

    ``value`` carries the payload for ``item_type`` and ``session_type`` and is
    ``None`` for every other kind.
    """

    kind: ConditionKind
    value: WorkItemType | SessionType | None = None

    def __post_init__(self) -> None:
        if self.kind == ConditionKind.ITEM_TYPE and not isinstance(self.value, WorkItemType):
            raise ValueError("item_type condition requires a WorkItemType value")
        if self.kind == ConditionKind.SESSION_TYPE and not isinstance(self.value, SessionType):
            raise ValueError("session_type condition requires a SessionType value")
        if (
            self.kind not in {ConditionKind.ITEM_TYPE, ConditionKind.SESSION_TYPE}
            and self.value is not None
        ):
            raise ValueError(f"{self.kind.value} condition does not take a value")

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"type": self.kind.value}
        if self.value is not None:
            out["value"] = self.value.value
        return out


def item_type(value: WorkItemType) -> Condition:
    return Condition(ConditionKind.ITEM_TYPE, value)


def session_type(value: SessionType) -> Condition:
    return Condition(ConditionKind.SESSION_TYPE, value)


NO_PENDING_BRAINSTORM_ITEMS = Condition(ConditionKind.NO_PENDING_BRAINSTORM_ITEMS)
PENDING_BRAINSTORM_ITEMS = Condition(ConditionKind.PENDING_BRAINSTORM_ITEMS)
PENDING_ROUGH_DRAFT_ITEMS = Condition(ConditionKind.PENDING_ROUGH_DRAFT_ITEMS)
NO_PENDING_ROUGH_DRAFT_ITEMS = Condition(ConditionKind.NO_PENDING_ROUGH_DRAFT_ITEMS)
BATCHES_REMAINING = Condition(ConditionKind.BATCHES_REMAINING)
NO_BATCHES_REMAINING = Condition(ConditionKind.NO_BATCHES_REMAINING)
NO_ITEMS_REMAINING = Condition(ConditionKind.NO_ITEMS_REMAINING)


def has_pending_brainstorm_items(snapshot: SessionSnapshot) -> bool:
    return any(item.status == ItemStatus.PENDING for item in snapshot.work_items)


def has_pending_rough_draft_items(snapshot: SessionSnapshot) -> bool:
    # Task items finish at task-planning and never enter rough-draft.
    return any(
        item.type in ROUGH_DRAFT_ITEM_TYPES and item.status == ItemStatus.BRAINSTORMED
        for item in snapshot.work_items
    )


def has_batches_remaining(snapshot: SessionSnapshot) -> bool:
    return snapshot.current_batch < len(snapshot.batches)


_PREDICATES: dict[ConditionKind, Callable[[Condition, SessionSnapshot], bool]] = {
    ConditionKind.ITEM_TYPE: lambda c, s: s.current_item_type == c.value,
    ConditionKind.SESSION_TYPE: lambda c, s: s.session_type == c.value,
    ConditionKind.NO_PENDING_BRAINSTORM_ITEMS: lambda _c, s: not has_pending_brainstorm_items(s),
    ConditionKind.PENDING_BRAINSTORM_ITEMS: lambda _c, s: has_pending_brainstorm_items(s),
    ConditionKind.PENDING_ROUGH_DRAFT_ITEMS: lambda _c, s: has_pending_rough_draft_items(s),
    ConditionKind.NO_PENDING_ROUGH_DRAFT_ITEMS: lambda _c, s: not has_pending_rough_draft_items(
        s
    ),
    ConditionKind.BATCHES_REMAINING: lambda _c, s: has_batches_remaining(s),
    ConditionKind.NO_BATCHES_REMAINING: lambda _c, s: not has_batches_remaining(s),
    ConditionKind.NO_ITEMS_REMAINING: lambda _c, s: s.current_item is None,
}


def evaluate(condition: Condition | None, snapshot: SessionSnapshot) -> bool:
    """Evaluate a guard. A missing guard is unconditional."""

    if condition is None:
        return True
    return _PREDICATES[condition.kind](condition, snapshot)
