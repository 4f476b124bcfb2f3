"""Transition resolution over a :class:`StateRegistry`.

Everything here is a pure computation over a snapshot. Callers own loading and
persisting session state around these calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .conditions import evaluate
from .models import (
    ROUGH_DRAFT_ITEM_TYPES,
    ItemStatus,
    SessionSnapshot,
    WorkItem,
    WorkItemType,
)
from .registry import PHASE_BATCHING, ItemSelector, StateRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUTING_STEPS = 10


class RoutingLoopError(RuntimeError):
    """Routing nodes kept forwarding to each other without reaching a skill."""


@dataclass(frozen=True, slots=True)
class ResolvedState:
    state_id: str
    skill: str | None
    snapshot: SessionSnapshot


def get_next_state(
    current_state_id: str,
    snapshot: SessionSnapshot,
    registry: StateRegistry = PHASE_BATCHING,
) -> str | None:
    """Return the target of the first transition whose guard holds.

    Guards are evaluated strictly in declaration order. Returns ``None`` for a
    terminal state, or when no guard matches and there is no fallback.
    """

    state = registry.require(current_state_id)
    for transition in state.transitions:
        if evaluate(transition.condition, snapshot):
            return transition.to
    return None


def _matches(selector: ItemSelector, item: WorkItem) -> bool:
    if selector == ItemSelector.PENDING_BRAINSTORM:
        return item.status == ItemStatus.PENDING
    if selector == ItemSelector.PENDING_ROUGH_DRAFT:
        return item.type in ROUGH_DRAFT_ITEM_TYPES and item.status == ItemStatus.BRAINSTORMED
    if selector == ItemSelector.BRAINSTORMED_TASK:
        return item.type == WorkItemType.TASK and item.status == ItemStatus.BRAINSTORMED
    if selector == ItemSelector.PENDING_BUGFIX:
        return item.type == WorkItemType.BUGFIX and item.status == ItemStatus.PENDING
    raise ValueError(f"Unsupported item selector: {selector}")


def select_item(selector: ItemSelector, items: Iterable[WorkItem]) -> WorkItem | None:
    """First item (in declaration order) matching ``selector``."""

    for item in items:
        if _matches(selector, item):
            return item
    return None


def enter_state(
    state_id: str, snapshot: SessionSnapshot, registry: StateRegistry
) -> SessionSnapshot:
    """Apply the entered state's item selection, if it has one."""

    state = registry.require(state_id)
    if state.selects is None:
        return snapshot
    picked = select_item(state.selects, snapshot.work_items)
    return snapshot.with_current_item(picked.number if picked is not None else None)


def resolve_to_skill_state(
    start_state_id: str,
    snapshot: SessionSnapshot,
    registry: StateRegistry = PHASE_BATCHING,
    *,
    max_steps: int = DEFAULT_MAX_ROUTING_STEPS,
) -> ResolvedState:
    """Walk routing nodes from ``start_state_id`` to the next skill-bearing state.

    A routing node with no matching transition is returned as-is (skill ``None``).
    """

    current_id = start_state_id
    current = enter_state(current_id, snapshot, registry)
    for _ in range(max_steps):
        state = registry.require(current_id)
        if not state.is_routing:
            return ResolvedState(state_id=current_id, skill=state.skill, snapshot=current)

        next_id = get_next_state(current_id, current, registry)
        if next_id is None:
            return ResolvedState(state_id=current_id, skill=None, snapshot=current)

        logger.debug("Routing", extra={"from_state": current_id, "to_state": next_id})
        current_id = next_id
        current = enter_state(current_id, current, registry)

    state = registry.require(current_id)
    if not state.is_routing:
        return ResolvedState(state_id=current_id, skill=state.skill, snapshot=current)
    raise RoutingLoopError(
        f"Max routing steps ({max_steps}) reached resolving from {start_state_id!r}"
    )
