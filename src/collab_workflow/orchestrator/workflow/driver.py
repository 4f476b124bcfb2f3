"""Skill-completion driver.

An agent finishes the skill for the session's current state and reports it
here. The driver:

1. works out which state just completed (the persisted state when its skill
   matches, otherwise a reverse lookup by skill name),
2. applies that state's bookkeeping: the work-item status mark and the batch
   counter,
3. picks the next state, synchronising task batches first when the completed
   state asks for it,
4. walks routing nodes to the next skill-bearing state and persists the
   result.

All of it happens under the session lock so concurrent completions for one
session are applied one after another.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from collab_workflow.orchestrator.planning.task_diagram import generate_task_diagram
from collab_workflow.orchestrator.planning.task_documents import TASK_DIAGRAM_ID
from collab_workflow.orchestrator.planning.task_status import update_task_status
from collab_workflow.orchestrator.planning.task_sync import BatchSynchronizer, NoTasksFound
from collab_workflow.orchestrator.session_store import SessionStore

from .lifecycle import replace_item, update_item_status
from .models import BatchTaskStatus, SessionSnapshot, SessionState
from .registry import PHASE_BATCHING, StateRegistry, WorkflowState, display_name, phase_for_state
from .transitions import (
    DEFAULT_MAX_ROUTING_STEPS,
    ResolvedState,
    get_next_state,
    resolve_to_skill_state,
    select_item,
)

logger = logging.getLogger(__name__)

START_STATE = "collab-start"


class UnknownSkillError(KeyError):
    def __init__(self, skill: str) -> None:
        self.skill = skill
        super().__init__(f"Unknown skill: {skill!r}")

    def __str__(self) -> str:
        return str(self.args[0])


@dataclass(frozen=True, slots=True)
class SkillCompletion:
    """What the agent should run next.

    ``next_skill`` is ``None`` (and ``action`` is ``"none"``) once the workflow
    has nothing left to invoke.
    """

    next_skill: str | None
    state: str | None
    params: dict[str, int] = field(default_factory=dict)
    action: str | None = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"next_skill": self.next_skill, "state": self.state}
        if self.params:
            out["params"] = dict(self.params)
        if self.action is not None:
            out["action"] = self.action
        return out


def build_params(current_item: int | None, current_batch: int | None) -> dict[str, int]:
    params: dict[str, int] = {}
    if current_item is not None:
        params["item_number"] = current_item
    if current_batch is not None:
        params["batch_index"] = current_batch
    return params


class WorkflowDriver:
    def __init__(
        self,
        store: SessionStore,
        synchronizer: BatchSynchronizer | None = None,
        registry: StateRegistry = PHASE_BATCHING,
        *,
        max_routing_steps: int = DEFAULT_MAX_ROUTING_STEPS,
    ) -> None:
        self.store = store
        self.synchronizer = synchronizer
        self.registry = registry
        self.max_routing_steps = max_routing_steps

    def resolve_completed_state(self, record: SessionState, skill: str) -> WorkflowState:
        """Identify the state whose skill just completed."""

        if record.state is not None and self.registry.skill_for_state(record.state) == skill:
            return self.registry.require(record.state)

        fallback = self.registry.state_for_skill(skill)
        if record.state is not None:
            logger.warning(
                "Session state does not match completed skill; using skill lookup",
                extra={"state": record.state, "skill": skill, "fallback_state": fallback},
            )
        if fallback is None:
            raise UnknownSkillError(skill)
        return self.registry.require(fallback)

    def apply_completion(self, state: WorkflowState, snapshot: SessionSnapshot) -> SessionSnapshot:
        """Status mark and batch counter for a completed state."""

        snapshot = self._apply_mark(state, snapshot)
        if state.advances_batch:
            snapshot = replace(
                snapshot, current_batch=min(snapshot.current_batch + 1, len(snapshot.batches))
            )
        return snapshot

    def _apply_mark(self, state: WorkflowState, snapshot: SessionSnapshot) -> SessionSnapshot:
        mark = state.marks
        if mark is None:
            return snapshot

        item = snapshot.current_work_item
        if item is None:
            item = select_item(mark.infer, snapshot.work_items)
            if item is None:
                logger.warning("No work item to mark", extra={"state": state.id})
                return snapshot
            logger.warning(
                "Current item was unset; inferred from work items",
                extra={"state": state.id, "item_number": item.number},
            )
            snapshot = snapshot.with_current_item(item.number)

        if item.status == mark.status:
            return snapshot
        updated = update_item_status(item, mark.status)
        return snapshot.with_work_items(replace_item(snapshot.work_items, updated))

    def complete_skill(self, session: str, skill: str) -> SkillCompletion:
        if not skill.strip():
            raise ValueError("Skill name must be a non-empty string")

        with self.store.lock(session):
            record = self.store.load(session)
            completed = self.resolve_completed_state(record, skill)
            snapshot = self.apply_completion(completed, record.snapshot())

            next_id = get_next_state(completed.id, snapshot, self.registry)
            if next_id is None:
                self._persist(session, record, completed.id, snapshot)
                logger.info(
                    "Workflow has no further transitions",
                    extra={"session": session, "state": completed.id},
                )
                return SkillCompletion(
                    next_skill=None,
                    state=completed.id,
                    params=build_params(snapshot.current_item, snapshot.current_batch),
                    action="none",
                )

            if completed.syncs_tasks:
                record, snapshot = self._sync_tasks(session, record, completed.id, snapshot)

            resolved = resolve_to_skill_state(
                next_id, snapshot, self.registry, max_steps=self.max_routing_steps
            )
            record = self._persist(session, record, resolved.state_id, resolved.snapshot)
            self._refresh_diagram(session, record)

        logger.info(
            "Skill completed",
            extra={
                "session": session,
                "skill": skill,
                "from_state": completed.id,
                "to_state": resolved.state_id,
                "next_skill": resolved.skill,
            },
        )
        return self._completion(resolved)

    def preview_next_state(self, session: str) -> SkillCompletion:
        """What completing the current state's skill would lead to; nothing is saved.

        Task synchronisation is not run, so a preview from ``ready-to-implement``
        routes on the batches currently stored.
        """

        record = self.store.load(session)
        current_id = record.state or START_STATE
        current = self.registry.require(current_id)
        snapshot = self.apply_completion(current, record.snapshot())

        next_id = get_next_state(current_id, snapshot, self.registry)
        if next_id is None:
            return SkillCompletion(
                next_skill=None,
                state=current_id,
                params=build_params(snapshot.current_item, snapshot.current_batch),
                action="none",
            )
        resolved = resolve_to_skill_state(
            next_id, snapshot, self.registry, max_steps=self.max_routing_steps
        )
        return self._completion(resolved)

    def update_task(
        self, session: str, task_id: str, status: BatchTaskStatus | str
    ) -> SessionState:
        """Record progress on one batch task and persist it."""

        with self.store.lock(session):
            record = update_task_status(self.store.load(session), task_id, status)
            record = self.store.save(session, record)
            self._refresh_diagram(session, record)

        logger.info(
            "Task status updated",
            extra={"session": session, "task_id": task_id, "status": BatchTaskStatus(status).value},
        )
        return record

    def _completion(self, resolved: ResolvedState) -> SkillCompletion:
        return SkillCompletion(
            next_skill=resolved.skill,
            state=resolved.state_id,
            params=build_params(resolved.snapshot.current_item, resolved.snapshot.current_batch),
            action=None if resolved.skill is not None else "none",
        )

    def _sync_tasks(
        self, session: str, record: SessionState, state_id: str, snapshot: SessionSnapshot
    ) -> tuple[SessionState, SessionSnapshot]:
        if self.synchronizer is None:
            logger.warning("No task synchronizer configured", extra={"session": session})
            return record, snapshot

        # The synchronizer reads the stored document, so item changes go in first.
        record = self._persist(session, record, state_id, snapshot)
        try:
            record = self.synchronizer.sync(session)
        except NoTasksFound as e:
            logger.warning(str(e), extra={"session": session})
            return record, snapshot

        return record, record.snapshot().with_current_item(snapshot.current_item)

    def _persist(
        self, session: str, record: SessionState, state_id: str, snapshot: SessionSnapshot
    ) -> SessionState:
        updated = record.model_copy(
            update={
                "state": state_id,
                "phase": phase_for_state(state_id),
                "display_name": display_name(state_id),
                "current_item": snapshot.current_item,
                "work_items": list(snapshot.work_items),
                "current_batch": snapshot.current_batch,
            }
        )
        return self.store.save(session, updated)

    def _refresh_diagram(self, session: str, record: SessionState) -> None:
        if self.synchronizer is None or not record.batches:
            return
        if record.phase != "implementation":
            return
        try:
            self.synchronizer.documents.write_diagram(
                session, TASK_DIAGRAM_ID, generate_task_diagram(record.batches)
            )
        except OSError:
            logger.warning(
                "Failed to update task diagram", extra={"session": session}, exc_info=True
            )
