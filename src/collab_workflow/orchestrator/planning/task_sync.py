"""Recompute execution batches from the latest task declarations.

Task sources, first match wins:

1. the consolidated ``task-graph`` document,
2. every per-item blueprint document that carries a ``yaml`` block (merged,
   first declaration of an id wins),
3. one fallback task per code/bugfix work item (``item-<n>``).

Whatever was derived from 2 or 3 is written back as the consolidated
``task-graph`` document so later syncs and humans see the same list.

Progress survives a re-sync: ``completedTasks`` is carried forward for every id
that still exists, and those tasks are marked completed in the fresh batches.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from collab_workflow.orchestrator.planning.task_documents import TaskDocumentSource
from collab_workflow.orchestrator.planning.task_graph import (
    TaskGraphTask,
    build_batches,
    extract_yaml_block,
    parse_task_graph,
    render_task_graph,
)
from collab_workflow.orchestrator.planning.task_status import (
    all_task_ids,
    derive_batch_status,
)
from collab_workflow.orchestrator.session_store import SessionStore
from collab_workflow.orchestrator.workflow.models import (
    ROUGH_DRAFT_ITEM_TYPES,
    BatchTaskStatus,
    SessionState,
    TaskBatch,
    WorkItem,
)

logger = logging.getLogger(__name__)


class NoTasksFound(LookupError):
    """Neither documents nor work items yielded any task declarations."""

    def __init__(self, session: str) -> None:
        self.session = session
        super().__init__(
            f"No tasks found for session {session!r}: add a task-graph document, "
            "blueprints with a yaml task block, or code/bugfix work items"
        )


def generate_fallback_tasks(work_items: Iterable[WorkItem]) -> list[TaskGraphTask]:
    return [
        TaskGraphTask(
            id=f"item-{item.number}",
            description=item.title or f"Work item {item.number}",
        )
        for item in work_items
        if item.type in ROUGH_DRAFT_ITEM_TYPES
    ]


def merge_task_declarations(documents: Iterable[tuple[str, str]]) -> list[TaskGraphTask]:
    """Merge tasks declared across blueprint documents, deduplicated by id."""

    merged: list[TaskGraphTask] = []
    seen: set[str] = set()
    for doc_id, content in documents:
        if extract_yaml_block(content) is None:
            logger.debug("Blueprint has no task block", extra={"document": doc_id})
            continue
        for task in parse_task_graph(content):
            if task.id in seen:
                continue
            seen.add(task.id)
            merged.append(task)
    return merged


@dataclass(frozen=True, slots=True)
class SyncPlan:
    batches: list[TaskBatch]
    completed_tasks: list[str]
    pending_tasks: list[str]


def plan_sync(batches: Sequence[TaskBatch], previously_completed: Iterable[str]) -> SyncPlan:
    """Fold earlier progress into freshly built batches.

    Only ids still present survive; ``completed + pending`` covers every task
    exactly once afterwards.
    """

    task_ids = all_task_ids(batches)
    present = set(task_ids)
    completed: list[str] = []
    for task_id in previously_completed:
        if task_id in present and task_id not in completed:
            completed.append(task_id)
    completed_set = set(completed)

    merged: list[TaskBatch] = []
    for batch in batches:
        tasks = [
            t.model_copy(update={"status": BatchTaskStatus.COMPLETED})
            if t.id in completed_set
            else t
            for t in batch.tasks
        ]
        merged.append(
            batch.model_copy(update={"tasks": tasks, "status": derive_batch_status(tasks)})
        )

    return SyncPlan(
        batches=merged,
        completed_tasks=completed,
        pending_tasks=[t for t in task_ids if t not in completed_set],
    )


@dataclass
class BatchSynchronizer:
    store: SessionStore
    documents: TaskDocumentSource

    def collect_tasks(
        self, session: str, work_items: Sequence[WorkItem]
    ) -> tuple[list[TaskGraphTask], str]:
        """Return the declared tasks and the name of the source they came from."""

        task_graph = self.documents.read_task_graph(session)
        if task_graph is not None and extract_yaml_block(task_graph) is not None:
            tasks = parse_task_graph(task_graph)
            if tasks:
                return tasks, "task-graph"

        tasks = merge_task_declarations(self.documents.read_blueprints(session))
        if tasks:
            return tasks, "blueprints"

        return generate_fallback_tasks(work_items), "work-items"

    def sync(self, session: str) -> SessionState:
        with self.store.lock(session):
            state = self.store.load(session)
            tasks, source = self.collect_tasks(session, state.work_items)
            if not tasks:
                raise NoTasksFound(session)

            plan = plan_sync(build_batches(tasks), state.completed_tasks)

            if source != "task-graph":
                self.documents.write_task_graph(session, render_task_graph(tasks))

            saved = self.store.update(
                session,
                batches=plan.batches,
                current_batch=0,
                completed_tasks=plan.completed_tasks,
                pending_tasks=plan.pending_tasks,
            )

        logger.info(
            "Tasks synced",
            extra={
                "session": session,
                "source": source,
                "task_count": len(tasks),
                "batch_count": len(plan.batches),
                "completed_count": len(plan.completed_tasks),
            },
        )
        return saved
