"""Per-task progress updates inside computed batches."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from collab_workflow.orchestrator.workflow.models import (
    BatchStatus,
    BatchTask,
    BatchTaskStatus,
    SessionState,
    TaskBatch,
)


class TaskNotFound(LookupError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


def derive_batch_status(tasks: Sequence[BatchTask]) -> BatchStatus:
    """``completed`` when every task is, ``in_progress`` once any has started."""

    if tasks and all(t.status == BatchTaskStatus.COMPLETED for t in tasks):
        return BatchStatus.COMPLETED
    if any(t.status != BatchTaskStatus.PENDING for t in tasks):
        return BatchStatus.IN_PROGRESS
    return BatchStatus.PENDING


def all_task_ids(batches: Iterable[TaskBatch]) -> list[str]:
    return [task.id for batch in batches for task in batch.tasks]


def update_task_status(
    state: SessionState, task_id: str, status: BatchTaskStatus | str
) -> SessionState:
    """Return a copy of ``state`` with one batch task moved to ``status``.

    ``completed_tasks`` gains or loses ``task_id`` to match, and
    ``pending_tasks`` is recomputed as every other task id.
    """

    target = BatchTaskStatus(status)

    found = False
    batches: list[TaskBatch] = []
    for batch in state.batches:
        if any(t.id == task_id for t in batch.tasks):
            found = True
            tasks = [
                t.model_copy(update={"status": target}) if t.id == task_id else t
                for t in batch.tasks
            ]
            batch = batch.model_copy(update={"tasks": tasks, "status": derive_batch_status(tasks)})
        batches.append(batch)
    if not found:
        raise TaskNotFound(task_id)

    completed = [t for t in state.completed_tasks if t != task_id]
    if target == BatchTaskStatus.COMPLETED:
        completed.append(task_id)
    completed_set = set(completed)
    pending = [t for t in all_task_ids(batches) if t not in completed_set]

    return state.model_copy(
        update={"batches": batches, "completed_tasks": completed, "pending_tasks": pending}
    )
