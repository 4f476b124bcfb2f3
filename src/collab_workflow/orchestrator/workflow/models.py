"""Session and work-item models shared by the workflow engine.

Persisted records are pydantic models (they round-trip through the session
document). The read-only view handed to condition evaluation is a frozen
dataclass so that evaluation can never mutate session state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WorkItemType(str, Enum):
    CODE = "code"
    TASK = "task"
    BUGFIX = "bugfix"


class ItemStatus(str, Enum):
    PENDING = "pending"
    BRAINSTORMED = "brainstormed"
    COMPLETE = "complete"


class SessionType(str, Enum):
    STRUCTURED = "structured"
    VIBE = "vibe"


class BatchTaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ROUGH_DRAFT_ITEM_TYPES: frozenset[WorkItemType] = frozenset(
    {WorkItemType.CODE, WorkItemType.BUGFIX}
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class WorkItem(_CamelModel):
    """A unit of work gathered from the session goals."""

    model_config = ConfigDict(frozen=True)

    number: int
    title: str = ""
    type: WorkItemType
    status: ItemStatus = ItemStatus.PENDING


class BatchTask(_CamelModel):
    id: str
    status: BatchTaskStatus = BatchTaskStatus.PENDING
    depends_on: list[str] = Field(default_factory=list)


class TaskBatch(_CamelModel):
    id: str
    tasks: list[BatchTask] = Field(default_factory=list)
    status: BatchStatus = BatchStatus.PENDING

    def task_ids(self) -> list[str]:
        return [t.id for t in self.tasks]


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class SessionState(_CamelModel):
    """The persisted per-session workflow document (``collab-state.json``)."""

    state: str | None = None
    phase: str | None = None
    display_name: str | None = None
    last_activity: str = Field(default_factory=_utc_iso_now)
    session_type: SessionType | None = None

    current_item: int | None = None
    work_items: list[WorkItem] = Field(default_factory=list)

    batches: list[TaskBatch] = Field(default_factory=list)
    current_batch: int = 0
    completed_tasks: list[str] = Field(default_factory=list)
    pending_tasks: list[str] = Field(default_factory=list)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state,
            work_items=tuple(self.work_items),
            current_item=self.current_item,
            batches=tuple(self.batches),
            current_batch=self.current_batch,
            completed_tasks=frozenset(self.completed_tasks),
            pending_tasks=frozenset(self.pending_tasks),
            session_type=self.session_type,
        )

    def to_json(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only view of a session consumed by the condition evaluator."""

    state: str | None = None
    work_items: tuple[WorkItem, ...] = ()
    current_item: int | None = None
    batches: tuple[TaskBatch, ...] = ()
    current_batch: int = 0
    completed_tasks: frozenset[str] = field(default_factory=frozenset)
    pending_tasks: frozenset[str] = field(default_factory=frozenset)
    session_type: SessionType | None = None

    def find_item(self, number: int | None) -> WorkItem | None:
        if number is None:
            return None
        for item in self.work_items:
            if item.number == number:
                return item
        return None

    @property
    def current_work_item(self) -> WorkItem | None:
        return self.find_item(self.current_item)

    @property
    def current_item_type(self) -> WorkItemType | None:
        item = self.current_work_item
        return item.type if item is not None else None

    def with_current_item(self, number: int | None) -> SessionSnapshot:
        return replace(self, current_item=number)

    def with_work_items(self, items: tuple[WorkItem, ...]) -> SessionSnapshot:
        return replace(self, work_items=items)
