"""Task declarations -> dependency-respecting execution batches.

Tasks are declared in a fenced ``yaml`` block inside a markdown document
(``task-graph.md`` or a per-item blueprint). Dependencies on ids that are not
part of the declared set are ignored everywhere (cycle detection, in-degree
counting, batch task ``depends_on``) so partially specified graphs still plan.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from collab_workflow.orchestrator.workflow.models import (
    BatchStatus,
    BatchTask,
    BatchTaskStatus,
    TaskBatch,
)

_YAML_BLOCK_RE = re.compile(r"```ya?ml\s*\n(.*?)```", re.DOTALL)


class TaskGraphParseError(ValueError):
    """The task document could not be turned into task declarations."""


class CyclicDependency(ValueError):
    """The task graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


class TaskGraphInternalError(RuntimeError):
    """Wave computation stalled even though cycle detection passed."""


class TaskGraphTask(BaseModel):
    """One declared task."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    files: list[str] = Field(default_factory=list)
    tests: list[str] | None = None
    description: str = ""
    parallel: bool | None = None
    depends_on: list[str] = Field(default_factory=list, alias="depends-on")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        # YAML reads ``id: 12`` as an int.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("id")
    @classmethod
    def _require_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("task id must be a non-empty string")
        return value

    @field_validator("files", "depends_on", mode="before")
    @classmethod
    def _none_is_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("depends_on", mode="before")
    @classmethod
    def _stringify_deps(cls, value: object) -> object:
        if isinstance(value, list):
            return [str(v) for v in value]
        return value

    def to_yaml_dict(self) -> dict[str, object]:
        out: dict[str, object] = {"id": self.id, "files": list(self.files)}
        if self.tests is not None:
            out["tests"] = list(self.tests)
        out["description"] = self.description
        if self.parallel is not None:
            out["parallel"] = self.parallel
        out["depends-on"] = list(self.depends_on)
        return out


def extract_yaml_block(document: str) -> str | None:
    match = _YAML_BLOCK_RE.search(document)
    return match.group(1) if match else None


def parse_task_graph(document: str) -> list[TaskGraphTask]:
    """Parse the first ``yaml`` block of a markdown task document.

    The block holds either ``tasks: [...]`` or a bare list of task mappings.
    """

    block = extract_yaml_block(document)
    if block is None:
        raise TaskGraphParseError("No YAML block found in task document")

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise TaskGraphParseError(f"Invalid YAML in task document: {e}") from e

    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("tasks") or []
    if not isinstance(data, list):
        raise TaskGraphParseError("Task document YAML must be a list of tasks or a 'tasks' mapping")

    tasks: list[TaskGraphTask] = []
    for index, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise TaskGraphParseError(f"Task #{index + 1} is not a mapping")
        try:
            tasks.append(TaskGraphTask.model_validate(raw))
        except ValidationError as e:
            raise TaskGraphParseError(f"Task #{index + 1} is invalid: {e}") from e
    return tasks


def render_task_graph(tasks: Sequence[TaskGraphTask], *, title: str = "Task Graph") -> str:
    """Render tasks as a consolidated ``task-graph.md`` document."""

    body = yaml.safe_dump(
        {"tasks": [t.to_yaml_dict() for t in tasks]},
        sort_keys=False,
        default_flow_style=None,
        allow_unicode=True,
    )
    return f"# {title}\n\n```yaml\n{body}```\n"


def _ensure_unique_ids(tasks: Sequence[TaskGraphTask]) -> None:
    seen: set[str] = set()
    for task in tasks:
        if task.id in seen:
            raise ValueError(f"Duplicate task id: {task.id}")
        seen.add(task.id)


def known_dependencies(task: TaskGraphTask, task_ids: set[str]) -> list[str]:
    return [dep for dep in task.depends_on if dep in task_ids]


def detect_cycles(tasks: Sequence[TaskGraphTask]) -> list[str] | None:
    """Return the first dependency cycle found, or ``None``.

    The cycle is reported as a closed path, e.g. ``["A", "B", "A"]``.
    """

    by_id = {t.id: t for t in tasks}
    task_ids = set(by_id)
    in_progress: set[str] = set()
    done: set[str] = set()

    # Explicit stack: long dependency chains must not hit the recursion limit.
    for task in tasks:
        if task.id in done:
            continue
        path: list[str] = [task.id]
        stack: list[Iterator[str]] = [iter(known_dependencies(task, task_ids))]
        in_progress.add(task.id)
        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                finished = path.pop()
                stack.pop()
                in_progress.discard(finished)
                done.add(finished)
                continue
            if dep in in_progress:
                return [*path[path.index(dep) :], dep]
            if dep in done:
                continue
            in_progress.add(dep)
            path.append(dep)
            stack.append(iter(known_dependencies(by_id[dep], task_ids)))
    return None


def compute_waves(tasks: Sequence[TaskGraphTask]) -> list[list[TaskGraphTask]]:
    """Layer tasks with Kahn's algorithm; each wave only depends on earlier waves.

    Tasks keep their declaration order within a wave.
    """

    task_ids = {t.id for t in tasks}
    in_degree: dict[str, int] = {}
    dependents: dict[str, list[str]] = {t.id: [] for t in tasks}
    for task in tasks:
        deps = known_dependencies(task, task_ids)
        in_degree[task.id] = len(deps)
        for dep in deps:
            dependents[dep].append(task.id)

    waves: list[list[TaskGraphTask]] = []
    remaining = list(tasks)
    while remaining:
        wave = [t for t in remaining if in_degree[t.id] == 0]
        if not wave:
            raise TaskGraphInternalError(
                "Unable to make progress computing waves: "
                f"{len(remaining)} task(s) left with unresolved dependencies"
            )
        for task in wave:
            for dependent in dependents[task.id]:
                in_degree[dependent] -= 1
        wave_ids = {t.id for t in wave}
        remaining = [t for t in remaining if t.id not in wave_ids]
        waves.append(wave)
    return waves


def build_batches(tasks: Sequence[TaskGraphTask]) -> list[TaskBatch]:
    """Validate the graph and turn its waves into ``batch-1``, ``batch-2``, ..."""

    _ensure_unique_ids(tasks)
    cycle = detect_cycles(tasks)
    if cycle is not None:
        raise CyclicDependency(cycle)

    task_ids = {t.id for t in tasks}
    return [
        TaskBatch(
            id=f"batch-{index}",
            tasks=[
                BatchTask(
                    id=task.id,
                    status=BatchTaskStatus.PENDING,
                    depends_on=known_dependencies(task, task_ids),
                )
                for task in wave
            ],
            status=BatchStatus.PENDING,
        )
        for index, wave in enumerate(compute_waves(tasks), start=1)
    ]
