"""Mermaid rendering of execution batches (one subgraph per wave)."""

from __future__ import annotations

import re
from collections.abc import Sequence

from collab_workflow.orchestrator.workflow.models import BatchTaskStatus, TaskBatch

STATUS_STYLES: dict[BatchTaskStatus, str] = {
    BatchTaskStatus.PENDING: "fill:#e0e0e0,stroke:#9e9e9e",
    BatchTaskStatus.IN_PROGRESS: "fill:#fff9c4,stroke:#f9a825",
    BatchTaskStatus.COMPLETED: "fill:#c8e6c9,stroke:#2e7d32",
    BatchTaskStatus.FAILED: "fill:#ffcdd2,stroke:#c62828",
}

EMPTY_DIAGRAM = 'graph TD\n    empty["No tasks defined"]'

_UNSAFE_ID_RE = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_node_id(value: str) -> str:
    return _UNSAFE_ID_RE.sub("_", value)


def _label(value: str) -> str:
    return value.replace('"', "#quot;")


def generate_task_diagram(batches: Sequence[TaskBatch]) -> str:
    if not batches:
        return EMPTY_DIAGRAM

    lines = ["graph TD"]
    for index, batch in enumerate(batches, start=1):
        lines.append(f'    subgraph {sanitize_node_id(batch.id)}["Wave {index}"]')
        for task in batch.tasks:
            lines.append(f'        {sanitize_node_id(task.id)}["{_label(task.id)}"]')
        lines.append("    end")

    lines.append("")
    for batch in batches:
        for task in batch.tasks:
            for dep in task.depends_on:
                lines.append(f"    {sanitize_node_id(dep)} --> {sanitize_node_id(task.id)}")

    lines.append("")
    for batch in batches:
        for task in batch.tasks:
            lines.append(f"    style {sanitize_node_id(task.id)} {STATUS_STYLES[task.status]}")

    return "\n".join(lines)
