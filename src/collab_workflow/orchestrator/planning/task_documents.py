"""Where task declarations and the execution diagram live for a session.

The synchronizer only needs three things: the consolidated task-graph
document, the per-item blueprint documents, and somewhere to write artefacts
back. :class:`TaskDocumentSource` is that seam; :class:`FileTaskDocuments`
backs it with the session directory on disk:

    <session_dir>/documents/task-graph.md
    <session_dir>/documents/blueprint-item-<n>.md
    <session_dir>/diagrams/task-execution.mmd
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from collab_workflow.orchestrator.session_store import SessionStore

TASK_GRAPH_DOCUMENT = "task-graph"
TASK_DIAGRAM_ID = "task-execution"

_BLUEPRINT_GLOB = "blueprint-*.md"
_DIGITS_RE = re.compile(r"(\d+)")


class TaskDocumentSource(Protocol):
    def read_task_graph(self, session: str) -> str | None: ...

    def read_blueprints(self, session: str) -> list[tuple[str, str]]: ...

    def write_task_graph(self, session: str, content: str) -> None: ...

    def write_diagram(self, session: str, diagram_id: str, content: str) -> None: ...


def _natural_key(name: str) -> list[object]:
    # blueprint-item-2 sorts before blueprint-item-10.
    return [int(part) if part.isdigit() else part for part in _DIGITS_RE.split(name)]


@dataclass
class FileTaskDocuments:
    store: SessionStore

    def documents_dir(self, session: str) -> Path:
        return self.store.session_dir(session) / "documents"

    def diagrams_dir(self, session: str) -> Path:
        return self.store.session_dir(session) / "diagrams"

    def task_graph_path(self, session: str) -> Path:
        return self.documents_dir(session) / f"{TASK_GRAPH_DOCUMENT}.md"

    def read_task_graph(self, session: str) -> str | None:
        path = self.task_graph_path(session)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def read_blueprints(self, session: str) -> list[tuple[str, str]]:
        """Return ``(document id, content)`` pairs in item order."""

        docs_dir = self.documents_dir(session)
        if not docs_dir.exists():
            return []
        paths = sorted(docs_dir.glob(_BLUEPRINT_GLOB), key=lambda p: _natural_key(p.stem))
        return [(p.stem, p.read_text(encoding="utf-8")) for p in paths if p.is_file()]

    def write_task_graph(self, session: str, content: str) -> None:
        path = self.task_graph_path(session)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def write_diagram(self, session: str, diagram_id: str, content: str) -> None:
        path = self.diagrams_dir(session) / f"{diagram_id}.mmd"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
