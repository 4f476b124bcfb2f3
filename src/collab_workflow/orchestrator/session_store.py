"""Persisted per-session workflow state.

Each session owns a directory under ``<project>/.collab/sessions/<session>/``
holding ``collab-state.json`` (camelCase keys) next to its documents.

Reads migrate work items written under the older per-stage status schema, so
callers always see ``pending | brainstormed | complete``.

Writers that read, modify and write back hold :meth:`SessionStore.lock` for the
session across the whole cycle. The lock is re-entrant so helpers such as
:meth:`SessionStore.update` can be called while it is held.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from collab_workflow.orchestrator.workflow.lifecycle import migrate_work_items
from collab_workflow.orchestrator.workflow.models import SessionState, SessionType, WorkItem

logger = logging.getLogger(__name__)

STATE_FILENAME = "collab-state.json"


class SessionNotFound(LookupError):
    def __init__(self, session: str) -> None:
        self.session = session
        super().__init__(f"Session not found: {session}")


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


def validate_session_name(session: str) -> str:
    name = session.strip()
    if not name:
        raise ValueError("Session name must be a non-empty string")
    if "/" in name or "\\" in name or name in {".", ".."}:
        raise ValueError(f"Invalid session name: {session!r}")
    return name


@dataclass
class SessionStore:
    sessions_dir: Path

    def __post_init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    @contextmanager
    def lock(self, session: str) -> Iterator[None]:
        """Serialise read-modify-write cycles for one session."""

        name = validate_session_name(session)
        with self._guard:
            session_lock = self._locks.setdefault(name, threading.RLock())
        with session_lock:
            yield

    def session_dir(self, session: str) -> Path:
        return self.sessions_dir / validate_session_name(session)

    def state_path(self, session: str) -> Path:
        return self.session_dir(session) / STATE_FILENAME

    def exists(self, session: str) -> bool:
        return self.state_path(session).exists()

    def list_sessions(self) -> list[str]:
        if not self.sessions_dir.exists():
            return []
        return sorted(
            p.name
            for p in self.sessions_dir.iterdir()
            if p.is_dir() and (p / STATE_FILENAME).exists()
        )

    def load(self, session: str) -> SessionState:
        path = self.state_path(session)
        if not path.exists():
            raise SessionNotFound(session)

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt session state file {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Session state file {path} must hold a JSON object")

        raw_items = raw.get("workItems", raw.get("work_items")) or []
        raw.pop("work_items", None)
        raw["workItems"] = migrate_work_items(raw_items)
        return SessionState.model_validate(raw)

    def save(self, session: str, state: SessionState) -> SessionState:
        with self.lock(session):
            stamped = state.model_copy(update={"last_activity": _utc_iso_now()})
            path = self.state_path(session)
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".json.tmp")
            tmp.write_text(
                json.dumps(stamped.to_json(), indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
            tmp.replace(path)
            return stamped

    def create(
        self,
        session: str,
        *,
        session_type: SessionType = SessionType.STRUCTURED,
        work_items: list[WorkItem] | None = None,
        state: str = "collab-start",
    ) -> SessionState:
        with self.lock(session):
            if self.exists(session):
                raise FileExistsError(f"Session already exists: {session}")
            record = SessionState(
                state=state,
                session_type=session_type,
                work_items=list(work_items or []),
            )
            logger.info("Session created", extra={"session": session, "state": state})
            return self.save(session, record)

    def update(self, session: str, **updates: object) -> SessionState:
        """Merge ``updates`` (snake_case field names) into the stored state."""

        with self.lock(session):
            current = self.load(session)
            merged = SessionState.model_validate({**current.model_dump(), **updates})
            return self.save(session, merged)
