"""Test configuration and fixtures."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from collab_workflow.orchestrator.planning.task_documents import FileTaskDocuments
from collab_workflow.orchestrator.planning.task_sync import BatchSynchronizer
from collab_workflow.orchestrator.session_store import SessionStore
from collab_workflow.orchestrator.workflow.driver import WorkflowDriver


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep a developer's .env and COLLAB_* variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "COLLAB_PROJECT_ROOT",
        "COLLAB_WORKFLOW_TOPOLOGY",
        "COLLAB_MAX_ROUTING_STEPS",
        "COLLAB_CORS_ORIGINS",
        "LOG_LEVEL",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sessions_dir(tmp_path: Path) -> Path:
    """Provide a temporary sessions directory."""
    path = tmp_path / ".collab" / "sessions"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def store(sessions_dir: Path) -> SessionStore:
    return SessionStore(sessions_dir)


@pytest.fixture
def documents(store: SessionStore) -> FileTaskDocuments:
    return FileTaskDocuments(store)


@pytest.fixture
def synchronizer(store: SessionStore, documents: FileTaskDocuments) -> BatchSynchronizer:
    return BatchSynchronizer(store=store, documents=documents)


@pytest.fixture
def driver(store: SessionStore, synchronizer: BatchSynchronizer) -> WorkflowDriver:
    return WorkflowDriver(store, synchronizer)


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    """Undo handler and level changes made by configure_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
