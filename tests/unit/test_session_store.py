"""Unit tests for session state persistence."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest
from factories import item

from collab_workflow.orchestrator.session_store import SessionNotFound, SessionStore
from collab_workflow.orchestrator.workflow.models import ItemStatus, SessionType


def test_create_and_load_roundtrip(store: SessionStore) -> None:
    created = store.create(
        "demo", session_type=SessionType.VIBE, work_items=[item(1, "bugfix")]
    )

    loaded = store.load("demo")

    assert loaded.state == "collab-start"
    assert loaded.session_type == SessionType.VIBE
    assert loaded.work_items == created.work_items
    assert store.list_sessions() == ["demo"]


def test_state_file_uses_camel_case(store: SessionStore) -> None:
    store.create("demo", work_items=[item(1)])

    raw = json.loads(store.state_path("demo").read_text(encoding="utf-8"))

    assert raw["workItems"][0]["number"] == 1
    assert raw["currentBatch"] == 0
    assert "completedTasks" in raw
    assert "lastActivity" in raw
    assert "work_items" not in raw


def test_load_migrates_legacy_statuses(store: SessionStore, sessions_dir: Path) -> None:
    path = sessions_dir / "legacy" / "collab-state.json"
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps(
            {
                "state": "rough-draft-skeleton",
                "currentItem": 1,
                "workItems": [
                    {"number": 1, "title": "A", "type": "code", "status": "documented"},
                    {"number": 2, "title": "B", "type": "code", "status": "pseudocode"},
                ],
            }
        ),
        encoding="utf-8",
    )

    loaded = store.load("legacy")

    assert [i.status for i in loaded.work_items] == [ItemStatus.BRAINSTORMED, ItemStatus.COMPLETE]
    assert loaded.current_item == 1


def test_missing_session(store: SessionStore) -> None:
    with pytest.raises(SessionNotFound):
        store.load("ghost")


def test_corrupt_session_file(store: SessionStore, sessions_dir: Path) -> None:
    path = sessions_dir / "broken" / "collab-state.json"
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError, match="Corrupt session state"):
        store.load("broken")


@pytest.mark.parametrize("name", ["", "   ", "../escape", "a/b", ".."])
def test_invalid_session_names(store: SessionStore, name: str) -> None:
    with pytest.raises(ValueError):
        store.create(name)


def test_create_twice_fails(store: SessionStore) -> None:
    store.create("demo")
    with pytest.raises(FileExistsError):
        store.create("demo")


def test_update_merges_fields(store: SessionStore) -> None:
    store.create("demo", work_items=[item(1)])

    updated = store.update("demo", current_item=1, completed_tasks=["t1"])

    assert updated.current_item == 1
    assert updated.completed_tasks == ["t1"]
    assert store.load("demo").work_items[0].number == 1


def test_lock_serialises_read_modify_write(store: SessionStore) -> None:
    store.create("demo")

    def bump() -> None:
        for _ in range(20):
            with store.lock("demo"):
                current = store.load("demo")
                bumped = current.model_copy(update={"current_batch": current.current_batch + 1})
                store.save("demo", bumped)

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.load("demo").current_batch == 80
