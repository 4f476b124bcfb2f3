"""Unit tests for transition guards."""

from __future__ import annotations

import pytest
from factories import item, snapshot

from collab_workflow.orchestrator.workflow import conditions as c
from collab_workflow.orchestrator.workflow.models import (
    BatchTask,
    SessionType,
    TaskBatch,
    WorkItemType,
)


def test_missing_condition_is_unconditional() -> None:
    assert c.evaluate(None, snapshot()) is True


def test_item_type_reads_current_item() -> None:
    snap = snapshot(item(1, "code"), item(2, "bugfix"), current_item=2)

    assert c.evaluate(c.item_type(WorkItemType.BUGFIX), snap) is True
    assert c.evaluate(c.item_type(WorkItemType.CODE), snap) is False


def test_item_type_without_current_item_is_false() -> None:
    snap = snapshot(item(1, "code"))
    for kind in WorkItemType:
        assert c.evaluate(c.item_type(kind), snap) is False


def test_item_type_with_dangling_current_item_is_false() -> None:
    snap = snapshot(item(1, "code"), current_item=99)
    assert c.evaluate(c.item_type(WorkItemType.CODE), snap) is False


def test_pending_brainstorm_items() -> None:
    pending = snapshot(item(1, status="complete"), item(2, status="pending"))
    done = snapshot(item(1, status="complete"), item(2, status="brainstormed"))

    assert c.evaluate(c.PENDING_BRAINSTORM_ITEMS, pending) is True
    assert c.evaluate(c.NO_PENDING_BRAINSTORM_ITEMS, pending) is False
    assert c.evaluate(c.PENDING_BRAINSTORM_ITEMS, done) is False
    assert c.evaluate(c.NO_PENDING_BRAINSTORM_ITEMS, done) is True


def test_rough_draft_ignores_task_items() -> None:
    only_task = snapshot(item(1, "task", "brainstormed"))
    with_bugfix = snapshot(item(1, "task", "brainstormed"), item(2, "bugfix", "brainstormed"))

    assert c.evaluate(c.PENDING_ROUGH_DRAFT_ITEMS, only_task) is False
    assert c.evaluate(c.NO_PENDING_ROUGH_DRAFT_ITEMS, only_task) is True
    assert c.evaluate(c.PENDING_ROUGH_DRAFT_ITEMS, with_bugfix) is True


def test_batches_remaining() -> None:
    batches = (
        TaskBatch(id="batch-1", tasks=[BatchTask(id="a")]),
        TaskBatch(id="batch-2", tasks=[BatchTask(id="b")]),
    )

    assert c.evaluate(c.BATCHES_REMAINING, snapshot(batches=batches, current_batch=1)) is True
    assert c.evaluate(c.NO_BATCHES_REMAINING, snapshot(batches=batches, current_batch=2)) is True
    assert c.evaluate(c.BATCHES_REMAINING, snapshot()) is False


def test_no_items_remaining_checks_current_item() -> None:
    assert c.evaluate(c.NO_ITEMS_REMAINING, snapshot(item(1))) is True
    assert c.evaluate(c.NO_ITEMS_REMAINING, snapshot(item(1), current_item=1)) is False


def test_session_type() -> None:
    vibe = snapshot(session_type=SessionType.VIBE)
    assert c.evaluate(c.session_type(SessionType.VIBE), vibe) is True
    assert c.evaluate(c.session_type(SessionType.VIBE), snapshot()) is False


def test_condition_payload_is_validated() -> None:
    with pytest.raises(ValueError):
        c.Condition(c.ConditionKind.ITEM_TYPE)
    with pytest.raises(ValueError):
        c.Condition(c.ConditionKind.BATCHES_REMAINING, WorkItemType.CODE)


def test_condition_json() -> None:
    assert c.item_type(WorkItemType.TASK).to_json() == {"type": "item_type", "value": "task"}
    assert c.NO_BATCHES_REMAINING.to_json() == {"type": "no_batches_remaining"}
