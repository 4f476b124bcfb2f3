"""Unit tests for log formatting."""

from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import pytest

from collab_workflow.orchestrator.logging import JsonFormatter, configure_logging, record_extra
from collab_workflow.orchestrator.workflow.models import ItemStatus


def _record(msg: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("collab.test", logging.INFO, __file__, 1, msg, None, None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_extra() -> None:
    record = _record("Skill completed", session="s1", status=ItemStatus.PENDING, path=Path("a"))
    line = JsonFormatter().format(record)

    payload = json.loads(line)
    assert payload["message"] == "Skill completed"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "collab.test"
    assert payload["extra"] == {"session": "s1", "status": "pending", "path": "a"}


def test_json_formatter_without_extra() -> None:
    payload = json.loads(JsonFormatter().format(_record("plain")))
    assert "extra" not in payload


def test_record_extra_skips_standard_attributes() -> None:
    assert record_extra(_record("x", task_id="t1")) == {"task_id": "t1"}


@pytest.mark.usefixtures("restore_root_logger")
def test_configure_logging_json_stream() -> None:
    stream = io.StringIO()
    configure_logging("debug", stream=stream)

    logging.getLogger("collab.test").info("hello", extra={"session": "s1"})

    payload = json.loads(stream.getvalue().strip())
    assert payload["message"] == "hello"
    assert payload["extra"] == {"session": "s1"}
    assert logging.getLogger().level == logging.DEBUG


@pytest.mark.usefixtures("restore_root_logger")
def test_configure_logging_text_stream() -> None:
    stream = io.StringIO()
    configure_logging("INFO", fmt="text", stream=stream)

    logging.getLogger("collab.test").warning("careful")

    assert "WARNING collab.test: careful" in stream.getvalue()


@pytest.mark.usefixtures("restore_root_logger")
def test_configure_logging_rejects_unknown_format() -> None:
    with pytest.raises(ValueError, match="Unknown log format"):
        configure_logging("INFO", fmt="xml")
