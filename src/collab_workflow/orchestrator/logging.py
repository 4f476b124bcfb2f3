"""Logging setup shared by the CLI and the server.

Standard library logging; records are rendered as one JSON object per line by
default. Context goes in ``extra={...}`` and lands under the ``extra`` key.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO, Any

# Attributes every LogRecord carries; anything else on the record came from ``extra``.
_STANDARD_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def record_extra(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = record_extra(record)
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Enum members and paths in ``extra`` are not JSON-native.
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str, *, fmt: str = "json", stream: IO[str] | None = None) -> None:
    """Configure root logging.

    ``fmt`` is ``"json"`` (default) or ``"text"``. Logs go to stderr so CLI
    output on stdout stays machine-readable.
    """

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=stream or sys.stderr)
    if fmt == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    elif fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        raise ValueError(f"Unknown log format {fmt!r}; expected 'json' or 'text'")

    root.addHandler(handler)
    root.setLevel(level.upper())

    logging.getLogger("uvicorn.access").setLevel(max(root.level, logging.INFO))
