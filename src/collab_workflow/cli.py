"""``python -m collab_workflow.cli`` shim; the CLI lives in `collab_workflow.orchestrator.main`."""

from __future__ import annotations

from collab_workflow.orchestrator.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
