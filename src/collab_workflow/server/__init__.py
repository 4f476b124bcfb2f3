"""FastAPI server adapter for collab-workflow.

Design intent:
- Keep workflow decisions in `collab_workflow.orchestrator.*`
- Keep server-specific concerns (routing, CORS, HTTP error mapping) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from collab_workflow.server.app import create_app
