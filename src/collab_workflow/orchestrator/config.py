"""Configuration for the workflow engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CollabSettings(BaseSettings):
    """Settings for the workflow CLI and server.

    Environment variables:
    - COLLAB_PROJECT_ROOT        (optional)
    - LOG_LEVEL                  (optional)
    - LOG_FORMAT                 (optional)
    - COLLAB_WORKFLOW_TOPOLOGY   (optional)
    - COLLAB_MAX_ROUTING_STEPS   (optional)

    Notes:
        Tests can point at a different env file via
        `CollabSettings(_env_file=path_to_env)`.
    """

    project_root: Path = Field(
        default=Path("."),
        validation_alias="COLLAB_PROJECT_ROOT",
        description="Project directory holding the .collab/ session tree",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    log_format: Literal["json", "text"] = Field(
        default="json",
        validation_alias="LOG_FORMAT",
        description="Log record rendering: one JSON object per line, or plain text",
    )

    workflow_topology: Literal["phase-batching", "strict-interleave"] = Field(
        default="phase-batching",
        validation_alias="COLLAB_WORKFLOW_TOPOLOGY",
        description=(
            "State table used for new transitions. 'phase-batching' brainstorms every item "
            "before any rough-draft; 'strict-interleave' finishes one item at a time."
        ),
    )

    max_routing_steps: int = Field(
        default=10,
        validation_alias="COLLAB_MAX_ROUTING_STEPS",
        description="Upper bound on routing hops when resolving the next skill",
        gt=0,
        le=100,
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def collab_dir(self) -> Path:
        return self.project_root / ".collab"

    @property
    def sessions_dir(self) -> Path:
        """Directory holding one sub-directory per session."""

        return self.collab_dir / "sessions"
