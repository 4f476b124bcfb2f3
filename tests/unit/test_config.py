"""Unit tests for configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from collab_workflow.orchestrator.config import CollabSettings
from collab_workflow.server.config import ServerSettings


def test_settings_defaults() -> None:
    """Test default values with no environment."""
    settings = CollabSettings(_env_file=None)

    assert settings.project_root == Path(".")
    assert settings.log_level == "INFO"
    assert settings.log_format == "json"
    assert settings.workflow_topology == "phase-batching"
    assert settings.max_routing_steps == 10
    assert settings.sessions_dir == Path(".collab") / "sessions"


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test environment variables override defaults."""
    monkeypatch.setenv("COLLAB_PROJECT_ROOT", str(tmp_path))
    monkeypatch.setenv("COLLAB_WORKFLOW_TOPOLOGY", "strict-interleave")
    monkeypatch.setenv("COLLAB_MAX_ROUTING_STEPS", "25")
    monkeypatch.setenv("LOG_FORMAT", "text")

    settings = CollabSettings(_env_file=None)

    assert settings.project_root == tmp_path
    assert settings.collab_dir == tmp_path / ".collab"
    assert settings.workflow_topology == "strict-interleave"
    assert settings.max_routing_steps == 25
    assert settings.log_format == "text"


def test_settings_from_env_file(tmp_path: Path) -> None:
    """Test a .env file is honoured."""
    env_file = tmp_path / "test.env"
    env_file.write_text("LOG_LEVEL=DEBUG\nCOLLAB_PROJECT_ROOT=/srv/project\n", encoding="utf-8")

    settings = CollabSettings(_env_file=env_file)

    assert settings.log_level == "DEBUG"
    assert settings.project_root == Path("/srv/project")


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("COLLAB_WORKFLOW_TOPOLOGY", "waterfall"),
        ("COLLAB_MAX_ROUTING_STEPS", "0"),
        ("COLLAB_MAX_ROUTING_STEPS", "1000"),
        ("LOG_FORMAT", "xml"),
    ],
)
def test_invalid_settings(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    """Test out-of-range values are rejected."""
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        CollabSettings(_env_file=None)


def test_server_cors_origins(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test CORS origins are split on commas."""
    monkeypatch.setenv("COLLAB_CORS_ORIGINS", "http://localhost:5173, https://example.org ,")

    settings = ServerSettings(_env_file=None)

    assert settings.parsed_cors_origins() == ["http://localhost:5173", "https://example.org"]
