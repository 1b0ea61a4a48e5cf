"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from agentlab.config import AgentLabConfig, PaginationConfig, load_config
from agentlab.errors import (
    CheckpointNotFoundError,
    ExecutionFailedError,
    InvalidStatusError,
    NotFoundError,
    WorkflowNotFoundError,
    map_http_status,
)


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_config()
    assert config == AgentLabConfig()
    assert config.pagination.default_page_size == 20
    assert config.pagination.max_page_size == 100
    assert config.execution.checkpoint_interval == 1
    assert config.database_url is None


def test_load_config_from_env_path(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
database_url: sqlite:///runs.db
execution:
  checkpoint_interval: 3
  stream_buffer_size: 8
pagination:
  default_page_size: 10
"""
    )
    monkeypatch.setenv("AGENTLAB_CONFIG", str(config_path))

    config = load_config()
    assert config.database_url == "sqlite:///runs.db"
    assert config.execution.checkpoint_interval == 3
    assert config.execution.stream_buffer_size == 8
    assert config.pagination.default_page_size == 10
    assert config.pagination.max_page_size == 100


def test_environment_overrides(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite:///file.db\n")
    monkeypatch.setenv("DATABASE_URL", "postgresql://db/agentlab")
    monkeypatch.setenv("PAGINATION_DEFAULT_PAGE_SIZE", "5")
    monkeypatch.setenv("PAGINATION_MAX_PAGE_SIZE", "50")

    config = load_config(str(config_path))
    assert config.database_url == "postgresql://db/agentlab"
    assert config.pagination.default_page_size == 5
    assert config.pagination.max_page_size == 50


def test_invalid_env_values_are_ignored(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PAGINATION_DEFAULT_PAGE_SIZE", "lots")
    assert load_config().pagination.default_page_size == 20


def test_pagination_limits_are_validated():
    with pytest.raises(ValidationError):
        PaginationConfig(default_page_size=0)
    with pytest.raises(ValidationError):
        PaginationConfig(default_page_size=50, max_page_size=10)


@pytest.mark.parametrize(
    "error, status",
    [
        (NotFoundError("run not found"), 404),
        (WorkflowNotFoundError("wf"), 404),
        (CheckpointNotFoundError("r1"), 404),
        (InvalidStatusError("not running"), 400),
        (ExecutionFailedError("boom"), 500),
        (RuntimeError("unexpected"), 500),
    ],
)
def test_map_http_status(error, status):
    assert map_http_status(error) == status
