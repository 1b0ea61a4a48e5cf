from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, model_validator

ENV_CONFIG_PATH = "AGENTLAB_CONFIG"
ENV_DEFAULT_PAGE_SIZE = "PAGINATION_DEFAULT_PAGE_SIZE"
ENV_MAX_PAGE_SIZE = "PAGINATION_MAX_PAGE_SIZE"


class PaginationConfig(BaseModel):
    """Page size limits applied to list queries."""

    default_page_size: int = 20
    max_page_size: int = 100

    @model_validator(mode="after")
    def _check_sizes(self) -> "PaginationConfig":
        if self.default_page_size < 1:
            raise ValueError("default_page_size must be positive")
        if self.max_page_size < 1:
            raise ValueError("max_page_size must be positive")
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        return self


class ExecutionConfig(BaseModel):
    """Settings handed to the graph engine for every run."""

    checkpoint_interval: int = 1
    checkpoint_preserve: bool = True
    stream_buffer_size: int = 100


class AgentLabConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    execution: ExecutionConfig = ExecutionConfig()
    pagination: PaginationConfig = PaginationConfig()


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def load_config(path: Optional[str] = None) -> AgentLabConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to AGENTLAB_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv(ENV_CONFIG_PATH, "config.yaml")
    data: dict = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    env_db_url = os.getenv("AGENTLAB_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        data["database_url"] = env_db_url

    pagination = dict(data.get("pagination") or {})
    default_size = _env_int(ENV_DEFAULT_PAGE_SIZE)
    if default_size is not None:
        pagination["default_page_size"] = default_size
    max_size = _env_int(ENV_MAX_PAGE_SIZE)
    if max_size is not None:
        pagination["max_page_size"] = max_size
    if pagination:
        data["pagination"] = pagination

    return AgentLabConfig(**data)
