"""Persistence layer for workflow runs."""

from __future__ import annotations

import os
from typing import Optional

from ..config import AgentLabConfig, load_config
from ..db import WorkflowDB
from .inmemory import InMemoryRunRepository
from .repository import RunRepository

_repository_instance: RunRepository | None = None


def _async_url(database_url: str) -> str:
    """Map plain database URLs onto their async drivers."""
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            return database_url.replace(prefix, "postgresql+asyncpg://", 1)
    return database_url


def get_repository(
    database_url: Optional[str] = None, config: Optional[AgentLabConfig] = None
) -> RunRepository:
    """Factory function to obtain a run repository.

    The repository backend is selected based on ``database_url`` which can be
    provided explicitly, via environment variable ``AGENTLAB_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("AGENTLAB_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        _repository_instance = InMemoryRunRepository()
        return _repository_instance

    url = _async_url(database_url)
    if not (url.startswith("sqlite+") or url.startswith("postgresql+")):
        raise ValueError(f"Unsupported database backend: {database_url}")

    _repository_instance = WorkflowDB(url)
    return _repository_instance


__all__ = [
    "RunRepository",
    "InMemoryRunRepository",
    "WorkflowDB",
    "get_repository",
]
