import pytest

import agentlab.persistence as persistence
from agentlab import WorkflowExecutor, WorkflowRegistry
from agentlab.config import AgentLabConfig
from agentlab.db import WorkflowDB
from agentlab.persistence import InMemoryRunRepository
from fixtures.graph import ReferenceGraph
from fixtures.workflows import echo_workflow, failing_workflow


@pytest.fixture(autouse=True)
def _reset_repository(monkeypatch):
    """Keep the cached repository and database env vars out of each test."""
    monkeypatch.delenv("AGENTLAB_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("AGENTLAB_CONFIG", raising=False)
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


@pytest.fixture(params=["memory", "sqlite"])
async def repository(request, tmp_path):
    if request.param == "memory":
        repo = InMemoryRunRepository()
    else:
        repo = WorkflowDB(f"sqlite+aiosqlite:///{tmp_path / 'runs.db'}")
    await repo.init()
    yield repo
    await repo.close()


@pytest.fixture
def registry() -> WorkflowRegistry:
    registry = WorkflowRegistry()
    registry.register("echo", echo_workflow, "Echo")
    registry.register("a_then_b", failing_workflow, "A then B")
    return registry


@pytest.fixture
def executor(registry, repository) -> WorkflowExecutor:
    return WorkflowExecutor(
        registry, repository, ReferenceGraph, config=AgentLabConfig()
    )
