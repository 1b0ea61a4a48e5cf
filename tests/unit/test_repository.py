import uuid
from datetime import timedelta

import pytest

import agentlab.persistence as persistence
from agentlab.db import Decision, RunFilters, WorkflowDB
from agentlab.db.models import utcnow
from agentlab.errors import NotFoundError
from agentlab.pagination import PageRequest
from agentlab.persistence import InMemoryRunRepository, get_repository


@pytest.fixture(params=["memory", "sqlite"])
async def repo(request, tmp_path):
    if request.param == "memory":
        repository = InMemoryRunRepository()
    else:
        repository = WorkflowDB(f"sqlite+aiosqlite:///{tmp_path / 'runs.db'}")
    await repository.init()
    yield repository
    await repository.close()


@pytest.mark.asyncio
async def test_run_lifecycle(repo):
    run = await repo.create_run("echo", {"message": "hi"})
    assert run.status == "pending"
    assert run.params == {"message": "hi"}

    started = await repo.mark_run_started(run.id)
    assert started.status == "running"
    assert started.started_at is not None

    finished = await repo.mark_run_finished(run.id, "completed", result={"ok": True})
    assert finished.status == "completed"
    assert finished.completed_at is not None

    stored = await repo.find_run(run.id)
    assert stored.result == {"ok": True}
    assert stored.error_message is None

    with pytest.raises(NotFoundError):
        await repo.find_run(uuid.uuid4())
    with pytest.raises(NotFoundError):
        await repo.mark_run_started(uuid.uuid4())


@pytest.mark.asyncio
async def test_stages_and_decisions(repo):
    run = await repo.create_run("wf", None)
    now = utcnow()
    await repo.create_stage(run.id, "B", 0, {"x": 1}, created_at=now + timedelta(seconds=1))
    await repo.create_stage(run.id, "A", 0, {"x": 0}, created_at=now)
    await repo.complete_stage(
        run.id, "A", 0, "completed", output_snapshot={"x": 2}, duration_ms=5
    )
    await repo.complete_stage(run.id, "B", 0, "failed", error_message="boom")

    stages = await repo.get_stages(run.id)
    assert [(s.node_name, s.status) for s in stages] == [
        ("A", "completed"),
        ("B", "failed"),
    ]
    assert stages[0].output_snapshot == {"x": 2}
    assert stages[0].duration_ms == 5
    assert stages[1].error_message == "boom"

    with pytest.raises(Exception):
        await repo.create_stage(run.id, "A", 0)

    await repo.create_decision(
        Decision(run_id=run.id, from_node="A", to_node="B", predicate_result=True)
    )
    await repo.create_decision(
        Decision(run_id=run.id, from_node="B", reason="end", created_at=now + timedelta(seconds=2))
    )
    decisions = await repo.get_decisions(run.id)
    assert [(d.from_node, d.to_node) for d in decisions] == [("A", "B"), ("B", None)]


@pytest.mark.asyncio
async def test_list_runs_filters_and_pages(repo):
    for i in range(5):
        await repo.create_run("echo" if i % 2 == 0 else "other", {"i": i})

    page = await repo.list_runs(PageRequest(page=1, page_size=2), RunFilters())
    assert page.total == 5
    assert page.total_pages == 3
    assert len(page.data) == 2
    assert page.data[0].created_at >= page.data[1].created_at

    last = await repo.list_runs(PageRequest(page=3, page_size=2), RunFilters())
    assert len(last.data) == 1

    echo = await repo.list_runs(
        PageRequest(page=1, page_size=10), RunFilters(workflow_name="echo")
    )
    assert echo.total == 3
    assert {r.params["i"] for r in echo.data} == {0, 2, 4}

    oldest_first = await repo.list_runs(
        PageRequest(page=1, page_size=10, descending=False), RunFilters(status="pending")
    )
    assert oldest_first.data[0].params == {"i": 0}


@pytest.mark.asyncio
async def test_checkpoints_overwrite_and_delete(repo):
    run = await repo.create_run("wf", {})
    await repo.save_checkpoint(run.id, {"data": {"step": 1}}, "A")
    await repo.save_checkpoint(run.id, {"data": {"step": 2}}, "B")

    checkpoint = await repo.load_checkpoint(run.id)
    assert checkpoint.checkpoint_node == "B"
    assert checkpoint.state_data == {"data": {"step": 2}}
    assert await repo.list_checkpoints() == [run.id]

    await repo.delete_checkpoint(run.id)
    assert await repo.load_checkpoint(run.id) is None
    assert await repo.list_checkpoints() == []


@pytest.mark.asyncio
async def test_delete_run_cascades(repo):
    run = await repo.create_run("wf", {})
    keep = await repo.create_run("wf", {})
    await repo.create_stage(run.id, "A", 0)
    await repo.create_stage(keep.id, "A", 0)
    await repo.create_decision(Decision(run_id=run.id, from_node="A", to_node="B"))
    await repo.save_checkpoint(run.id, {"data": {}}, "A")

    await repo.delete_run(run.id)

    with pytest.raises(NotFoundError):
        await repo.find_run(run.id)
    assert await repo.get_stages(run.id) == []
    assert await repo.get_decisions(run.id) == []
    assert await repo.load_checkpoint(run.id) is None
    assert len(await repo.get_stages(keep.id)) == 1

    with pytest.raises(NotFoundError):
        await repo.delete_run(run.id)


def test_get_repository_selects_backend(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert isinstance(get_repository(), InMemoryRunRepository)
    assert get_repository() is get_repository()

    sqlite_repo = get_repository(f"sqlite:///{tmp_path / 'a.db'}")
    assert isinstance(sqlite_repo, WorkflowDB)
    assert str(sqlite_repo.engine.url).startswith("sqlite+aiosqlite://")

    persistence._repository_instance = None
    monkeypatch.setenv("AGENTLAB_DATABASE_URL", f"sqlite:///{tmp_path / 'b.db'}")
    assert isinstance(get_repository(), WorkflowDB)

    with pytest.raises(ValueError):
        get_repository("mysql://localhost/db")
