"""Command line interface for inspecting agentlab workflows and runs."""

from __future__ import annotations

import asyncio
import importlib
import json
from typing import Optional

import typer

from agentlab.config import load_config
from agentlab.db.models import RunFilters
from agentlab.errors import NotFoundError
from agentlab.executor import parse_run_id
from agentlab.pagination import PageRequest
from agentlab.persistence import get_repository
from agentlab.registry import WorkflowRegistry

app = typer.Typer(help="CLI for agentlab workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for registered workflows")
run_app = typer.Typer(help="Commands for workflow runs")

app.add_typer(workflow_app, name="workflow")
app.add_typer(run_app, name="run")


@app.callback()
def main() -> None:
    """agentlab CLI entry point."""
    pass


def _load_registry(target: str) -> WorkflowRegistry:
    """Import ``module:attribute`` and return the registry it names."""
    module_name, _, attr = target.partition(":")
    module = importlib.import_module(module_name)
    registry = getattr(module, attr or "registry", None)
    if not isinstance(registry, WorkflowRegistry):
        raise typer.BadParameter(f"{target} is not a WorkflowRegistry")
    return registry


async def _repository():
    repo = get_repository()
    await repo.init()
    return repo


@workflow_app.command("list")
def workflow_list(
    registry: str = typer.Argument(
        ..., help="Registry to inspect, as 'package.module:attribute'"
    ),
) -> None:
    """
    List the workflows registered on a registry.

    Example:
        agentlab workflow list myapp.workflows:registry
        # Output: summarize    Summarize a document
    """
    infos = sorted(_load_registry(registry).list(), key=lambda info: info.name)
    if not infos:
        typer.echo("No workflows registered")
        return
    for info in infos:
        typer.echo(f"{info.name}\t{info.description}")


@run_app.command("list")
def run_list(
    workflow: Optional[str] = typer.Option(None, help="Only runs of this workflow"),
    status: Optional[str] = typer.Option(None, help="Only runs with this status"),
    page: int = typer.Option(1, help="Page number, starting at 1"),
    page_size: int = typer.Option(0, help="Runs per page (0 uses the default)"),
) -> None:
    """
    List runs from the configured repository, newest first.

    Example:
        agentlab run list --workflow summarize --status failed
        # Output: 5f0c...    summarize    failed    2024-01-01 10:00:00
    """

    async def _list():
        repo = await _repository()
        request = PageRequest(page=page, page_size=page_size).normalize(
            load_config().pagination
        )
        return await repo.list_runs(
            request, RunFilters(workflow_name=workflow, status=status)
        )

    result = asyncio.run(_list())
    if not result.data:
        typer.echo("No runs found")
        return
    for run in result.data:
        typer.echo(f"{run.id}\t{run.workflow_name}\t{run.status}\t{run.created_at}")
    typer.echo(f"Page {result.page}/{result.total_pages} ({result.total} runs)")


@run_app.command("show")
def run_show(run_id: str) -> None:
    """
    Show a run with its stages and routing decisions.

    Example:
        agentlab run show 5f0c2a9e-...
        # Output: Run 5f0c2a9e-... (summarize): completed
        #         - fetch#0: completed (12 ms)
        #         fetch -> summarize [has_text=True]
    """

    async def _show():
        repo = await _repository()
        run = await repo.find_run(parse_run_id(run_id))
        return run, await repo.get_stages(run.id), await repo.get_decisions(run.id)

    try:
        run, stages, decisions = asyncio.run(_show())
    except NotFoundError:
        typer.echo("Run not found")
        raise typer.Exit(code=1)

    typer.echo(f"Run {run.id} ({run.workflow_name}): {run.status}")
    if run.params:
        typer.echo(f"Params: {json.dumps(run.params)}")
    if run.result is not None:
        typer.echo(f"Result: {json.dumps(run.result)}")
    if run.error_message:
        typer.secho(f"Error: {run.error_message}", fg=typer.colors.RED)
    for stage in stages:
        timing = f" ({stage.duration_ms} ms)" if stage.duration_ms is not None else ""
        typer.echo(f"- {stage.node_name}#{stage.iteration}: {stage.status}{timing}")
    for decision in decisions:
        predicate = ""
        if decision.predicate_name:
            predicate = f" [{decision.predicate_name}={decision.predicate_result}]"
        typer.echo(f"{decision.from_node} -> {decision.to_node or '(end)'}{predicate}")


@run_app.command("delete")
def run_delete(run_id: str) -> None:
    """Delete a run together with its stages, decisions and checkpoint."""

    async def _delete():
        repo = await _repository()
        await repo.delete_run(parse_run_id(run_id))

    try:
        asyncio.run(_delete())
    except NotFoundError:
        typer.echo("Run not found")
        raise typer.Exit(code=1)
    typer.echo(f"Deleted run {run_id}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
