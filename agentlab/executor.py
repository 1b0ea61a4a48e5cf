"""Workflow execution coordinator."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from uuid import UUID

from .checkpoint import RepositoryCheckpointStore
from .config import AgentLabConfig
from .context import ExecutionContext
from .db.models import (
    RESUMABLE_STATUSES,
    Decision,
    Run,
    RunFilters,
    RunStatus,
    Stage,
)
from .engine import GraphConfig, GraphFactory, Observer
from .errors import (
    ExecutionFailedError,
    InvalidStatusError,
    NotFoundError,
    WorkflowNotFoundError,
)
from .observers import DurableObserver, MultiObserver, StreamingObserver
from .pagination import PageRequest, PageResult
from .persistence.repository import RunRepository
from .registry import WorkflowFactory, WorkflowInfo, WorkflowRegistry
from .runtime import Runtime
from .state import State

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "execution cancelled"

RunId = Union[UUID, str]


def parse_run_id(run_id: RunId) -> UUID:
    """Coerce a run id, treating malformed ids as missing runs."""
    if isinstance(run_id, UUID):
        return run_id
    try:
        return UUID(str(run_id))
    except ValueError:
        raise NotFoundError(f"run not found: {run_id}") from None


class WorkflowExecutor:
    """Runs registered workflows and tracks their lifecycle.

    Each run gets a persisted ``Run`` row, a durable observer writing stages
    and decisions, a checkpoint store for resume, and an ``ExecutionContext``
    that ``cancel`` uses to interrupt it.
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        repository: RunRepository,
        graph_factory: GraphFactory,
        runtime: Optional[Runtime] = None,
        config: Optional[AgentLabConfig] = None,
    ) -> None:
        self.registry = registry
        self.repository = repository
        self.graph_factory = graph_factory
        self.runtime = runtime or Runtime()
        self.config = config or AgentLabConfig()
        self._active: Dict[str, ExecutionContext] = {}
        self._active_lock = asyncio.Lock()
        self._background: Dict[asyncio.Task, Run] = {}

    # ------------------------------------------------------------------
    # Execution
    async def execute(
        self,
        name: str,
        params: Optional[Dict[str, Any]] = None,
        secrets: Optional[Mapping[str, Any]] = None,
    ) -> Run:
        """Run workflow ``name`` to completion and return the terminal run.

        Node failures and cancellations are reported through the run status.
        ``ExecutionFailedError`` is raised when the workflow cannot be built.
        """
        factory = self._factory(name)
        run = await self.repository.create_run(name, params)
        logger.info(f"Run created id={run.id} workflow={name}")
        return await self._run(run, factory, secrets)

    async def execute_stream(
        self,
        name: str,
        params: Optional[Dict[str, Any]] = None,
        secrets: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[Run, StreamingObserver]:
        """Start workflow ``name`` in the background and return its live stream."""
        factory = self._factory(name)
        run = await self.repository.create_run(name, params)
        logger.info(f"Run created id={run.id} workflow={name} streaming=True")

        stream = StreamingObserver(self.config.execution.stream_buffer_size)
        # Tracked before returning so the caller can cancel straight away.
        ctx = await self._track(run)
        task = asyncio.create_task(
            self._run_stream(run, factory, secrets, stream, ctx)
        )
        self._background[task] = run
        task.add_done_callback(functools.partial(self._stream_done, stream))
        return run, stream

    async def resume(
        self, run_id: RunId, secrets: Optional[Mapping[str, Any]] = None
    ) -> Run:
        """Continue a failed or cancelled run from its last checkpoint."""
        run = await self.repository.find_run(parse_run_id(run_id))
        if run.status not in RESUMABLE_STATUSES:
            raise InvalidStatusError(
                f"run {run.id} cannot be resumed from status {run.status}"
            )
        factory = self._factory(run.workflow_name)
        logger.info(f"Resuming run id={run.id} workflow={run.workflow_name}")
        return await self._run(run, factory, secrets, resume=True)

    async def cancel(self, run_id: RunId) -> None:
        """Request cancellation of an in-flight run."""
        key = str(run_id)
        async with self._active_lock:
            ctx = self._active.get(key)
        if ctx is not None:
            ctx.cancel()
            return

        run = await self.repository.find_run(parse_run_id(run_id))
        if run.status != RunStatus.RUNNING.value:
            raise InvalidStatusError(
                f"run {run.id} is not running (status={run.status})"
            )
        raise NotFoundError(f"no active execution for run {run.id}")

    async def active_runs(self) -> List[str]:
        async with self._active_lock:
            return list(self._active)

    async def shutdown(self) -> None:
        """Cancel background streams first, then any other tracked run."""
        tasks = dict(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        # Streams cancelled before their first step never reached _run.
        for run in tasks.values():
            async with self._active_lock:
                orphan = self._active.pop(str(run.id), None)
            if orphan is not None:
                orphan.cancel()
                await self._finalize(run, RunStatus.CANCELLED, error=CANCELLED_MESSAGE)

        async with self._active_lock:
            contexts = list(self._active.values())
        for ctx in contexts:
            ctx.cancel()
        logger.info(
            f"Executor shut down, cancelled {len(tasks)} stream(s) and {len(contexts)} run(s)"
        )

    # ------------------------------------------------------------------
    # Queries
    def list_workflows(self) -> List[WorkflowInfo]:
        return self.registry.list()

    async def list_runs(
        self,
        page: Optional[PageRequest] = None,
        filters: Optional[RunFilters] = None,
    ) -> PageResult[Run]:
        page = (page or PageRequest()).normalize(self.config.pagination)
        return await self.repository.list_runs(page, filters or RunFilters())

    async def find_run(self, run_id: RunId) -> Run:
        return await self.repository.find_run(parse_run_id(run_id))

    async def get_stages(self, run_id: RunId) -> List[Stage]:
        return await self.repository.get_stages(parse_run_id(run_id))

    async def get_decisions(self, run_id: RunId) -> List[Decision]:
        return await self.repository.get_decisions(parse_run_id(run_id))

    async def delete_run(self, run_id: RunId) -> None:
        await self.repository.delete_run(parse_run_id(run_id))

    # ------------------------------------------------------------------
    # Internals
    def _factory(self, name: str) -> WorkflowFactory:
        factory = self.registry.get(name)
        if factory is None:
            raise WorkflowNotFoundError(name)
        return factory

    async def _track(self, run: Run) -> ExecutionContext:
        ctx = ExecutionContext(str(run.id))
        async with self._active_lock:
            self._active[ctx.run_id] = ctx
        return ctx

    def _stream_done(self, stream: StreamingObserver, task: asyncio.Task) -> None:
        self._background.pop(task, None)
        if task.cancelled():
            # No-op when the run already reported its own cancellation.
            stream.send_error(CANCELLED_MESSAGE)
        stream.close()

    async def _run_stream(
        self,
        run: Run,
        factory: WorkflowFactory,
        secrets: Optional[Mapping[str, Any]],
        stream: StreamingObserver,
        ctx: ExecutionContext,
    ) -> None:
        try:
            await self._run(run, factory, secrets, stream=stream, ctx=ctx)
        except asyncio.CancelledError:
            stream.send_error(CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            logger.error(f"Streaming run id={run.id} failed: {exc}")
            stream.send_error(exc)
        finally:
            stream.close()

    async def _run(
        self,
        run: Run,
        factory: WorkflowFactory,
        secrets: Optional[Mapping[str, Any]],
        resume: bool = False,
        stream: Optional[StreamingObserver] = None,
        ctx: Optional[ExecutionContext] = None,
    ) -> Run:
        run_id = str(run.id)
        if ctx is None:
            ctx = await self._track(run)
        try:
            finished = await self._drive(run, factory, ctx, secrets, resume, stream)
        finally:
            async with self._active_lock:
                self._active.pop(run_id, None)

        if stream is not None:
            if finished.status == RunStatus.COMPLETED.value:
                stream.send_complete(finished.result)
            else:
                stream.send_error(finished.error_message or finished.status)
        return finished

    async def _drive(
        self,
        run: Run,
        factory: WorkflowFactory,
        ctx: ExecutionContext,
        secrets: Optional[Mapping[str, Any]],
        resume: bool,
        stream: Optional[StreamingObserver],
    ) -> Run:
        if ctx.cancelled:
            return await self._finalize(
                run, RunStatus.CANCELLED, error=CANCELLED_MESSAGE
            )

        try:
            await self.repository.mark_run_started(run.id)
        except asyncio.CancelledError:
            await self._finalize(run, RunStatus.CANCELLED, error=CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            logger.error(f"Failed to start run id={run.id}: {exc}")
            await self._finalize(run, RunStatus.FAILED, error=str(exc))
            raise

        observer: Observer = DurableObserver(self.repository, run.id)
        if stream is not None:
            observer = MultiObserver(observer, stream)
        store = RepositoryCheckpointStore(self.repository, secrets)
        graph_config = GraphConfig(
            name=run.workflow_name,
            checkpoint_interval=self.config.execution.checkpoint_interval,
            checkpoint_preserve=self.config.execution.checkpoint_preserve,
        )

        try:
            graph = self.graph_factory(graph_config, observer, store)
            state = factory(ctx, graph, self.runtime, dict(run.params or {}))
            if inspect.isawaitable(state):
                state = await state
            if not resume and not isinstance(state, State):
                raise TypeError(
                    f"workflow factory returned {type(state).__name__}, expected State"
                )
        except asyncio.CancelledError:
            ctx.cancel()
            await self._finalize(run, RunStatus.CANCELLED, error=CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            logger.error(
                f"Failed to build workflow {run.workflow_name} for run id={run.id}: {exc}"
            )
            await self._finalize(run, RunStatus.FAILED, error=str(exc))
            raise ExecutionFailedError(
                f"failed to build workflow {run.workflow_name}: {exc}", run_id=str(run.id)
            ) from exc

        if resume:
            task = asyncio.create_task(graph.resume(ctx.run_id))
        else:
            state = state.model_copy(update={"run_id": ctx.run_id}).with_secrets(secrets)
            task = asyncio.create_task(graph.execute(state))
        ctx.bind(task)

        try:
            final_state = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                ctx.cancel()
                await self._finalize(run, RunStatus.CANCELLED, error=CANCELLED_MESSAGE)
                raise
            return await self._finalize(
                run, RunStatus.CANCELLED, error=CANCELLED_MESSAGE
            )
        except Exception as exc:
            if ctx.cancelled:
                return await self._finalize(
                    run, RunStatus.CANCELLED, error=CANCELLED_MESSAGE
                )
            logger.warning(f"Run id={run.id} failed: {exc}")
            return await self._finalize(run, RunStatus.FAILED, error=str(exc))

        return await self._finalize(
            run, RunStatus.COMPLETED, result=final_state.snapshot()
        )

    async def _finalize(
        self,
        run: Run,
        status: RunStatus,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Run:
        """Persist the terminal status. Update failures are logged, not raised."""
        try:
            finished = await self.repository.mark_run_finished(
                run.id, status.value, result=result, error_message=error
            )
        except Exception as exc:
            logger.error(f"Failed to mark run id={run.id} as {status.value}: {exc}")
            run.status = status.value
            run.result = result
            run.error_message = error
            return run
        logger.info(f"Run finished id={run.id} status={status.value}")
        return finished
