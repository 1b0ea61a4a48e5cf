from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel import SQLModel, select

from ..errors import NotFoundError
from ..pagination import PageRequest, PageResult
from .models import (
    Checkpoint,
    Decision,
    Run,
    RunFilters,
    RunStatus,
    Stage,
    utcnow,
)

logger = logging.getLogger(__name__)

_RUN_SORT_FIELDS = {
    "created_at": Run.created_at,
    "updated_at": Run.updated_at,
    "started_at": Run.started_at,
    "completed_at": Run.completed_at,
    "workflow_name": Run.workflow_name,
    "status": Run.status,
}


class WorkflowDB:
    """SQL backend for workflow runs and their audit trail.

    Works with any async SQLAlchemy driver, typically ``sqlite+aiosqlite`` for
    local use and ``postgresql+asyncpg`` in deployments.
    """

    def __init__(self, database_url: str) -> None:
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine = create_async_engine(
            database_url, echo=False, future=True, connect_args=connect_args
        )

    async def init(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with AsyncSession(self.engine, expire_on_commit=False) as session:
            yield session

    # ------------------------------------------------------------------
    # Runs
    async def create_run(self, workflow_name: str, params: Optional[dict]) -> Run:
        run = Run(workflow_name=workflow_name, params=params)
        async with self.session() as session:
            session.add(run)
            await session.commit()
        return run

    async def _update_run(self, run_id: UUID, **values) -> Run:
        async with self.session() as session:
            run = await session.get(Run, run_id)
            if run is None:
                raise NotFoundError(f"run not found: {run_id}")
            for key, value in values.items():
                setattr(run, key, value)
            run.updated_at = utcnow()
            await session.commit()
        return run

    async def mark_run_started(self, run_id: UUID) -> Run:
        return await self._update_run(
            run_id,
            status=RunStatus.RUNNING.value,
            started_at=utcnow(),
        )

    async def mark_run_finished(
        self,
        run_id: UUID,
        status: str,
        result: Optional[dict] = None,
        error_message: Optional[str] = None,
    ) -> Run:
        return await self._update_run(
            run_id,
            status=status,
            result=result,
            error_message=error_message,
            completed_at=utcnow(),
        )

    async def find_run(self, run_id: UUID) -> Run:
        async with self.session() as session:
            run = await session.get(Run, run_id)
        if run is None:
            raise NotFoundError(f"run not found: {run_id}")
        return run

    async def list_runs(self, page: PageRequest, filters: RunFilters) -> PageResult[Run]:
        conditions = []
        if filters.workflow_name:
            conditions.append(Run.workflow_name == filters.workflow_name)
        if filters.status:
            conditions.append(Run.status == filters.status)

        column = _RUN_SORT_FIELDS.get(page.sort_by or "created_at", Run.created_at)
        order = column.desc() if page.descending else column.asc()

        async with self.session() as session:
            total = (
                await session.execute(
                    select(func.count()).select_from(Run).where(*conditions)
                )
            ).scalar_one()
            rows = await session.execute(
                select(Run)
                .where(*conditions)
                .order_by(order)
                .offset(page.offset)
                .limit(page.page_size)
            )
            runs = list(rows.scalars().all())
        return PageResult.build(runs, total, page.page, page.page_size)

    async def delete_run(self, run_id: UUID) -> None:
        async with self.session() as session:
            run = await session.get(Run, run_id)
            if run is None:
                raise NotFoundError(f"run not found: {run_id}")
            await session.execute(delete(Stage).where(Stage.run_id == run_id))
            await session.execute(delete(Decision).where(Decision.run_id == run_id))
            await session.execute(delete(Checkpoint).where(Checkpoint.run_id == run_id))
            await session.delete(run)
            await session.commit()
        logger.info(f"Run deleted id={run_id}")

    # ------------------------------------------------------------------
    # Stages and decisions
    async def create_stage(
        self,
        run_id: UUID,
        node_name: str,
        iteration: int,
        input_snapshot: Optional[dict] = None,
        created_at: Optional[datetime] = None,
    ) -> Stage:
        stage = Stage(
            run_id=run_id,
            node_name=node_name,
            iteration=iteration,
            input_snapshot=input_snapshot,
            created_at=created_at or utcnow(),
        )
        async with self.session() as session:
            session.add(stage)
            await session.commit()
        return stage

    async def complete_stage(
        self,
        run_id: UUID,
        node_name: str,
        iteration: int,
        status: str,
        output_snapshot: Optional[dict] = None,
        duration_ms: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        async with self.session() as session:
            await session.execute(
                update(Stage)
                .where(
                    Stage.run_id == run_id,
                    Stage.node_name == node_name,
                    Stage.iteration == iteration,
                )
                .values(
                    status=status,
                    output_snapshot=output_snapshot,
                    duration_ms=duration_ms,
                    error_message=error_message,
                )
            )
            await session.commit()

    async def get_stages(self, run_id: UUID) -> list[Stage]:
        async with self.session() as session:
            rows = await session.execute(
                select(Stage)
                .where(Stage.run_id == run_id)
                .order_by(Stage.created_at, Stage.iteration)
            )
            return list(rows.scalars().all())

    async def create_decision(self, decision: Decision) -> Decision:
        async with self.session() as session:
            session.add(decision)
            await session.commit()
        return decision

    async def get_decisions(self, run_id: UUID) -> list[Decision]:
        async with self.session() as session:
            rows = await session.execute(
                select(Decision)
                .where(Decision.run_id == run_id)
                .order_by(Decision.created_at)
            )
            return list(rows.scalars().all())

    # ------------------------------------------------------------------
    # Checkpoints
    async def save_checkpoint(
        self, run_id: UUID, state_data: dict, checkpoint_node: str
    ) -> None:
        async with self.session() as session:
            checkpoint = await session.get(Checkpoint, run_id)
            if checkpoint is None:
                session.add(
                    Checkpoint(
                        run_id=run_id,
                        state_data=state_data,
                        checkpoint_node=checkpoint_node,
                    )
                )
            else:
                checkpoint.state_data = state_data
                checkpoint.checkpoint_node = checkpoint_node
                checkpoint.updated_at = utcnow()
            await session.commit()

    async def load_checkpoint(self, run_id: UUID) -> Optional[Checkpoint]:
        async with self.session() as session:
            return await session.get(Checkpoint, run_id)

    async def delete_checkpoint(self, run_id: UUID) -> None:
        async with self.session() as session:
            await session.execute(delete(Checkpoint).where(Checkpoint.run_id == run_id))
            await session.commit()

    async def list_checkpoints(self) -> list[UUID]:
        async with self.session() as session:
            rows = await session.execute(
                select(Checkpoint.run_id).order_by(Checkpoint.created_at.desc())
            )
            return list(rows.scalars().all())
