"""In-memory implementation of the run repository."""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from ..db.models import (
    Checkpoint,
    Decision,
    Run,
    RunFilters,
    RunStatus,
    Stage,
    utcnow,
)
from ..errors import NotFoundError
from ..pagination import PageRequest, PageResult


def _clone(record):
    """Detached copy of a stored record."""
    return type(record)(**copy.deepcopy(record.model_dump()))


class InMemoryRunRepository:
    """Store runs and their audit trail in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Records are copied on the way in and
    out so callers cannot mutate stored rows.
    """

    def __init__(self) -> None:
        self._runs: Dict[UUID, Run] = {}
        self._stages: Dict[UUID, List[Stage]] = {}
        self._decisions: Dict[UUID, List[Decision]] = {}
        self._checkpoints: Dict[UUID, Checkpoint] = {}

    async def init(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    async def create_run(self, workflow_name: str, params: Optional[dict]) -> Run:
        run = Run(workflow_name=workflow_name, params=copy.deepcopy(params))
        self._runs[run.id] = run
        return _clone(run)

    def _get(self, run_id: UUID) -> Run:
        run = self._runs.get(run_id)
        if run is None:
            raise NotFoundError(f"run not found: {run_id}")
        return run

    async def mark_run_started(self, run_id: UUID) -> Run:
        run = self._get(run_id)
        run.status = RunStatus.RUNNING.value
        run.started_at = utcnow()
        run.updated_at = utcnow()
        return _clone(run)

    async def mark_run_finished(
        self,
        run_id: UUID,
        status: str,
        result: Optional[dict] = None,
        error_message: Optional[str] = None,
    ) -> Run:
        run = self._get(run_id)
        run.status = status
        run.result = copy.deepcopy(result)
        run.error_message = error_message
        run.completed_at = utcnow()
        run.updated_at = utcnow()
        return _clone(run)

    async def find_run(self, run_id: UUID) -> Run:
        return _clone(self._get(run_id))

    async def list_runs(self, page: PageRequest, filters: RunFilters) -> PageResult[Run]:
        runs = [r for r in self._runs.values() if filters.matches(r)]
        key = page.sort_by or "created_at"
        if key not in Run.model_fields:
            key = "created_at"
        runs.sort(
            key=lambda r: (getattr(r, key) is not None, getattr(r, key) or 0),
            reverse=page.descending,
        )
        window = runs[page.offset : page.offset + page.page_size]
        return PageResult.build(
            [_clone(r) for r in window], len(runs), page.page, page.page_size
        )

    async def delete_run(self, run_id: UUID) -> None:
        self._get(run_id)
        del self._runs[run_id]
        self._stages.pop(run_id, None)
        self._decisions.pop(run_id, None)
        self._checkpoints.pop(run_id, None)

    # ------------------------------------------------------------------
    async def create_stage(
        self,
        run_id: UUID,
        node_name: str,
        iteration: int,
        input_snapshot: Optional[dict] = None,
        created_at: Optional[datetime] = None,
    ) -> Stage:
        self._get(run_id)
        stages = self._stages.setdefault(run_id, [])
        for existing in stages:
            if existing.node_name == node_name and existing.iteration == iteration:
                raise ValueError(
                    f"stage already recorded: {node_name} iteration {iteration}"
                )
        stage = Stage(
            run_id=run_id,
            node_name=node_name,
            iteration=iteration,
            input_snapshot=copy.deepcopy(input_snapshot),
            created_at=created_at or utcnow(),
        )
        stages.append(stage)
        return _clone(stage)

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
        for stage in self._stages.get(run_id, []):
            if stage.node_name == node_name and stage.iteration == iteration:
                stage.status = status
                stage.output_snapshot = copy.deepcopy(output_snapshot)
                stage.duration_ms = duration_ms
                stage.error_message = error_message
                break

    async def get_stages(self, run_id: UUID) -> list[Stage]:
        stages = sorted(
            self._stages.get(run_id, []), key=lambda s: (s.created_at, s.iteration)
        )
        return [_clone(s) for s in stages]

    async def create_decision(self, decision: Decision) -> Decision:
        self._get(decision.run_id)
        stored = _clone(decision)
        self._decisions.setdefault(decision.run_id, []).append(stored)
        return _clone(stored)

    async def get_decisions(self, run_id: UUID) -> list[Decision]:
        decisions = sorted(self._decisions.get(run_id, []), key=lambda d: d.created_at)
        return [_clone(d) for d in decisions]

    # ------------------------------------------------------------------
    async def save_checkpoint(
        self, run_id: UUID, state_data: dict, checkpoint_node: str
    ) -> None:
        existing = self._checkpoints.get(run_id)
        if existing is None:
            self._checkpoints[run_id] = Checkpoint(
                run_id=run_id,
                state_data=copy.deepcopy(state_data),
                checkpoint_node=checkpoint_node,
            )
            return
        existing.state_data = copy.deepcopy(state_data)
        existing.checkpoint_node = checkpoint_node
        existing.updated_at = utcnow()

    async def load_checkpoint(self, run_id: UUID) -> Optional[Checkpoint]:
        checkpoint = self._checkpoints.get(run_id)
        return _clone(checkpoint) if checkpoint else None

    async def delete_checkpoint(self, run_id: UUID) -> None:
        self._checkpoints.pop(run_id, None)

    async def list_checkpoints(self) -> list[UUID]:
        ordered = sorted(
            self._checkpoints.values(), key=lambda c: c.created_at, reverse=True
        )
        return [c.run_id for c in ordered]
