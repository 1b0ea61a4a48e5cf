"""Repository abstraction for run, stage, decision and checkpoint records."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol
from uuid import UUID

from ..db.models import Checkpoint, Decision, Run, RunFilters, Stage
from ..pagination import PageRequest, PageResult


class RunRepository(Protocol):
    """Protocol for workflow execution persistence backends."""

    async def init(self) -> None:
        """Prepare the backend (create tables, open pools)."""

    async def close(self) -> None:
        """Release backend resources."""

    async def create_run(self, workflow_name: str, params: Optional[dict]) -> Run:
        """Insert a pending run."""

    async def mark_run_started(self, run_id: UUID) -> Run:
        """Set status to running and stamp ``started_at``."""

    async def mark_run_finished(
        self,
        run_id: UUID,
        status: str,
        result: Optional[dict] = None,
        error_message: Optional[str] = None,
    ) -> Run:
        """Record the terminal status of a run."""

    async def find_run(self, run_id: UUID) -> Run:
        """Return the run or raise ``NotFoundError``."""

    async def list_runs(self, page: PageRequest, filters: RunFilters) -> PageResult[Run]:
        """Return one page of runs."""

    async def delete_run(self, run_id: UUID) -> None:
        """Delete the run with its stages, decisions and checkpoint."""

    async def create_stage(
        self,
        run_id: UUID,
        node_name: str,
        iteration: int,
        input_snapshot: Optional[dict] = None,
        created_at: Optional[datetime] = None,
    ) -> Stage:
        """Insert a started stage."""

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
        """Update the stage row created for ``(run_id, node_name, iteration)``."""

    async def get_stages(self, run_id: UUID) -> list[Stage]:
        """Stages of a run, oldest first."""

    async def create_decision(self, decision: Decision) -> Decision:
        """Append a routing decision."""

    async def get_decisions(self, run_id: UUID) -> list[Decision]:
        """Decisions of a run, oldest first."""

    async def save_checkpoint(
        self, run_id: UUID, state_data: dict, checkpoint_node: str
    ) -> None:
        """Upsert the checkpoint for a run."""

    async def load_checkpoint(self, run_id: UUID) -> Optional[Checkpoint]:
        """Return the checkpoint for a run if one was saved."""

    async def delete_checkpoint(self, run_id: UUID) -> None:
        """Remove the checkpoint for a run."""

    async def list_checkpoints(self) -> list[UUID]:
        """Run ids with checkpoints, newest first."""
