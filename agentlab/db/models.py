from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the ``TIMESTAMP`` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


RESUMABLE_STATUSES = frozenset({RunStatus.FAILED.value, RunStatus.CANCELLED.value})


class StageStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class Run(SQLModel, table=True):
    """One execution instance of a registered workflow."""

    __tablename__ = "runs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    workflow_name: str = Field(index=True)
    status: str = Field(default=RunStatus.PENDING.value, index=True)
    params: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    result: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


class Stage(SQLModel, table=True):
    """Audit record of one node execution within a run."""

    __tablename__ = "stages"
    __table_args__ = (UniqueConstraint("run_id", "node_name", "iteration"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    run_id: UUID = Field(foreign_key="runs.id", index=True, ondelete="CASCADE")
    node_name: str = Field(index=True)
    iteration: int = 0
    status: str = Field(default=StageStatus.STARTED.value)
    input_snapshot: Optional[dict] = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    output_snapshot: Optional[dict] = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Decision(SQLModel, table=True):
    """Audit record of one edge traversal. Rows are never updated."""

    __tablename__ = "decisions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    run_id: UUID = Field(foreign_key="runs.id", index=True, ondelete="CASCADE")
    from_node: str
    to_node: Optional[str] = None
    predicate_name: Optional[str] = None
    predicate_result: Optional[bool] = None
    reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Checkpoint(SQLModel, table=True):
    """Latest saved state of a run. One row per run, overwritten on save."""

    __tablename__ = "checkpoints"

    run_id: UUID = Field(primary_key=True, foreign_key="runs.id", ondelete="CASCADE")
    state_data: dict = Field(sa_column=Column(JSON, nullable=False))
    checkpoint_node: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RunFilters(BaseModel):
    """Optional criteria for run listings."""

    workflow_name: Optional[str] = None
    status: Optional[str] = None

    def matches(self, run: Any) -> bool:
        if self.workflow_name and run.workflow_name != self.workflow_name:
            return False
        if self.status and run.status != self.status:
            return False
        return True
