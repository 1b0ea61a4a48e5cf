"""Observer that records stages and decisions for a run."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Tuple, Union
from uuid import UUID

from ..db.models import Decision, StageStatus
from ..engine import Event
from ..events import EdgeTransition, GraphEvent, NodeComplete, NodeStart, decode_event
from ..persistence.repository import RunRepository

logger = logging.getLogger(__name__)


def _naive_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


class DurableObserver:
    """Write the audit trail of one run to the repository.

    The audit trail is secondary to the workflow outcome: any failure while
    recording is logged and swallowed so the workflow keeps running.
    """

    def __init__(self, repository: RunRepository, run_id: UUID) -> None:
        self._repository = repository
        self.run_id = run_id
        self._lock = asyncio.Lock()
        self._start_times: Dict[Tuple[str, int], datetime] = {}

    async def on_event(self, event: Union[Event, GraphEvent]) -> None:
        decoded = decode_event(event)
        if decoded is None:
            return

        async with self._lock:
            try:
                if isinstance(decoded, NodeStart):
                    await self._node_start(decoded)
                elif isinstance(decoded, NodeComplete):
                    await self._node_complete(decoded)
                elif isinstance(decoded, EdgeTransition):
                    await self._edge_transition(decoded)
            except Exception as exc:
                logger.error(
                    f"Failed to record {decoded.kind} for run_id={self.run_id}: {exc}"
                )

    async def _node_start(self, event: NodeStart) -> None:
        self._start_times[(event.node, event.iteration)] = event.timestamp
        await self._repository.create_stage(
            self.run_id,
            event.node,
            event.iteration,
            input_snapshot=event.input_snapshot,
            created_at=_naive_utc(event.timestamp),
        )

    async def _node_complete(self, event: NodeComplete) -> None:
        started = self._start_times.pop((event.node, event.iteration), None)
        duration_ms = None
        if started is not None:
            duration_ms = int((event.timestamp - started).total_seconds() * 1000)

        status = StageStatus.FAILED if event.error else StageStatus.COMPLETED
        await self._repository.complete_stage(
            self.run_id,
            event.node,
            event.iteration,
            status.value,
            output_snapshot=event.output_snapshot,
            duration_ms=duration_ms,
            error_message=event.error_message if event.error else None,
        )

    async def _edge_transition(self, event: EdgeTransition) -> None:
        await self._repository.create_decision(
            Decision(
                run_id=self.run_id,
                from_node=event.from_node,
                to_node=event.to_node,
                predicate_name=event.predicate_name,
                predicate_result=event.predicate_result,
                reason=event.reason,
                created_at=_naive_utc(event.timestamp),
            )
        )
