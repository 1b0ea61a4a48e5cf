"""Contract of the state-graph execution engine.

The coordinator never walks nodes itself. It hands an engine implementation
an observer and a checkpoint store, lets workflow factories describe their
topology through :class:`StateGraph`, and awaits ``execute`` or ``resume``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from .state import State

EVENT_NODE_START = "node.start"
EVENT_NODE_COMPLETE = "node.complete"
EVENT_EDGE_TRANSITION = "edge.transition"

NodeBody = Callable[[State], Awaitable[State]]
Predicate = Callable[[State], bool]


class Event(BaseModel):
    """Raw event emitted by the engine while walking a graph."""

    type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


class GraphConfig(BaseModel):
    """Execution settings passed to the engine when a graph is built."""

    name: str
    checkpoint_interval: int = 0
    checkpoint_preserve: bool = False
    max_iterations: int = 1000


class Observer(Protocol):
    """Receives engine events. Implementations must not raise."""

    async def on_event(self, event: Any) -> None:
        """Handle a single event."""


class CheckpointStore(Protocol):
    """Durable storage of run state used by the engine for resume."""

    async def save(self, state: State) -> None:
        """Upsert ``state`` keyed by ``state.run_id``."""

    async def load(self, run_id: str) -> State:
        """Return the latest saved state for ``run_id``."""

    async def delete(self, run_id: str) -> None:
        """Remove the checkpoint for ``run_id``."""

    async def list(self) -> List[str]:
        """Return run ids with checkpoints, newest first."""


class StateGraph(Protocol):
    """Graph builder and runner supplied by the engine."""

    def add_node(self, name: str, body: NodeBody) -> None:
        ...

    def add_edge(
        self, from_node: str, to_node: str, predicate: Optional[Predicate] = None
    ) -> None:
        ...

    def set_entry_point(self, name: str) -> None:
        ...

    def set_exit_point(self, name: str) -> None:
        ...

    async def execute(self, state: State) -> State:
        """Walk the graph from the entry point until the exit point."""

    async def resume(self, run_id: str) -> State:
        """Load the checkpoint for ``run_id`` and continue past its node."""


GraphFactory = Callable[[GraphConfig, Observer, CheckpointStore], StateGraph]
