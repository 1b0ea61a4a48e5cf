"""Small in-process graph engine used to drive the executor in tests."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from agentlab.engine import (
    EVENT_EDGE_TRANSITION,
    EVENT_NODE_COMPLETE,
    EVENT_NODE_START,
    CheckpointStore,
    Event,
    GraphConfig,
    NodeBody,
    Observer,
    Predicate,
)
from agentlab.state import State

logger = logging.getLogger(__name__)


class GraphError(Exception):
    """Raised for malformed graphs or runaway loops."""


class ReferenceGraph:
    """Walks nodes one at a time, following the first matching edge.

    Emits ``node.start``, ``node.complete`` and ``edge.transition`` events and
    saves a checkpoint every ``checkpoint_interval`` completed nodes.
    """

    def __init__(
        self, config: GraphConfig, observer: Observer, store: CheckpointStore
    ) -> None:
        self.config = config
        self.observer = observer
        self.store = store
        self.nodes: Dict[str, NodeBody] = {}
        self.edges: Dict[str, List[Tuple[str, Optional[Predicate]]]] = {}
        self.entry: Optional[str] = None
        self.exit: Optional[str] = None
        self._completed = 0

    def add_node(self, name: str, body: NodeBody) -> None:
        self.nodes[name] = body

    def add_edge(
        self, from_node: str, to_node: str, predicate: Optional[Predicate] = None
    ) -> None:
        self.edges.setdefault(from_node, []).append((to_node, predicate))

    def set_entry_point(self, name: str) -> None:
        self.entry = name

    def set_exit_point(self, name: str) -> None:
        self.exit = name

    async def execute(self, state: State) -> State:
        if self.entry is None:
            raise GraphError("graph has no entry point")
        return await self._walk(self.entry, state)

    async def resume(self, run_id: str) -> State:
        state = await self.store.load(run_id)
        if not state.checkpoint_node or state.checkpoint_node == self.exit:
            return state
        following = await self._route(state.checkpoint_node, state)
        if following is None:
            return state
        return await self._walk(following, state)

    async def _walk(self, node: str, state: State) -> State:
        iterations: Dict[str, int] = {}
        steps = 0
        while True:
            steps += 1
            if steps > self.config.max_iterations:
                raise GraphError(f"exceeded {self.config.max_iterations} iterations")
            if node not in self.nodes:
                raise GraphError(f"unknown node: {node}")

            iteration = iterations.get(node, 0)
            iterations[node] = iteration + 1

            await self._emit(
                EVENT_NODE_START,
                node,
                {"node": node, "iteration": iteration, "input_snapshot": state},
            )
            try:
                state = await self.nodes[node](state)
            except Exception as exc:
                await self._emit(
                    EVENT_NODE_COMPLETE,
                    node,
                    {
                        "node": node,
                        "iteration": iteration,
                        "error": True,
                        "error_message": str(exc),
                    },
                )
                raise
            await self._emit(
                EVENT_NODE_COMPLETE,
                node,
                {"node": node, "iteration": iteration, "output_snapshot": state},
            )

            state = state.model_copy(update={"checkpoint_node": node})
            self._completed += 1
            interval = self.config.checkpoint_interval
            if interval > 0 and self._completed % interval == 0:
                await self.store.save(state)

            if node == self.exit:
                return state
            following = await self._route(node, state)
            if following is None:
                return state
            node = following

    async def _route(self, node: str, state: State) -> Optional[str]:
        for to_node, predicate in self.edges.get(node, []):
            result = predicate(state) if predicate is not None else None
            if predicate is None or result:
                await self._emit(
                    EVENT_EDGE_TRANSITION,
                    node,
                    {
                        "from": node,
                        "to": to_node,
                        "predicate_name": getattr(predicate, "__name__", ""),
                        "predicate_result": result,
                    },
                )
                return to_node
        await self._emit(
            EVENT_EDGE_TRANSITION,
            node,
            {"from": node, "to": "", "reason": "no matching edge"},
        )
        return None

    async def _emit(self, event_type: str, source: str, data: Dict[str, Any]) -> None:
        await self.observer.on_event(Event(type=event_type, source=source, data=data))
