from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Dict, Optional, Union

from ..engine import Event
from ..events import (
    EVENT_COMPLETE,
    EVENT_DECISION,
    EVENT_ERROR,
    EVENT_STAGE_COMPLETE,
    EVENT_STAGE_START,
    ExecutionEvent,
    GraphEvent,
    NodeComplete,
    NodeStart,
    decode_event,
)

logger = logging.getLogger(__name__)

_CLOSED = object()


class StreamingObserver:
    """Turn engine events into live progress events for one run.

    Events go into a bounded queue. Delivery is best effort: when the queue
    is full the event is dropped instead of blocking the workflow.
    """

    def __init__(self, buffer_size: int = 100) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)
        # close() runs from task done-callbacks, so the lock must not need await.
        self._lock = threading.Lock()
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def on_event(self, event: Union[Event, GraphEvent]) -> None:
        decoded = decode_event(event)
        if decoded is None:
            return
        self._offer(self._convert(decoded))

    def send_complete(self, result: Optional[Dict[str, Any]]) -> None:
        """Publish the final workflow result."""
        self._offer(ExecutionEvent(type=EVENT_COMPLETE, data={"result": result}))

    def send_error(self, error: BaseException | str, node_name: Optional[str] = None) -> None:
        """Publish a terminal failure, optionally attributed to a node."""
        data: Dict[str, Any] = {"message": str(error)}
        if node_name:
            data["node_name"] = node_name
        self._offer(ExecutionEvent(type=EVENT_ERROR, data=data))

    def close(self) -> None:
        """Stop accepting events. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._queue.put_nowait(_CLOSED)
            except asyncio.QueueFull:
                # Consumers notice the closed flag once the queue drains.
                pass

    async def events(self) -> AsyncIterator[ExecutionEvent]:
        """Yield events until the observer is closed and drained."""
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def _offer(self, event: ExecutionEvent) -> None:
        with self._lock:
            if self._closed:
                return
            try:
                self._queue.put_nowait(event)
            except asyncio.QueueFull:
                self.dropped += 1
                logger.debug(f"Stream buffer full, dropped {event.type} event")

    @staticmethod
    def _convert(event: GraphEvent) -> ExecutionEvent:
        if isinstance(event, NodeStart):
            return ExecutionEvent(
                type=EVENT_STAGE_START,
                timestamp=event.timestamp,
                data={"node_name": event.node, "iteration": event.iteration},
            )
        if isinstance(event, NodeComplete):
            if event.error:
                return ExecutionEvent(
                    type=EVENT_ERROR,
                    timestamp=event.timestamp,
                    data={"node_name": event.node, "message": event.error_message},
                )
            return ExecutionEvent(
                type=EVENT_STAGE_COMPLETE,
                timestamp=event.timestamp,
                data={
                    "node_name": event.node,
                    "iteration": event.iteration,
                    "output_snapshot": event.output_snapshot,
                },
            )
        return ExecutionEvent(
            type=EVENT_DECISION,
            timestamp=event.timestamp,
            data={
                "from_node": event.from_node,
                "to_node": event.to_node,
                "predicate_result": event.predicate_result,
            },
        )
