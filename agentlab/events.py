"""Typed views of engine events and the live progress wire format."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .engine import (
    EVENT_EDGE_TRANSITION,
    EVENT_NODE_COMPLETE,
    EVENT_NODE_START,
    Event,
)
from .state import State

logger = logging.getLogger(__name__)

EVENT_STAGE_START = "stage.start"
EVENT_STAGE_COMPLETE = "stage.complete"
EVENT_DECISION = "decision"
EVENT_ERROR = "error"
EVENT_COMPLETE = "complete"


def _redact(value: Any) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if isinstance(value, State):
        return value.snapshot()
    if isinstance(value, dict):
        return dict(value)
    raise ValueError(f"unsupported snapshot type: {type(value).__name__}")


class _EngineEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    source: str = ""


class NodeStart(_EngineEvent):
    kind: Literal["node.start"] = EVENT_NODE_START
    node: str
    iteration: int = 0
    input_snapshot: Optional[Dict[str, Any]] = None

    @field_validator("input_snapshot", mode="before")
    @classmethod
    def _redact_input(cls, v: Any) -> Any:
        return _redact(v)


class NodeComplete(_EngineEvent):
    kind: Literal["node.complete"] = EVENT_NODE_COMPLETE
    node: str
    iteration: int = 0
    output_snapshot: Optional[Dict[str, Any]] = None
    error: bool = False
    error_message: Optional[str] = None

    @field_validator("output_snapshot", mode="before")
    @classmethod
    def _redact_output(cls, v: Any) -> Any:
        return _redact(v)


class EdgeTransition(_EngineEvent):
    kind: Literal["edge.transition"] = EVENT_EDGE_TRANSITION
    from_node: str = Field(alias="from")
    to_node: Optional[str] = Field(default=None, alias="to")
    predicate_name: Optional[str] = None
    predicate_result: Optional[bool] = None
    reason: Optional[str] = None

    @field_validator("predicate_name", "to_node", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        return v or None


GraphEvent = Union[NodeStart, NodeComplete, EdgeTransition]

_DECODERS = {
    EVENT_NODE_START: NodeStart,
    EVENT_NODE_COMPLETE: NodeComplete,
    EVENT_EDGE_TRANSITION: EdgeTransition,
}


def decode_event(event: Union[Event, GraphEvent]) -> Optional[GraphEvent]:
    """Decode a raw engine event into its typed form.

    Already decoded events are returned unchanged. Unknown event types and
    payloads that fail validation are logged and ``None`` is returned.
    """
    if isinstance(event, (NodeStart, NodeComplete, EdgeTransition)):
        return event

    decoder = _DECODERS.get(event.type)
    if decoder is None:
        logger.debug(f"Unhandled event type={event.type} source={event.source}")
        return None

    try:
        return decoder.model_validate(
            {**event.data, "timestamp": event.timestamp, "source": event.source}
        )
    except (ValidationError, ValueError) as exc:
        logger.error(f"Failed to decode {event.type} event: {exc}")
        return None


class ExecutionEvent(BaseModel):
    """Live progress notification delivered to stream subscribers."""

    type: Literal["stage.start", "stage.complete", "decision", "error", "complete"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_sse(self) -> str:
        """Render the event as a server-sent-events frame."""
        return f"event: {self.type}\ndata: {json.dumps(self.model_dump(mode='json'))}\n\n"
