"""agentlab: durable execution coordinator for agent workflows."""

from .config import AgentLabConfig, load_config
from .context import ExecutionContext
from .engine import Event, GraphConfig, GraphFactory, StateGraph
from .errors import (
    CheckpointNotFoundError,
    ExecutionFailedError,
    InvalidStatusError,
    NotFoundError,
    RunCancelledError,
    WorkflowError,
    WorkflowNotFoundError,
    map_http_status,
)
from .events import ExecutionEvent
from .executor import WorkflowExecutor
from .pagination import PageRequest, PageResult
from .persistence import get_repository
from .registry import WorkflowInfo, WorkflowRegistry
from .runtime import Runtime
from .state import State

__version__ = "0.1.0"
__all__ = [
    "AgentLabConfig",
    "load_config",
    "ExecutionContext",
    "Event",
    "GraphConfig",
    "GraphFactory",
    "StateGraph",
    "WorkflowError",
    "NotFoundError",
    "WorkflowNotFoundError",
    "CheckpointNotFoundError",
    "InvalidStatusError",
    "ExecutionFailedError",
    "RunCancelledError",
    "map_http_status",
    "ExecutionEvent",
    "WorkflowExecutor",
    "PageRequest",
    "PageResult",
    "get_repository",
    "WorkflowInfo",
    "WorkflowRegistry",
    "Runtime",
    "State",
]
