"""Directory of workflow definitions available for execution."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel

from .state import State

if TYPE_CHECKING:
    from .context import ExecutionContext
    from .engine import StateGraph
    from .runtime import Runtime

WorkflowFactory = Callable[
    ["ExecutionContext", "StateGraph", "Runtime", Dict[str, Any]],
    Union[State, Awaitable[State]],
]


class WorkflowInfo(BaseModel):
    """Metadata describing a registered workflow."""

    name: str
    description: str = ""


class WorkflowRegistry:
    """Maps workflow names to the factories that build them.

    Registration is normally done once at process start-up, but lookups may
    happen from any request, so every operation takes the same lock.
    """

    def __init__(self) -> None:
        self._factories: Dict[str, WorkflowFactory] = {}
        self._info: Dict[str, WorkflowInfo] = {}
        self._lock = threading.Lock()

    def register(self, name: str, factory: WorkflowFactory, description: str = "") -> None:
        """Add ``factory`` under ``name``, replacing any previous entry."""
        with self._lock:
            self._factories[name] = factory
            self._info[name] = WorkflowInfo(name=name, description=description)

    def workflow(
        self, name: str, description: str = ""
    ) -> Callable[[WorkflowFactory], WorkflowFactory]:
        """Decorator form of :meth:`register`."""

        def decorator(factory: WorkflowFactory) -> WorkflowFactory:
            self.register(name, factory, description)
            return factory

        return decorator

    def get(self, name: str) -> Optional[WorkflowFactory]:
        with self._lock:
            return self._factories.get(name)

    def list(self) -> List[WorkflowInfo]:
        with self._lock:
            return list(self._info.values())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._factories

    def __len__(self) -> int:
        with self._lock:
            return len(self._factories)
