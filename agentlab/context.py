"""Cooperative cancellation scope for a single workflow run."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .errors import RunCancelledError

logger = logging.getLogger(__name__)


class ExecutionContext:
    """Cancellation handle shared by the executor, the engine and node bodies.

    The executor binds the task driving the graph to the context. Cancelling
    the context sets a flag that node bodies can poll and cancels the bound
    task so the engine is interrupted at its next await point.
    """

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._cancelled = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def bind(self, task: asyncio.Task) -> None:
        """Attach the task executing the run."""
        self._task = task
        if self.cancelled:
            task.cancel()

    def cancel(self) -> None:
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        logger.info(f"Cancellation requested for run_id={self.run_id}")
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelledError(f"run {self.run_id} cancelled")
