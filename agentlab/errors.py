"""Domain errors for workflow execution."""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for all workflow coordinator errors."""


class NotFoundError(WorkflowError):
    """A run is missing, or a running run has no tracked execution."""


class WorkflowNotFoundError(NotFoundError):
    """No workflow is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"workflow not registered: {name}")
        self.name = name


class CheckpointNotFoundError(NotFoundError):
    """No checkpoint has been saved for the run."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"checkpoint not found: {run_id}")
        self.run_id = run_id


class InvalidStatusError(WorkflowError):
    """The run's status does not allow the requested transition."""


class ExecutionFailedError(WorkflowError):
    """Raised when a workflow could not be built or executed."""

    def __init__(self, message: str, run_id: str | None = None) -> None:
        super().__init__(message)
        self.run_id = run_id


class RunCancelledError(WorkflowError):
    """Cancellation of the run's execution context was observed."""


def map_http_status(error: BaseException) -> int:
    """Return the HTTP status code an API layer should use for ``error``."""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, InvalidStatusError):
        return 400
    return 500


__all__ = [
    "WorkflowError",
    "NotFoundError",
    "WorkflowNotFoundError",
    "CheckpointNotFoundError",
    "InvalidStatusError",
    "ExecutionFailedError",
    "RunCancelledError",
    "map_http_status",
]
