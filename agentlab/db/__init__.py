from .models import (
    Checkpoint,
    Decision,
    Run,
    RunFilters,
    RunStatus,
    Stage,
    StageStatus,
)
from .workflow_db import WorkflowDB

__all__ = [
    "Run",
    "Stage",
    "Decision",
    "Checkpoint",
    "RunFilters",
    "RunStatus",
    "StageStatus",
    "WorkflowDB",
]
