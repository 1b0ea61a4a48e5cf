"""Checkpoint storage backed by the run repository."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from uuid import UUID

from .errors import CheckpointNotFoundError
from .persistence.repository import RunRepository
from .state import State

logger = logging.getLogger(__name__)


class RepositoryCheckpointStore:
    """Persist run state so the engine can resume after a failure.

    Each save overwrites the previous checkpoint for the same run. The stored
    document is ``State.model_dump`` output, so secret values never reach the
    database. Secrets handed to the store are re-attached to loaded states so
    a resumed run sees the same credentials as a fresh one.
    """

    def __init__(
        self,
        repository: RunRepository,
        secrets: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._repository = repository
        self._secrets = dict(secrets or {})

    async def save(self, state: State) -> None:
        run_id = UUID(state.run_id)
        await self._repository.save_checkpoint(
            run_id, state.model_dump(mode="json"), state.checkpoint_node
        )
        logger.debug(f"Checkpoint saved run_id={run_id} node={state.checkpoint_node}")

    async def load(self, run_id: str) -> State:
        checkpoint = await self._repository.load_checkpoint(UUID(str(run_id)))
        if checkpoint is None:
            raise CheckpointNotFoundError(str(run_id))
        logger.debug(f"Checkpoint loaded run_id={run_id}")
        return State.model_validate(checkpoint.state_data).with_secrets(self._secrets)

    async def delete(self, run_id: str) -> None:
        await self._repository.delete_checkpoint(UUID(str(run_id)))
        logger.debug(f"Checkpoint deleted run_id={run_id}")

    async def list(self) -> list[str]:
        return [str(run_id) for run_id in await self._repository.list_checkpoints()]
