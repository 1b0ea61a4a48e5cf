"""Workflow state document shared between nodes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

_MISSING = object()


class State(BaseModel):
    """Ordered key/value document carried through a workflow graph.

    ``State`` is treated as immutable: ``set``, ``secret`` and ``merge`` return
    a new instance. Values stored with ``secret`` are kept out of every
    serialized form (``model_dump``, JSON, checkpoints and stage snapshots).
    """

    run_id: str = ""
    checkpoint_node: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    secrets: Dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def new(cls, data: Optional[Mapping[str, Any]] = None) -> "State":
        """Create a state seeded with ``data``."""
        return cls(data=dict(data or {}))

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def require(self, key: str) -> Any:
        """Return ``key`` or raise ``KeyError`` with a readable message."""
        value = self.data.get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(f"{key} is required")
        return value

    def get_str(self, key: str, default: str = "") -> str:
        value = self.data.get(key)
        return value if isinstance(value, str) and value else default

    def set(self, key: str, value: Any) -> "State":
        data = dict(self.data)
        data[key] = value
        return self.model_copy(update={"data": data})

    def merge(self, values: Mapping[str, Any]) -> "State":
        data = dict(self.data)
        data.update(values)
        return self.model_copy(update={"data": data})

    def secret(self, key: str, value: Any) -> "State":
        """Store a value that must never be persisted (tokens, credentials)."""
        secrets = dict(self.secrets)
        secrets[key] = value
        return self.model_copy(update={"secrets": secrets})

    def get_secret(self, key: str, default: Any = None) -> Any:
        return self.secrets.get(key, default)

    def with_secrets(self, secrets: Optional[Mapping[str, Any]]) -> "State":
        if not secrets:
            return self
        merged = dict(self.secrets)
        merged.update(secrets)
        return self.model_copy(update={"secrets": merged})

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the public data, safe to persist."""
        return dict(self.data)
