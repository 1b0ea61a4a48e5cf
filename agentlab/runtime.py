from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Runtime:
    """Handles to the domain systems that workflow nodes call into.

    The coordinator only passes this object through to workflow factories;
    the agents, documents, images and profiles systems live elsewhere.
    """

    agents: Optional[Any] = None
    documents: Optional[Any] = None
    images: Optional[Any] = None
    profiles: Optional[Any] = None
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("agentlab.workflows")
    )
