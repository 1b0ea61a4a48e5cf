"""Engine observers: durable audit trail and live progress streams."""

from .durable import DurableObserver
from .multi import MultiObserver
from .streaming import StreamingObserver

__all__ = ["DurableObserver", "MultiObserver", "StreamingObserver"]
