from __future__ import annotations

from typing import List, Union

from ..engine import Event, Observer
from ..events import GraphEvent, decode_event


class MultiObserver:
    """Fan an engine event out to several observers.

    The event is decoded once and the typed form is handed to each observer
    in registration order, one after the other.
    """

    def __init__(self, *observers: Observer) -> None:
        self.observers: List[Observer] = list(observers)

    async def on_event(self, event: Union[Event, GraphEvent]) -> None:
        decoded = decode_event(event)
        if decoded is None:
            return
        for observer in self.observers:
            await observer.on_event(decoded)
