"""Domain events published by a run.

Subscribers are plain callables taking an ``Event``. The bus is synchronous:
``publish`` returns only after every subscriber has run.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

NODE_SELECTED = "node.selected"
NODE_CANCELLED = "node.cancelled"
NODE_COMPLETED = "node.completed"
CHALLENGE_OUTCOME = "challenge.outcome"
RESOURCES_CHANGED = "resources.changed"
ITEM_ACQUIRED = "item.acquired"
RUN_GAME_OVER = "run.game_over"
RUN_VICTORY = "run.victory"

Subscriber = Callable[["Event"], None]


@dataclass(frozen=True)
class Event:
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    # Position in the bus's publish order, starting at 1
    seq: int = 0


class EventBus:
    """Synchronous publish/subscribe bus owned by one run.

    Subscribers for a name run in subscription order. One that raises is
    logged and skipped; delivery to the rest continues.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Tuple[int, Subscriber]]] = {}
        self._tokens = itertools.count(1)
        self._published = 0

    def subscribe(self, name: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for ``name``; returns a function that removes it again."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        token = next(self._tokens)
        self._subscribers.setdefault(name, []).append((token, callback))

        def unsubscribe() -> None:
            entries = self._subscribers.get(name, [])
            self._subscribers[name] = [(t, cb) for t, cb in entries if t != token]

        return unsubscribe

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(name, []))

    def publish(self, name: str, payload: Dict[str, Any]) -> Event:
        self._published += 1
        event = Event(name=name, payload=payload, seq=self._published)
        for _, callback in list(self._subscribers.get(name, [])):
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber %r failed on event #%d '%s'", callback, event.seq, name)
        logger.debug("Event #%d '%s': %s", event.seq, name, payload)
        return event


__all__ = [
    "CHALLENGE_OUTCOME",
    "Event",
    "EventBus",
    "ITEM_ACQUIRED",
    "NODE_CANCELLED",
    "NODE_COMPLETED",
    "NODE_SELECTED",
    "RESOURCES_CHANGED",
    "RUN_GAME_OVER",
    "RUN_VICTORY",
    "Subscriber",
]
