"""SignalBus — payload-less publish/subscribe for application context changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from itertools import count
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[[], None]


class Topic(str, Enum):
    """Named change notifications carried by the bus."""

    SCHEMA_CHANGED = "schema-changed"
    DATABASE_CHANGED = "database-changed"
    CONNECTION_CHANGED = "connection-changed"


@dataclass
class SignalEvent:
    """A single published signal record."""

    timestamp: str
    topic: Topic
    delivered: int


class Subscription:
    """Deregistration handle returned by :meth:`SignalBus.subscribe`."""

    def __init__(self, bus: SignalBus, topic: Topic, key: int) -> None:
        self._bus = bus
        self.topic = topic
        self._key = key
        self.active = True

    def release(self) -> None:
        """Remove the handler from the bus. Safe to call more than once."""
        if self.active:
            self._bus._remove(self.topic, self._key)
            self.active = False


class SignalBus:
    """In-memory bus keyed by :class:`Topic`.

    Consumers receive no payload and must re-read the current context from
    shared application state. Handlers run synchronously inside ``publish``.
    """

    def __init__(self) -> None:
        self._handlers: dict[Topic, dict[int, Handler]] = {t: {} for t in Topic}
        self._keys = count(1)
        self._events: list[SignalEvent] = []

    def subscribe(self, topic: Topic, handler: Handler) -> Subscription:
        """Register *handler* for *topic* and return its deregistration handle."""
        topic = Topic(topic)
        key = next(self._keys)
        self._handlers[topic][key] = handler
        return Subscription(self, topic, key)

    def publish(self, topic: Topic) -> int:
        """Invoke every current subscriber of *topic* once; return how many ran."""
        topic = Topic(topic)
        # Snapshot so handlers may (un)subscribe while being delivered
        registered = self._handlers[topic]
        delivered = 0
        for key, handler in list(registered.items()):
            if key not in registered:
                continue
            try:
                handler()
            except Exception:
                logger.exception("Handler for signal '%s' failed", topic.value)
            delivered += 1

        self._events.append(SignalEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            topic=topic,
            delivered=delivered,
        ))
        logger.debug("Published '%s' to %d subscriber(s)", topic.value, delivered)
        return delivered

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._handlers[Topic(topic)])

    def get_history(self) -> list[dict[str, Any]]:
        """Return all published signals as dicts, in chronological order."""
        return [
            {"timestamp": e.timestamp, "topic": e.topic.value, "delivered": e.delivered}
            for e in self._events
        ]

    def clear_history(self) -> None:
        self._events.clear()

    def _remove(self, topic: Topic, key: int) -> None:
        self._handlers[topic].pop(key, None)
