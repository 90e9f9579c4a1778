"""
In-process event bus: named subscribers per topic, best-effort delivery.

Publishers never see subscriber failures; a failing handler is logged and the
remaining handlers still receive the event.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger("trade.events")

PRICE_UPDATE = "price_update"
ORDER_CREATED = "order_created"
ORDER_UPDATE = "order_update"

Handler = Callable[[Any], None]


class EventBus:
    """Topic -> ordered {name: handler} registry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, dict[str, Handler]] = {}

    def subscribe(self, topic: str, name: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._subscribers.setdefault(topic, {})
            if name in handlers:
                raise ValueError(f"Subscriber {name!r} already registered for {topic!r}")
            handlers[name] = handler

    def unsubscribe(self, topic: str, name: str) -> None:
        with self._lock:
            self._subscribers.get(topic, {}).pop(name, None)

    def subscribers(self, topic: str) -> list[str]:
        with self._lock:
            return list(self._subscribers.get(topic, {}))

    def publish(self, topic: str, payload: Any) -> int:
        """Deliver *payload* to every subscriber of *topic*. Returns the number delivered."""
        with self._lock:
            handlers = list(self._subscribers.get(topic, {}).items())
        delivered = 0
        for name, handler in handlers:
            try:
                handler(payload)
                delivered += 1
            except Exception:
                logger.exception("Subscriber %s failed on %s", name, topic)
        return delivered
