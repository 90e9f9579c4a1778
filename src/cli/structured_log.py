"""
Structured JSON event logger for the running simulation.

Emits one JSON object per line to stderr. Events are designed to be
parsed by log aggregators (Grafana Loki, CloudWatch, ELK).

Optional webhook: when configured, order-level events (order_update, error)
are POSTed to the URL from a single background worker, so publishers never
wait on the network. ``close()`` drains pending posts.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

from events.bus import ORDER_UPDATE, PRICE_UPDATE, EventBus
from execution.models import OrderUpdate
from market.models import PriceTick

logger = logging.getLogger("trade.events")

SUBSCRIBER_NAME = "structured_log"


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
        log_prices: bool = False,
    ) -> None:
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr
        self._log_prices = log_prices
        self._ALERT_EVENTS = {"order_update", "error"}
        self._webhook_pool: ThreadPoolExecutor | None = None
        if self._webhook_url:
            self._webhook_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="webhook")

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(PRICE_UPDATE, SUBSCRIBER_NAME, self.price_batch)
        bus.subscribe(ORDER_UPDATE, SUBSCRIBER_NAME, self.order_update)

    def detach(self, bus: EventBus) -> None:
        bus.unsubscribe(PRICE_UPDATE, SUBSCRIBER_NAME)
        bus.unsubscribe(ORDER_UPDATE, SUBSCRIBER_NAME)

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record) + "\n")
            self._stream.flush()

        if self._webhook_pool is not None and event_type in self._ALERT_EVENTS:
            try:
                self._webhook_pool.submit(self._post_webhook, record)
            except RuntimeError:
                logger.warning("Webhook closed; dropped %s event", event_type)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            with urllib.request.urlopen(req, timeout=5):
                pass
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def price_batch(self, ticks: list[PriceTick]) -> dict:
        fields: dict[str, Any] = {"symbols": len(ticks)}
        if self._log_prices:
            fields["ticks"] = [t.to_dict() for t in ticks]
        return self._emit("price_batch", **fields)

    def order_update(self, update: OrderUpdate) -> dict:
        return self._emit("order_update", **update.to_dict())

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)

    def shutdown(self, ticks: int) -> dict:
        return self._emit("shutdown", ticks=ticks)

    def close(self, wait: bool = True) -> None:
        """Stop the webhook worker, by default after pending posts finish."""
        if self._webhook_pool is not None:
            self._webhook_pool.shutdown(wait=wait)
