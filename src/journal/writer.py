"""
Order journal: append-only JSON lines. One record per order lifecycle event.
"""

import json
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from execution.models import Order, OrderStatus, OrderUpdate


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "__dict__") and not isinstance(obj, type):
        return {k: _serialize(v) for k, v in vars(obj).items() if not k.startswith("_")}
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout
        self._lock = threading.Lock()

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with self._lock:
            with open(self._path, "a") as f:
                f.write(line)
        if self._echo:
            print(line.rstrip())

    def order_created(self, order: Order, **extra: Any) -> None:
        self._write(
            "order_created",
            {
                "order_id": order.id,
                "user_id": order.user_id,
                "symbol": order.symbol,
                "side": order.side,
                "order_type": order.order_type,
                "qty": order.qty,
                "limit_price": order.limit_price,
                **extra,
            },
        )

    def order_update(self, update: OrderUpdate, **extra: Any) -> None:
        event = "order_cancelled" if update.status == OrderStatus.CANCELLED else "order_update"
        self._write(event, {**update.to_dict(), **extra})
