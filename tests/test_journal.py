"""Tests for journal writer. Append-only; one JSON line per order event."""

import json
import tempfile
from pathlib import Path

from data.store import TradingStore
from execution.models import OrderSide, OrderStatus, OrderType, OrderUpdate
from journal.writer import JournalWriter


def test_journal_writer_append_only(store: TradingStore, rich_user: int) -> None:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".jsonl", delete=False) as f:
        path = Path(f.name)
    try:
        with store.session() as s:
            order = s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.LIMIT, 10, 155.0)
        j = JournalWriter(path)
        j.order_created(order)
        j.order_update(OrderUpdate(order_id=order.id, status=OrderStatus.FILLED, filled_qty=10, avg_price=150.0))
        with open(path) as f:
            lines = f.readlines()
        assert len(lines) == 2
        r0 = json.loads(lines[0])
        assert r0["event"] == "order_created"
        assert r0["side"] == "buy"
        assert r0["order_type"] == "limit"
        assert r0["limit_price"] == 155.0
        r1 = json.loads(lines[1])
        assert r1["event"] == "order_update"
        assert r1["status"] == "filled"
        assert r1["avg_price"] == 150.0
        assert "ts_utc" in r1
    finally:
        path.unlink(missing_ok=True)


def test_cancel_recorded_as_cancelled(tmp_path: Path) -> None:
    path = tmp_path / "sub" / "journal.jsonl"
    j = JournalWriter(path)
    j.order_update(OrderUpdate(order_id=7, status=OrderStatus.CANCELLED, filled_qty=0, avg_price=None))
    record = json.loads(path.read_text().strip())
    assert record["event"] == "order_cancelled"
    assert record["order_id"] == 7
    assert record["avg_price"] is None


def test_echo_stdout(tmp_path: Path, capsys) -> None:
    j = JournalWriter(tmp_path / "j.jsonl", echo_stdout=True)
    j.order_update(OrderUpdate(order_id=1, status=OrderStatus.FILLED, filled_qty=1, avg_price=2.0))
    assert '"order_update"' in capsys.readouterr().out
