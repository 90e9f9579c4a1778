"""Tests for the SQLite record store. Uses temporary DB file."""

from datetime import datetime, timezone

import pytest

from data.store import TradingStore
from execution.models import OrderSide, OrderStatus, OrderType


def _ts(d: int, h: int = 9, mi: int = 30) -> datetime:
    return datetime(2024, 1, d, h, mi, 0, tzinfo=timezone.utc)


def test_users(store: TradingStore) -> None:
    u = store.create_user("alice", 500.0)
    assert store.get_user(u.id).username == "alice"
    assert store.get_user_by_name("alice").cash == 500.0
    assert store.get_user(999) is None
    assert store.get_user_by_name("bob") is None


def test_order_created_open(store: TradingStore, rich_user: int) -> None:
    with store.session() as s:
        order = s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.LIMIT, 5, 120.0)
    assert order.status == OrderStatus.OPEN
    assert order.filled_qty == 0
    assert order.avg_fill_price is None
    assert order.remaining_qty == 5
    assert store.get_order(order.id, rich_user) == order
    assert store.get_order(order.id, rich_user + 1) is None


def test_list_orders_filter(store: TradingStore, rich_user: int) -> None:
    with store.session() as s:
        a = s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.LIMIT, 1, 1.0)
        b = s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.LIMIT, 1, 1.0)
        s.cancel_open_order(a.id, rich_user)
    assert [o.id for o in store.list_orders(rich_user)] == [b.id, a.id]
    assert [o.id for o in store.list_orders(rich_user, OrderStatus.CANCELLED)] == [a.id]


def test_record_fill_is_conditional(store: TradingStore, rich_user: int) -> None:
    with store.session() as s:
        order = s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.MARKET, 10, None)
        assert s.record_fill(order.id, expected_filled_qty=0, filled_qty=10, avg_fill_price=1.0, status=OrderStatus.FILLED)
        # stale expectation, and a terminal order
        assert not s.record_fill(order.id, expected_filled_qty=0, filled_qty=10, avg_fill_price=1.0, status=OrderStatus.FILLED)
    assert store.get_order(order.id).status == OrderStatus.FILLED


def test_active_orders_exclude_terminal(store: TradingStore, rich_user: int) -> None:
    with store.session() as s:
        a = s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.LIMIT, 1, 1.0)
        b = s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.LIMIT, 2, 1.0)
        c = s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.LIMIT, 1, 1.0)
        s.create_order(rich_user, "TSLA", OrderSide.BUY, OrderType.LIMIT, 1, 1.0)
        s.cancel_open_order(a.id, rich_user)
        s.record_fill(b.id, expected_filled_qty=0, filled_qty=1, avg_fill_price=1.0, status=OrderStatus.PARTIAL)
        active = s.list_active_orders("AAPL")
    assert [o.id for o in active] == [b.id, c.id]


def test_session_rolls_back_on_error(store: TradingStore, rich_user: int) -> None:
    with pytest.raises(RuntimeError):
        with store.session() as s:
            s.insert_position(rich_user, "AAPL", 5, 100.0)
            raise RuntimeError("abort")
    assert store.get_position(rich_user, "AAPL") is None


def test_position_qty_must_be_positive(store: TradingStore, rich_user: int) -> None:
    import sqlite3

    with pytest.raises(sqlite3.IntegrityError):
        with store.session() as s:
            s.insert_position(rich_user, "AAPL", 0, 100.0)


def test_price_history_range(store: TradingStore) -> None:
    store.insert_price_rows([("AAPL", _ts(d), 100.0 + d) for d in range(2, 7)])
    store.insert_price_rows([("TSLA", _ts(3), 250.0)])

    rows = store.price_history("AAPL", since=_ts(3), until=_ts(5))
    assert [p for _, p in rows] == [103.0, 104.0, 105.0]
    assert rows[0][0] == _ts(3)

    assert len(store.price_history("AAPL", limit=2)) == 2
    assert store.latest_price("AAPL") == 106.0
    assert store.latest_price("NOPE") is None


def test_naive_timestamps_treated_as_utc(store: TradingStore) -> None:
    store.insert_price_rows([("AAPL", datetime(2024, 1, 2, 9, 30), 1.0)])
    [(ts, _)] = store.price_history("AAPL")
    assert ts == _ts(2)
