"""
Record store for users, orders, positions and price history (SQLite). Timestamps in UTC.

One connection per unit of work. ``session()`` yields a StoreSession bound to a
single connection and commits on success or rolls back on error, so an order
fill and its position mutation land together or not at all.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from execution.models import (
    ACTIVE_STATUSES,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
    Position,
    User,
)
from market.models import PriceTick

logger = logging.getLogger("trade.store")

_ORDER_COLS = (
    "id, user_id, symbol, side, order_type, qty, limit_price, status, "
    "filled_qty, avg_fill_price, created_at, updated_at"
)
_POSITION_COLS = "user_id, symbol, qty, avg_price, updated_at"


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _row_to_order(r: Sequence) -> Order:
    return Order(
        id=r[0],
        user_id=r[1],
        symbol=r[2],
        side=OrderSide(r[3]),
        order_type=OrderType(r[4]),
        qty=r[5],
        limit_price=r[6],
        status=OrderStatus(r[7]),
        filled_qty=r[8],
        avg_fill_price=r[9],
        created_at=_parse_ts(r[10]),
        updated_at=_parse_ts(r[11]),
    )


def _row_to_position(r: Sequence) -> Position:
    return Position(user_id=r[0], symbol=r[1], qty=r[2], avg_price=r[3], updated_at=_parse_ts(r[4]))


class StoreSession:
    """Record CRUD on one open connection. Obtain via TradingStore.session()."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._c = conn

    # -- users -----------------------------------------------------------

    def create_user(self, username: str, cash: float) -> User:
        ts = _now()
        cur = self._c.execute(
            "INSERT INTO users (username, cash, created_at) VALUES (?, ?, ?)",
            (username, cash, ts),
        )
        return User(id=cur.lastrowid, username=username, cash=cash, created_at=_parse_ts(ts))

    def get_user(self, user_id: int) -> User | None:
        row = self._c.execute(
            "SELECT id, username, cash, created_at FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        if not row:
            return None
        return User(id=row[0], username=row[1], cash=row[2], created_at=_parse_ts(row[3]))

    def get_user_by_name(self, username: str) -> User | None:
        row = self._c.execute(
            "SELECT id, username, cash, created_at FROM users WHERE username = ?", (username,)
        ).fetchone()
        if not row:
            return None
        return User(id=row[0], username=row[1], cash=row[2], created_at=_parse_ts(row[3]))

    # -- orders ----------------------------------------------------------

    def create_order(
        self,
        user_id: int,
        symbol: str,
        side: OrderSide,
        order_type: OrderType,
        qty: float,
        limit_price: float | None,
    ) -> Order:
        ts = _now()
        cur = self._c.execute(
            """INSERT INTO orders (user_id, symbol, side, order_type, qty, limit_price, status,
                                   filled_qty, avg_fill_price, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?)""",
            (user_id, symbol, side.value, order_type.value, qty, limit_price, OrderStatus.OPEN.value, ts, ts),
        )
        return self.get_order(cur.lastrowid)

    def get_order(self, order_id: int, user_id: int | None = None) -> Order | None:
        q = f"SELECT {_ORDER_COLS} FROM orders WHERE id = ?"
        params: list = [order_id]
        if user_id is not None:
            q += " AND user_id = ?"
            params.append(user_id)
        row = self._c.execute(q, params).fetchone()
        return _row_to_order(row) if row else None

    def list_orders(
        self,
        user_id: int,
        status: OrderStatus | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Order]:
        """Newest first."""
        q = f"SELECT {_ORDER_COLS} FROM orders WHERE user_id = ?"
        params: list = [user_id]
        if status is not None:
            q += " AND status = ?"
            params.append(status.value)
        q += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            q += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        return [_row_to_order(r) for r in self._c.execute(q, params).fetchall()]

    def list_active_orders(self, symbol: str) -> list[Order]:
        """Open and partial orders for *symbol*, oldest first."""
        placeholders = ", ".join("?" for _ in ACTIVE_STATUSES)
        rows = self._c.execute(
            f"SELECT {_ORDER_COLS} FROM orders WHERE symbol = ? AND status IN ({placeholders}) "
            "ORDER BY created_at ASC, id ASC",
            (symbol, *(s.value for s in ACTIVE_STATUSES)),
        ).fetchall()
        return [_row_to_order(r) for r in rows]

    def record_fill(
        self,
        order_id: int,
        *,
        expected_filled_qty: float,
        filled_qty: float,
        avg_fill_price: float,
        status: OrderStatus,
    ) -> bool:
        """Apply a fill only if the order is still active at *expected_filled_qty*."""
        placeholders = ", ".join("?" for _ in ACTIVE_STATUSES)
        cur = self._c.execute(
            f"""UPDATE orders SET filled_qty = ?, avg_fill_price = ?, status = ?, updated_at = ?
                WHERE id = ? AND filled_qty = ? AND status IN ({placeholders})""",
            (
                filled_qty,
                avg_fill_price,
                status.value,
                _now(),
                order_id,
                expected_filled_qty,
                *(s.value for s in ACTIVE_STATUSES),
            ),
        )
        return cur.rowcount == 1

    def cancel_open_order(self, order_id: int, user_id: int) -> bool:
        cur = self._c.execute(
            "UPDATE orders SET status = ?, updated_at = ? WHERE id = ? AND user_id = ? AND status = ?",
            (OrderStatus.CANCELLED.value, _now(), order_id, user_id, OrderStatus.OPEN.value),
        )
        return cur.rowcount == 1

    # -- positions -------------------------------------------------------

    def get_position(self, user_id: int, symbol: str) -> Position | None:
        row = self._c.execute(
            f"SELECT {_POSITION_COLS} FROM positions WHERE user_id = ? AND symbol = ?",
            (user_id, symbol),
        ).fetchone()
        return _row_to_position(row) if row else None

    def list_positions(self, user_id: int) -> list[Position]:
        rows = self._c.execute(
            f"SELECT {_POSITION_COLS} FROM positions WHERE user_id = ? ORDER BY symbol ASC",
            (user_id,),
        ).fetchall()
        return [_row_to_position(r) for r in rows]

    def insert_position(self, user_id: int, symbol: str, qty: float, avg_price: float) -> None:
        ts = _now()
        self._c.execute(
            """INSERT INTO positions (user_id, symbol, qty, avg_price, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (user_id, symbol, qty, avg_price, ts, ts),
        )

    def update_position(self, user_id: int, symbol: str, qty: float, avg_price: float) -> None:
        self._c.execute(
            "UPDATE positions SET qty = ?, avg_price = ?, updated_at = ? WHERE user_id = ? AND symbol = ?",
            (qty, avg_price, _now(), user_id, symbol),
        )

    def delete_position(self, user_id: int, symbol: str) -> None:
        self._c.execute("DELETE FROM positions WHERE user_id = ? AND symbol = ?", (user_id, symbol))

    # -- prices ----------------------------------------------------------

    def append_prices(self, ticks: Iterable[PriceTick]) -> None:
        self._c.executemany(
            "INSERT INTO prices (symbol, ts_utc, price) VALUES (?, ?, ?)",
            [(t.symbol, _utc(t.timestamp).isoformat(), t.price) for t in ticks],
        )

    def insert_price_rows(self, rows: Iterable[tuple[str, datetime, float]]) -> None:
        self._c.executemany(
            "INSERT INTO prices (symbol, ts_utc, price) VALUES (?, ?, ?)",
            [(symbol, _utc(ts).isoformat(), price) for symbol, ts, price in rows],
        )

    def latest_price(self, symbol: str) -> float | None:
        row = self._c.execute(
            "SELECT price FROM prices WHERE symbol = ? ORDER BY ts_utc DESC, id DESC LIMIT 1",
            (symbol,),
        ).fetchone()
        return float(row[0]) if row else None

    def price_history(
        self,
        symbol: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 1000,
    ) -> list[tuple[datetime, float]]:
        """Return (ts, price) in ascending time order."""
        q = "SELECT ts_utc, price FROM prices WHERE symbol = ?"
        params: list = [symbol]
        if since is not None:
            q += " AND ts_utc >= ?"
            params.append(_utc(since).isoformat())
        if until is not None:
            q += " AND ts_utc <= ?"
            params.append(_utc(until).isoformat())
        q += " ORDER BY ts_utc ASC, id ASC LIMIT ?"
        params.append(limit)
        return [(_parse_ts(ts), price) for ts, price in self._c.execute(q, params).fetchall()]


class TradingStore:
    """SQLite-backed record store. One file per path."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def path(self) -> Path:
        return self._path

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._path), timeout=10.0)

    def _init_schema(self) -> None:
        with self.session() as s:
            c = s._c
            c.execute("PRAGMA journal_mode=WAL")
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    cash REAL NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS orders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users (id),
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    order_type TEXT NOT NULL,
                    qty REAL NOT NULL CHECK (qty > 0),
                    limit_price REAL,
                    status TEXT NOT NULL,
                    filled_qty REAL NOT NULL DEFAULT 0 CHECK (filled_qty >= 0 AND filled_qty <= qty),
                    avg_fill_price REAL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            c.execute("CREATE INDEX IF NOT EXISTS idx_orders_symbol_status ON orders (symbol, status, created_at)")
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS positions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users (id),
                    symbol TEXT NOT NULL,
                    qty REAL NOT NULL CHECK (qty > 0),
                    avg_price REAL NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (user_id, symbol)
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS prices (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    ts_utc TEXT NOT NULL,
                    price REAL NOT NULL
                )
                """
            )
            c.execute("CREATE INDEX IF NOT EXISTS idx_prices_symbol_ts ON prices (symbol, ts_utc)")

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        conn = self._conn()
        try:
            yield StoreSession(conn)
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Single-statement conveniences; each runs in its own session.

    def create_user(self, username: str, cash: float) -> User:
        with self.session() as s:
            return s.create_user(username, cash)

    def get_user(self, user_id: int) -> User | None:
        with self.session() as s:
            return s.get_user(user_id)

    def get_user_by_name(self, username: str) -> User | None:
        with self.session() as s:
            return s.get_user_by_name(username)

    def get_order(self, order_id: int, user_id: int | None = None) -> Order | None:
        with self.session() as s:
            return s.get_order(order_id, user_id)

    def list_orders(self, user_id: int, status: OrderStatus | None = None) -> list[Order]:
        with self.session() as s:
            return s.list_orders(user_id, status)

    def get_position(self, user_id: int, symbol: str) -> Position | None:
        with self.session() as s:
            return s.get_position(user_id, symbol)

    def list_positions(self, user_id: int) -> list[Position]:
        with self.session() as s:
            return s.list_positions(user_id)

    def append_prices(self, ticks: list[PriceTick]) -> None:
        with self.session() as s:
            s.append_prices(ticks)

    def insert_price_rows(self, rows: Iterable[tuple[str, datetime, float]]) -> None:
        with self.session() as s:
            s.insert_price_rows(rows)

    def latest_price(self, symbol: str) -> float | None:
        with self.session() as s:
            return s.latest_price(symbol)

    def price_history(
        self,
        symbol: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 1000,
    ) -> list[tuple[datetime, float]]:
        with self.session() as s:
            return s.price_history(symbol, since=since, until=until, limit=limit)
