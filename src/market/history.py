"""
Synthetic minute-level price history for seeding a fresh store.

Sessions run 09:30-16:00 (390 minutes); weekend days are skipped.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any

from config.universe import Universe
from market.price_generator import PRICE_FLOOR
from market.volatility import volatility_for

logger = logging.getLogger("trade.history")

SESSION_MINUTES = 390

DEMO_USERS: tuple[tuple[str, float], ...] = (
    ("demo_user", 100_000.0),
    ("test_user", 50_000.0),
)


def generate_history(
    symbol: str,
    base_price: float,
    volatility: float,
    days: int = 7,
    *,
    rng: Any = None,
    end: datetime | None = None,
) -> list[tuple[str, datetime, float]]:
    """Return (symbol, ts, price) rows in ascending time order."""
    rng = rng or random.Random()
    end = end or datetime.now(timezone.utc)
    start = (end - timedelta(days=days)).replace(hour=9, minute=30, second=0, microsecond=0)

    rows: list[tuple[str, datetime, float]] = []
    price = base_price
    for day in range(days):
        session_open = start + timedelta(days=day)
        if session_open.weekday() >= 5:
            continue
        for minute in range(SESSION_MINUTES):
            change = (rng.random() - 0.5) * 2 * volatility
            price = max(PRICE_FLOOR, price * (1 + change))
            rows.append((symbol, session_open + timedelta(minutes=minute), round(price, 2)))
    return rows


def seed_demo(store, universe: Universe, days: int = 7, *, rng: Any = None) -> dict[str, int]:
    """Create the demo users and fill price history for every symbol."""
    rng = rng or random.Random()
    users = 0
    for username, cash in DEMO_USERS:
        if store.get_user_by_name(username) is None:
            store.create_user(username, cash)
            users += 1

    rows = 0
    for spec in universe:
        history = generate_history(spec.symbol, spec.fallback_price, volatility_for(spec), days, rng=rng)
        store.insert_price_rows(history)
        rows += len(history)
        logger.info("Inserted %d price records for %s", len(history), spec.symbol)

    return {"users": users, "prices": rows}
