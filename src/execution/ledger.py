"""
Position ledger: quantity and cost basis per (user, symbol) as fills occur.

Buys re-average the cost basis; sells reduce quantity and leave the basis
unchanged; a position closed to exactly zero is deleted, never stored at qty 0.
Runs inside the settlement transaction, so the sell check here is the
authoritative guard against over-selling.
"""

from __future__ import annotations

import logging

from execution.errors import InvalidOrder
from execution.models import OrderSide, Position

logger = logging.getLogger("trade.ledger")

# Quantities within this of each other are equal (float fills).
QTY_EPSILON = 1e-9


def weighted_average(qty_a: float, price_a: float, qty_b: float, price_b: float) -> float:
    total = qty_a + qty_b
    if total <= 0:
        raise ValueError("Cannot average over a non-positive total quantity")
    return (qty_a * price_a + qty_b * price_b) / total


class PositionLedger:
    def apply_fill(
        self,
        session,
        user_id: int,
        symbol: str,
        side: OrderSide,
        qty: float,
        price: float,
    ) -> Position | None:
        """Mutate the position for one fill. Returns the resulting position, or None if closed."""
        if qty <= 0:
            raise InvalidOrder(f"Fill quantity must be positive, got {qty}")

        existing = session.get_position(user_id, symbol)

        if side == OrderSide.BUY:
            if existing is None:
                session.insert_position(user_id, symbol, qty, price)
                logger.debug("Opened position user=%s %s qty=%s @ %s", user_id, symbol, qty, price)
            else:
                new_qty = existing.qty + qty
                new_avg = weighted_average(existing.qty, existing.avg_price, qty, price)
                session.update_position(user_id, symbol, new_qty, new_avg)
            return session.get_position(user_id, symbol)

        available = existing.qty if existing else 0
        if existing is None or existing.qty + QTY_EPSILON < qty:
            raise InvalidOrder(f"Insufficient position. Available: {available}, Requested: {qty}")

        new_qty = existing.qty - qty
        if new_qty <= QTY_EPSILON:
            session.delete_position(user_id, symbol)
            logger.debug("Closed position user=%s %s", user_id, symbol)
            return None
        session.update_position(user_id, symbol, new_qty, existing.avg_price)
        return session.get_position(user_id, symbol)
