"""
Account views: portfolio valuation against one consistent price snapshot,
and order history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from execution.errors import UserNotFound
from execution.models import Order, Position

if TYPE_CHECKING:
    from data.store import TradingStore


class PriceSnapshot(Protocol):
    def get_current_prices(self) -> dict[str, float]: ...


@dataclass(frozen=True)
class PositionValuation:
    symbol: str
    qty: float
    avg_price: float
    current_price: float
    value: float
    unrealized_pnl: float


@dataclass(frozen=True)
class AccountSnapshot:
    user_id: int
    cash: float
    total_value: float
    daily_pnl: float
    positions: list[PositionValuation] = field(default_factory=list)


def value_position(position: Position, prices: dict[str, float]) -> PositionValuation:
    """Value at the snapshot price; an unpriced symbol is carried at cost."""
    current = prices.get(position.symbol) or position.avg_price
    return PositionValuation(
        symbol=position.symbol,
        qty=position.qty,
        avg_price=position.avg_price,
        current_price=current,
        value=position.qty * current,
        unrealized_pnl=position.unrealized_pnl(current),
    )


class AccountService:
    def __init__(self, store: TradingStore, prices: PriceSnapshot) -> None:
        self._store = store
        self._prices = prices

    def get_positions(self, user_id: int) -> list[PositionValuation]:
        prices = self._prices.get_current_prices()
        return [value_position(p, prices) for p in self._store.list_positions(user_id)]

    def get_account_snapshot(self, user_id: int) -> AccountSnapshot:
        with self._store.session() as s:
            user = s.get_user(user_id)
            if user is None:
                raise UserNotFound(user_id)
            positions = s.list_positions(user_id)

        prices = self._prices.get_current_prices()
        valued = [value_position(p, prices) for p in positions]
        # Daily P&L is approximated by unrealized P&L; there is no session open mark.
        return AccountSnapshot(
            user_id=user_id,
            cash=user.cash,
            total_value=user.cash + sum(v.value for v in valued),
            daily_pnl=sum(v.unrealized_pnl for v in valued),
            positions=valued,
        )

    def get_transaction_history(self, user_id: int, limit: int = 50, offset: int = 0) -> list[Order]:
        with self._store.session() as s:
            return s.list_orders(user_id, limit=limit, offset=offset)
