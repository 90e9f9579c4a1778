"""Order, Position, OrderUpdate records for simulated execution."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(str, Enum):
    """open -> partial -> filled; open|partial -> cancelled. filled/cancelled are terminal."""

    OPEN = "open"
    PARTIAL = "partial"
    FILLED = "filled"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.FILLED, OrderStatus.CANCELLED)


ACTIVE_STATUSES = (OrderStatus.OPEN, OrderStatus.PARTIAL)


@dataclass
class User:
    id: int
    username: str
    cash: float
    created_at: datetime


@dataclass
class Order:
    id: int
    user_id: int
    symbol: str
    side: OrderSide
    order_type: OrderType
    qty: float
    status: OrderStatus
    filled_qty: float
    created_at: datetime
    updated_at: datetime
    limit_price: float | None = None
    avg_fill_price: float | None = None

    @property
    def remaining_qty(self) -> float:
        return self.qty - self.filled_qty


@dataclass
class Position:
    user_id: int
    symbol: str
    qty: float
    avg_price: float
    updated_at: datetime

    def unrealized_pnl(self, current_price: float) -> float:
        return (current_price - self.avg_price) * self.qty


@dataclass(frozen=True)
class OrderRequest:
    symbol: str
    side: str
    order_type: str
    qty: float
    price: float | None = None


@dataclass(frozen=True)
class OrderUpdate:
    order_id: int
    status: OrderStatus
    filled_qty: float
    avg_price: float | None

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "status": self.status.value,
            "filled_qty": self.filled_qty,
            "avg_price": self.avg_price,
        }
