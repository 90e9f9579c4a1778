"""
Simulated execution: order creation/cancellation, per-symbol settlement against
the price feed, and the position ledger. No real capital.
"""

from execution.errors import (
    InsufficientFunds,
    InvalidOrder,
    OrderNotFound,
    SettlementConflict,
    TradingError,
    UserNotFound,
)
from execution.models import Order, OrderRequest, OrderStatus, OrderUpdate, Position
from execution.ledger import PositionLedger
from execution.locks import SymbolLocks
from execution.settlement import SettlementEngine
from execution.account import AccountService, AccountSnapshot

__all__ = [
    "AccountService",
    "AccountSnapshot",
    "InsufficientFunds",
    "InvalidOrder",
    "Order",
    "OrderNotFound",
    "OrderRequest",
    "OrderStatus",
    "OrderUpdate",
    "Position",
    "PositionLedger",
    "SettlementConflict",
    "SettlementEngine",
    "SymbolLocks",
    "TradingError",
    "UserNotFound",
]
