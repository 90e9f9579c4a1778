"""Trading errors. ``code`` is stable and safe to surface to callers."""


class TradingError(Exception):
    code = "TRADING_ERROR"


class InvalidOrder(TradingError):
    """Bad quantity, price/type mismatch, no price feed, or insufficient position."""

    code = "INVALID_ORDER"


class InsufficientFunds(TradingError):
    code = "INSUFFICIENT_FUNDS"


class OrderNotFound(TradingError):
    """No cancellable (or visible) order with that id for that user."""

    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class UserNotFound(TradingError):
    code = "NOT_FOUND"

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class SettlementConflict(TradingError):
    """The order changed underneath a fill; the fill was not applied."""

    code = "SETTLEMENT_CONFLICT"
