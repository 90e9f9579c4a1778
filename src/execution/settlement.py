"""
Order settlement: match open orders against each price tick and apply fills.

Concurrency model
-----------------
- Each tick batch fans out into one task per symbol on a thread pool.
- A fixed per-symbol lock serializes passes for the same symbol; different
  symbols settle concurrently.
- The lock is not fair, so queued passes for one symbol may run out of
  arrival order. Tick passes carry the tick timestamp and a pass older than
  the last one applied for that symbol is skipped.
- Market orders are settled on the pool right after creation (not inline),
  under the same symbol lock, against the latest snapshot price.
- An order fill and its position change commit in one store transaction.
  Order-update events are published after that commit and after the symbol
  lock is released, so a slow subscriber never extends a pass.
- A failing order is logged and skipped; the rest of the batch still runs and
  the symbol lock is always released. An over-sell rejected by the ledger is
  logged without a traceback since it is retried on every tick.

Matching rules
--------------
- market: executes at the current price.
- limit buy: executes when price <= limit, at min(price, limit).
- limit sell: executes when price >= limit, at max(price, limit).
- An eligible order fills its entire remaining quantity (unlimited liquidity),
  so ``partial`` is reachable in the state machine but not produced here.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Protocol

from events.bus import ORDER_CREATED, ORDER_UPDATE, PRICE_UPDATE, EventBus
from execution.errors import (
    InsufficientFunds,
    InvalidOrder,
    OrderNotFound,
    SettlementConflict,
    UserNotFound,
)
from execution.ledger import QTY_EPSILON, PositionLedger
from execution.locks import SymbolLocks
from execution.models import (
    ACTIVE_STATUSES,
    Order,
    OrderRequest,
    OrderSide,
    OrderStatus,
    OrderType,
    OrderUpdate,
)

if TYPE_CHECKING:
    from data.store import TradingStore
    from market.models import PriceTick

logger = logging.getLogger("trade.settlement")

SUBSCRIBER_NAME = "settlement"


class PriceSource(Protocol):
    def get_current_price(self, symbol: str) -> float | None: ...


def execution_price(order: Order, current_price: float) -> float | None:
    """Price at which *order* executes against *current_price*, or None if not eligible."""
    if order.order_type == OrderType.MARKET:
        return current_price
    if order.limit_price is None:
        return None
    if order.side == OrderSide.BUY and current_price <= order.limit_price:
        return min(current_price, order.limit_price)
    if order.side == OrderSide.SELL and current_price >= order.limit_price:
        return max(current_price, order.limit_price)
    return None


def _parse_request(request: OrderRequest) -> tuple[OrderSide, OrderType]:
    try:
        side = OrderSide(request.side)
    except ValueError:
        raise InvalidOrder('Side must be either "buy" or "sell"') from None
    try:
        order_type = OrderType(request.order_type)
    except ValueError:
        raise InvalidOrder('Type must be either "market" or "limit"') from None

    if request.qty is None or request.qty <= 0:
        raise InvalidOrder("Quantity must be positive")
    if order_type == OrderType.LIMIT:
        if request.price is None or request.price <= 0:
            raise InvalidOrder("Price is required for limit orders")
    elif request.price is not None:
        raise InvalidOrder("Market orders must not specify a price")
    return side, order_type


class SettlementEngine:
    """
    Creates, cancels and settles orders. Subscribe it to the bus with
    ``attach()``; tear down with ``shutdown()``.
    """

    def __init__(
        self,
        store: TradingStore,
        prices: PriceSource,
        bus: EventBus,
        locks: SymbolLocks,
        *,
        ledger: PositionLedger | None = None,
        max_workers: int = 4,
    ) -> None:
        self._store = store
        self._prices = prices
        self._bus = bus
        self._locks = locks
        self._ledger = ledger or PositionLedger()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="settlement")
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()
        self._attached = False
        # symbol -> timestamp of the newest tick settled; guarded by that symbol's lock
        self._last_tick: dict[str, datetime] = {}

    # -- wiring ----------------------------------------------------------

    def attach(self) -> None:
        if self._attached:
            return
        self._bus.subscribe(PRICE_UPDATE, SUBSCRIBER_NAME, self.on_price_update)
        self._attached = True

    def shutdown(self, wait_for_pending: bool = True) -> None:
        if self._attached:
            self._bus.unsubscribe(PRICE_UPDATE, SUBSCRIBER_NAME)
            self._attached = False
        self._pool.shutdown(wait=wait_for_pending)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every scheduled settlement task has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def _submit(self, fn: Callable, *args) -> Future | None:
        try:
            future = self._pool.submit(fn, *args)
        except RuntimeError:
            logger.warning("Settlement pool is shut down; dropped %s%s", fn.__name__, args)
            return None
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _publish_updates(self, updates: list[OrderUpdate]) -> None:
        for update in updates:
            self._bus.publish(ORDER_UPDATE, update)

    # -- tick processing -------------------------------------------------

    def on_price_update(self, ticks: list[PriceTick]) -> None:
        for tick in ticks:
            self._submit(self._process_tick, tick.symbol, tick.price, tick.timestamp)

    def _process_tick(self, symbol: str, price: float, as_of: datetime | None = None) -> None:
        try:
            self.process_symbol(symbol, price, as_of=as_of)
        except Exception:
            logger.exception("Error processing price tick for %s", symbol)

    def process_symbol(
        self,
        symbol: str,
        current_price: float,
        *,
        as_of: datetime | None = None,
    ) -> list[OrderUpdate]:
        """
        One settlement pass for *symbol*. Serialized per symbol.

        With *as_of*, a pass older than the newest tick already settled for the
        symbol does nothing. Updates are published once the lock is released.
        """
        updates: list[OrderUpdate] = []
        with self._locks.hold(symbol):
            if as_of is not None:
                last = self._last_tick.get(symbol)
                if last is not None and as_of < last:
                    logger.debug("Skipping stale %s tick at %s (last %s)", symbol, as_of, last)
                    return updates
                self._last_tick[symbol] = as_of

            with self._store.session() as s:
                orders = s.list_active_orders(symbol)
            for order in orders:
                try:
                    update = self._process_order(order, current_price)
                except InvalidOrder as exc:
                    logger.error("Order %s not settled: %s", order.id, exc)
                    continue
                except Exception:
                    logger.exception("Error processing order %s", order.id)
                    continue
                if update is not None:
                    updates.append(update)

        self._publish_updates(updates)
        return updates

    def _process_order(self, order: Order, current_price: float) -> OrderUpdate | None:
        remaining = order.remaining_qty
        if remaining <= 0:
            return None
        price = execution_price(order, current_price)
        if price is None:
            return None
        return self._execute(order, price, remaining)

    def _execute(self, order: Order, price: float, fill_qty: float) -> OrderUpdate:
        """Commit the fill and its position change. The caller publishes the update."""
        filled = min(order.qty, order.filled_qty + fill_qty)
        prior_value = order.filled_qty * (order.avg_fill_price or 0.0)
        avg_price = (prior_value + fill_qty * price) / filled
        status = OrderStatus.FILLED if filled >= order.qty else OrderStatus.PARTIAL

        with self._store.session() as s:
            applied = s.record_fill(
                order.id,
                expected_filled_qty=order.filled_qty,
                filled_qty=filled,
                avg_fill_price=avg_price,
                status=status,
            )
            if not applied:
                raise SettlementConflict(f"Order {order.id} changed before fill could be applied")
            self._ledger.apply_fill(s, order.user_id, order.symbol, order.side, fill_qty, price)

        logger.info("Order %s executed: %s %s %s at %.2f", order.id, order.side.value, fill_qty, order.symbol, price)
        return OrderUpdate(order_id=order.id, status=status, filled_qty=filled, avg_price=avg_price)

    def _settle_market_order(self, order_id: int, symbol: str) -> OrderUpdate | None:
        price = self._prices.get_current_price(symbol)
        if price is None:
            logger.warning("No price for %s; market order %s waits for next tick", symbol, order_id)
            return None
        try:
            with self._locks.hold(symbol):
                order = self._store.get_order(order_id)
                if order is None or order.status not in ACTIVE_STATUSES:
                    return None
                update = self._process_order(order, round(price, 2))
        except InvalidOrder as exc:
            logger.error("Market order %s not settled: %s", order_id, exc)
            return None
        except Exception:
            logger.exception("Error processing market order %s", order_id)
            return None
        if update is not None:
            self._publish_updates([update])
        return update

    # -- order lifecycle -------------------------------------------------

    def create_order(self, user_id: int, request: OrderRequest) -> Order:
        """
        Validate and persist a new order (status=open, filled_qty=0).

        Buys are checked against cash at the current price (point-in-time, no
        reservation); sells against the held position, with the same quantity
        tolerance the ledger applies. Market orders are scheduled for
        settlement immediately after the order is stored.
        """
        side, order_type = _parse_request(request)
        symbol = request.symbol
        if symbol not in self._locks:
            raise InvalidOrder(f"Unknown symbol {symbol}")

        with self._store.session() as s:
            user = s.get_user(user_id)
            if user is None:
                raise UserNotFound(user_id)

            if side == OrderSide.BUY:
                current_price = self._prices.get_current_price(symbol)
                if current_price is None:
                    raise InvalidOrder(f"No current price available for {symbol}")
                estimated_cost = request.qty * current_price
                if estimated_cost > user.cash:
                    raise InsufficientFunds(
                        f"Insufficient funds. Required: {estimated_cost:.2f}, Available: {user.cash:.2f}"
                    )
            else:
                position = s.get_position(user_id, symbol)
                available = position.qty if position else 0
                if position is None or position.qty + QTY_EPSILON < request.qty:
                    raise InvalidOrder(f"Insufficient position. Available: {available}, Requested: {request.qty}")

            order = s.create_order(user_id, symbol, side, order_type, request.qty, request.price)

        price_str = f" @{request.price}" if request.price is not None else ""
        logger.info("Created order %s: %s %s %s %s%s", order.id, side.value, request.qty, symbol, order_type.value, price_str)
        self._bus.publish(ORDER_CREATED, order)

        if order_type == OrderType.MARKET:
            self._submit(self._settle_market_order, order.id, symbol)
        return order

    def cancel_order(self, user_id: int, order_id: int) -> Order:
        """Cancel a strictly ``open`` order owned by *user_id*."""
        with self._store.session() as s:
            if not s.cancel_open_order(order_id, user_id):
                raise OrderNotFound(order_id)
            order = s.get_order(order_id)

        logger.info("Cancelled order %s", order_id)
        self._bus.publish(
            ORDER_UPDATE,
            OrderUpdate(
                order_id=order.id,
                status=OrderStatus.CANCELLED,
                filled_qty=order.filled_qty,
                avg_price=order.avg_fill_price,
            ),
        )
        return order

    def get_order(self, user_id: int, order_id: int) -> Order | None:
        return self._store.get_order(order_id, user_id)

    def list_orders(self, user_id: int, status: OrderStatus | None = None) -> list[Order]:
        return self._store.list_orders(user_id, status)
