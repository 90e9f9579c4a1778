"""
Human-readable terminal output for the CLI.
"""

from __future__ import annotations

from datetime import datetime

from execution.account import AccountSnapshot
from execution.models import Order


def _fmt_price(price: float | None) -> str:
    if price is None:
        return "-"
    if price < 10:
        return f"{price:.4f}"
    return f"{price:,.2f}"


def format_prices(prices: dict[str, float]) -> str:
    if not prices:
        return "No prices."
    lines = ["--- Current Prices ---"]
    for symbol, price in prices.items():
        lines.append(f"  {symbol:12s} {_fmt_price(price):>14s}")
    return "\n".join(lines)


def format_order(order: Order) -> str:
    limit = f" @ {_fmt_price(order.limit_price)}" if order.limit_price is not None else ""
    fill = f"  avg {_fmt_price(order.avg_fill_price)}" if order.avg_fill_price is not None else ""
    return (
        f"  #{order.id:<5d} {order.side.value:4s} {order.qty:g} {order.symbol} "
        f"{order.order_type.value}{limit}  [{order.status.value}] "
        f"filled {order.filled_qty:g}/{order.qty:g}{fill}"
    )


def format_orders(orders: list[Order]) -> str:
    if not orders:
        return "No orders."
    return "\n".join(format_order(o) for o in orders)


def format_account(snapshot: AccountSnapshot) -> str:
    lines = [
        f"=== Account Status (user {snapshot.user_id}) ===",
        f"Cash         : {snapshot.cash:,.2f}",
        f"Total value  : {snapshot.total_value:,.2f}",
        f"Unrealized   : {snapshot.daily_pnl:+,.2f}",
    ]
    if not snapshot.positions:
        lines.append("Positions    : (flat)")
        return "\n".join(lines)
    lines.append("Positions    :")
    for p in snapshot.positions:
        lines.append(
            f"  {p.symbol:12s} qty {p.qty:g}  avg {_fmt_price(p.avg_price)}  "
            f"last {_fmt_price(p.current_price)}  value {p.value:,.2f}  P&L {p.unrealized_pnl:+,.2f}"
        )
    return "\n".join(lines)


def format_history(symbol: str, rows: list[tuple[datetime, float]]) -> str:
    if not rows:
        return f"No price history for {symbol}."
    lines = [f"--- {symbol} price history ({len(rows)} rows) ---"]
    for ts, price in rows:
        lines.append(f"  {ts.isoformat()}  {_fmt_price(price)}")
    return "\n".join(lines)
