"""
CLI entry point: trade seed | run | prices | history | order | orders | status | health.

Every command loads config from --config (default config.yaml) and talks to
the same SQLite store the running simulation uses.
"""

import logging
import sys
from datetime import datetime, timezone

import click
from dotenv import load_dotenv

from config import load_config

load_dotenv()

logger = logging.getLogger("trade")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _resolve_user(store, user: str) -> int:
    """Accept a numeric user id or a username."""
    if user.isdigit():
        return int(user)
    found = store.get_user_by_name(user)
    if found is None:
        click.echo(f"Error [NOT_FOUND]: User {user!r} not found", err=True)
        raise SystemExit(1)
    return found.id


def _parse_utc(value: str | None) -> datetime | None:
    """ISO timestamp -> aware UTC. A naive value is taken as UTC; an offset is converted."""
    if value is None:
        return None
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _fail(exc) -> None:
    click.echo(f"Error [{exc.code}]: {exc}", err=True)
    raise SystemExit(1)


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """trade: simulated market feed, order settlement and position ledger. No real money."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- trade seed ----------


@cli.command()
@click.option("--days", default=7, show_default=True, help="Days of minute-level history per symbol.")
@click.pass_context
def seed(ctx: click.Context, days: int) -> None:
    """Create demo users and synthetic price history."""
    cfg = load_config(ctx.obj["config_path"])
    from config.universe import load_universe
    from data.store import TradingStore
    from market.history import seed_demo

    universe = load_universe(cfg.market.universe_path)
    store = TradingStore(cfg.store.path)
    click.echo(f"Seeding {len(universe)} symbols x {days} day(s) into {cfg.store.path} ...")
    counts = seed_demo(store, universe, days)
    click.echo(f"Created {counts['users']} user(s), inserted {counts['prices']} price record(s).")


# ---------- trade run ----------


@cli.command()
@click.option("--seconds", default=None, type=float, help="Stop after this many seconds (default: run until Ctrl+C).")
@click.pass_context
def run(ctx: click.Context, seconds: float | None) -> None:
    """Run the price feed and order settlement."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.runner import run_simulation

    run_simulation(cfg, seconds)


# ---------- trade prices / history ----------


@cli.command()
@click.pass_context
def prices(ctx: click.Context) -> None:
    """Show the latest price for every symbol."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_prices
    from cli.runner import build_services

    services = build_services(cfg, journal=False)
    services.settlement.shutdown()
    click.echo(format_prices(services.generator.get_current_prices()))


@cli.command()
@click.argument("symbol")
@click.option("--start", "start_str", default=None, help="Start time (ISO, e.g. 2024-01-01T09:30; UTC unless an offset is given).")
@click.option("--end", "end_str", default=None, help="End time (ISO).")
@click.option("--limit", default=20, show_default=True, help="Maximum rows.")
@click.pass_context
def history(ctx: click.Context, symbol: str, start_str: str | None, end_str: str | None, limit: int) -> None:
    """Show stored price history for SYMBOL."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_history
    from data.store import TradingStore

    store = TradingStore(cfg.store.path)
    since = _parse_utc(start_str)
    until = _parse_utc(end_str)
    rows = store.price_history(symbol.upper(), since=since, until=until, limit=limit)
    click.echo(format_history(symbol.upper(), rows))


# ---------- trade order place / cancel ----------


@cli.group()
def order() -> None:
    """Place or cancel orders."""


@order.command("place")
@click.argument("user")
@click.argument("symbol")
@click.argument("side", type=click.Choice(["buy", "sell"]))
@click.argument("qty", type=float)
@click.option("--type", "order_type", default="market", type=click.Choice(["market", "limit"]), show_default=True)
@click.option("--price", default=None, type=float, help="Limit price (limit orders only).")
@click.pass_context
def order_place(
    ctx: click.Context,
    user: str,
    symbol: str,
    side: str,
    qty: float,
    order_type: str,
    price: float | None,
) -> None:
    """Place an order. Market orders settle against the latest price before returning."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_order
    from cli.runner import build_services
    from execution.errors import TradingError
    from execution.models import OrderRequest

    services = build_services(cfg)
    user_id = _resolve_user(services.store, user)
    request = OrderRequest(symbol=symbol.upper(), side=side, order_type=order_type, qty=qty, price=price)
    try:
        placed = services.settlement.create_order(user_id, request)
    except TradingError as exc:
        services.settlement.shutdown()
        _fail(exc)
    services.settlement.shutdown()

    click.echo("Order placed:")
    click.echo(format_order(services.store.get_order(placed.id)))


@order.command("cancel")
@click.argument("user")
@click.argument("order_id", type=int)
@click.pass_context
def order_cancel(ctx: click.Context, user: str, order_id: int) -> None:
    """Cancel an open order."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_order
    from cli.runner import build_services
    from execution.errors import TradingError

    services = build_services(cfg)
    user_id = _resolve_user(services.store, user)
    try:
        cancelled = services.settlement.cancel_order(user_id, order_id)
    except TradingError as exc:
        _fail(exc)
    finally:
        services.settlement.shutdown()
    click.echo("Order cancelled:")
    click.echo(format_order(cancelled))


# ---------- trade orders / status ----------


@cli.command()
@click.argument("user")
@click.option("--status", "status_str", default=None, type=click.Choice(["open", "partial", "filled", "cancelled"]))
@click.pass_context
def orders(ctx: click.Context, user: str, status_str: str | None) -> None:
    """List a user's orders, newest first."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_orders
    from data.store import TradingStore
    from execution.models import OrderStatus

    store = TradingStore(cfg.store.path)
    user_id = _resolve_user(store, user)
    status = OrderStatus(status_str) if status_str else None
    click.echo(format_orders(store.list_orders(user_id, status)))


@cli.command()
@click.argument("user")
@click.pass_context
def status(ctx: click.Context, user: str) -> None:
    """Show cash, positions valued at the latest prices, and unrealized P&L."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_account
    from cli.runner import build_services
    from execution.errors import TradingError

    services = build_services(cfg, journal=False)
    user_id = _resolve_user(services.store, user)
    try:
        snapshot = services.accounts.get_account_snapshot(user_id)
    except TradingError as exc:
        _fail(exc)
    finally:
        services.settlement.shutdown()
    click.echo(format_account(snapshot))


# ---------- trade health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, symbol universe, store access.

    Exit code 0 = healthy, 1 = unhealthy.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (tick {cfg.market.tick_interval_ms}ms)"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        from config.universe import load_universe
        universe = load_universe(cfg.market.universe_path)
        checks.append(("universe", True, f"validated ({len(universe)} symbols)"))
    except Exception as e:
        checks.append(("universe", False, str(e)))

    try:
        from data.store import TradingStore
        store = TradingStore(cfg.store.path)
        checks.append(("store", True, f"opened {store.path}"))
    except Exception as e:
        checks.append(("store", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
