"""Tests for CLI commands using click CliRunner. No network; temp store and journal."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from cli.main import cli
from cli.runner import build_services, run_simulation
from config import load_config


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a temp config.yaml pointing the store and journal into tmp_path."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
market:
  tick_interval_ms: 20
  noise_factor: 0.001
store:
  path: "{tmp_path / 'trading.db'}"
settlement:
  max_workers: 2
journal:
  path: "{tmp_path / 'journal.jsonl'}"
  echo_stdout: false
alerting:
  structured_logs: false
  webhook_url: ""
"""
    )
    return config_path


@pytest.fixture
def seeded(tmp_config: Path) -> Path:
    result = CliRunner().invoke(cli, ["--config", str(tmp_config), "seed", "--days", "3"])
    assert result.exit_code == 0, result.output
    return tmp_config


def _invoke(config: Path, *args: str):
    return CliRunner().invoke(cli, ["--config", str(config), *args])


def test_cli_seed(tmp_config: Path) -> None:
    result = _invoke(tmp_config, "seed", "--days", "3")
    assert result.exit_code == 0, result.output
    assert "Created 2 user(s)" in result.output


def test_cli_status(seeded: Path) -> None:
    result = _invoke(seeded, "status", "demo_user")
    assert result.exit_code == 0, result.output
    assert "Account Status" in result.output
    assert "100,000.00" in result.output
    assert "(flat)" in result.output


def test_cli_status_unknown_user(seeded: Path) -> None:
    result = _invoke(seeded, "status", "nobody")
    assert result.exit_code == 1
    assert "NOT_FOUND" in result.output


def test_cli_market_order_fills(seeded: Path, tmp_path: Path) -> None:
    result = _invoke(seeded, "order", "place", "demo_user", "AAPL", "buy", "2")
    assert result.exit_code == 0, result.output
    assert "Order placed" in result.output
    assert "[filled]" in result.output

    status = _invoke(seeded, "status", "demo_user")
    assert "AAPL" in status.output
    assert "qty 2" in status.output

    events = [json.loads(line)["event"] for line in (tmp_path / "journal.jsonl").read_text().splitlines()]
    assert events == ["order_created", "order_update"]


def test_cli_limit_order_then_cancel(seeded: Path) -> None:
    placed = _invoke(seeded, "order", "place", "demo_user", "AAPL", "buy", "1", "--type", "limit", "--price", "1")
    assert placed.exit_code == 0, placed.output
    assert "[open]" in placed.output

    listed = _invoke(seeded, "orders", "demo_user", "--status", "open")
    assert "#1" in listed.output

    cancelled = _invoke(seeded, "order", "cancel", "demo_user", "1")
    assert cancelled.exit_code == 0, cancelled.output
    assert "[cancelled]" in cancelled.output

    again = _invoke(seeded, "order", "cancel", "demo_user", "1")
    assert again.exit_code == 1
    assert "ORDER_NOT_FOUND" in again.output


def test_cli_sell_without_position(seeded: Path) -> None:
    result = _invoke(seeded, "order", "place", "demo_user", "AAPL", "sell", "5")
    assert result.exit_code == 1
    assert "INVALID_ORDER" in result.output
    assert "Insufficient position" in result.output


def test_cli_insufficient_funds(seeded: Path) -> None:
    result = _invoke(seeded, "order", "place", "test_user", "BTC-USD", "buy", "100")
    assert result.exit_code == 1
    assert "INSUFFICIENT_FUNDS" in result.output


def test_cli_prices(seeded: Path) -> None:
    result = _invoke(seeded, "prices")
    assert result.exit_code == 0, result.output
    assert "Current Prices" in result.output
    assert "AAPL" in result.output


def test_cli_history(seeded: Path) -> None:
    result = _invoke(seeded, "history", "aapl", "--limit", "5")
    assert result.exit_code == 0, result.output
    assert "AAPL" in result.output


def test_cli_health(tmp_config: Path) -> None:
    result = _invoke(tmp_config, "health")
    assert result.exit_code == 0, result.output
    assert "HEALTHY" in result.output
    assert "32 symbols" in result.output


def test_cli_health_missing_config(tmp_path: Path) -> None:
    result = _invoke(tmp_path / "nope.yaml", "health")
    assert result.exit_code == 1
    assert "UNHEALTHY" in result.output


def test_run_simulation_short(seeded: Path) -> None:
    ticks = run_simulation(load_config(seeded), seconds=0.3)
    assert ticks >= 1


def test_limit_order_fills_on_tick(seeded: Path) -> None:
    services = build_services(load_config(seeded), journal=False)
    user = services.store.get_user_by_name("demo_user")
    price = services.generator.get_current_price("AAPL")
    from execution.models import OrderRequest, OrderStatus

    order = services.settlement.create_order(user.id, OrderRequest("AAPL", "buy", "limit", 1, price * 2))
    services.settlement.attach()
    services.generator.tick()
    assert services.settlement.wait_idle(timeout=5)
    services.stop()
    assert services.store.get_order(order.id).status == OrderStatus.FILLED


def test_cli_history_converts_offset_to_utc(tmp_config: Path, tmp_path: Path) -> None:
    from data.store import TradingStore

    TradingStore(tmp_path / "trading.db").insert_price_rows(
        [
            ("AAPL", datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc), 150.0),
            ("AAPL", datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc), 151.0),
            ("AAPL", datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc), 152.0),
        ]
    )
    # 10:30+01:00 is 09:30 UTC
    result = _invoke(tmp_config, "history", "AAPL", "--start", "2024-01-02T10:30+01:00", "--end", "2024-01-02T10:45+01:00")
    assert result.exit_code == 0, result.output
    assert "(1 rows)" in result.output
    assert "2024-01-02T09:30:00+00:00" in result.output


def test_parse_utc() -> None:
    from cli.main import _parse_utc

    assert _parse_utc(None) is None
    assert _parse_utc("2024-01-02T09:30") == datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)
    assert _parse_utc("2024-01-02T04:30-05:00") == datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)
    assert _parse_utc("2024-01-02T04:30-05:00").utcoffset() == timedelta(0)
