"""Tests for account views: position valuation, snapshot totals, order history."""

import pytest

from conftest import StaticPrices, give_position
from data.store import TradingStore
from execution.account import AccountService, value_position
from execution.errors import UserNotFound
from execution.models import OrderSide, OrderType


@pytest.fixture
def accounts(store: TradingStore, prices: StaticPrices) -> AccountService:
    return AccountService(store, prices)


def test_flat_account(accounts: AccountService, rich_user: int) -> None:
    snap = accounts.get_account_snapshot(rich_user)
    assert snap.cash == 100_000.0
    assert snap.total_value == 100_000.0
    assert snap.daily_pnl == 0.0
    assert snap.positions == []


def test_snapshot_values_positions(accounts: AccountService, store: TradingStore, rich_user: int) -> None:
    give_position(store, rich_user, "AAPL", 10, 140.0)
    give_position(store, rich_user, "EUR-USD", 1000, 1.10)
    snap = accounts.get_account_snapshot(rich_user)

    by_symbol = {p.symbol: p for p in snap.positions}
    assert by_symbol["AAPL"].value == pytest.approx(1500.0)
    assert by_symbol["AAPL"].unrealized_pnl == pytest.approx(100.0)
    assert by_symbol["EUR-USD"].value == pytest.approx(1090.0)
    assert by_symbol["EUR-USD"].unrealized_pnl == pytest.approx(-10.0)
    assert snap.total_value == pytest.approx(100_000.0 + 1500.0 + 1090.0)
    assert snap.daily_pnl == pytest.approx(90.0)


def test_fills_do_not_move_cash(accounts: AccountService, store: TradingStore, rich_user: int) -> None:
    give_position(store, rich_user, "AAPL", 10, 140.0)
    assert accounts.get_account_snapshot(rich_user).cash == 100_000.0


def test_unpriced_symbol_carried_at_cost(store: TradingStore, rich_user: int) -> None:
    give_position(store, rich_user, "AAPL", 10, 140.0)
    pos = store.get_position(rich_user, "AAPL")
    valued = value_position(pos, {})
    assert valued.current_price == 140.0
    assert valued.unrealized_pnl == 0.0


def test_get_positions(accounts: AccountService, store: TradingStore, rich_user: int) -> None:
    give_position(store, rich_user, "AAPL", 2, 100.0)
    [p] = accounts.get_positions(rich_user)
    assert p.symbol == "AAPL"
    assert p.current_price == 150.0


def test_unknown_user(accounts: AccountService) -> None:
    with pytest.raises(UserNotFound):
        accounts.get_account_snapshot(404)


def test_transaction_history_paginates_newest_first(
    accounts: AccountService, store: TradingStore, rich_user: int
) -> None:
    with store.session() as s:
        ids = [s.create_order(rich_user, "AAPL", OrderSide.BUY, OrderType.LIMIT, 1, 100.0 + i).id for i in range(5)]
    page = accounts.get_transaction_history(rich_user, limit=2)
    assert [o.id for o in page] == [ids[4], ids[3]]
    page2 = accounts.get_transaction_history(rich_user, limit=2, offset=2)
    assert [o.id for o in page2] == [ids[2], ids[1]]
