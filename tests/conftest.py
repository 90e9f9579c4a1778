"""Pytest fixtures: small universe, temp store, seeded users, controllable prices."""

from pathlib import Path

import pytest

from config.universe import AssetClass, SymbolSpec, Universe
from data.store import TradingStore
from events.bus import ORDER_UPDATE, EventBus
from execution.ledger import PositionLedger
from execution.locks import SymbolLocks
from execution.models import OrderSide
from execution.settlement import SettlementEngine


class ConstantRandom:
    """random.Random stand-in that always returns the same draw."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


class StaticPrices:
    """Settable price source for settlement tests."""

    def __init__(self, prices: dict[str, float] | None = None) -> None:
        self.prices = dict(prices or {})

    def get_current_price(self, symbol: str) -> float | None:
        return self.prices.get(symbol)

    def get_current_prices(self) -> dict[str, float]:
        return dict(self.prices)


@pytest.fixture
def universe() -> Universe:
    return Universe(
        symbols=(
            SymbolSpec("AAPL", AssetClass.EQUITY, 150.0),
            SymbolSpec("BTC-USD", AssetClass.CRYPTO, 43_250.0),
            SymbolSpec("EUR-USD", AssetClass.FOREX, 1.085),
            SymbolSpec("VIX", AssetClass.INDEX, 18.5, volatility=0.08),
        )
    )


@pytest.fixture
def store(tmp_path: Path) -> TradingStore:
    return TradingStore(tmp_path / "trading.db")


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def order_events(bus: EventBus) -> list:
    captured: list = []
    bus.subscribe(ORDER_UPDATE, "test", captured.append)
    return captured


@pytest.fixture
def rich_user(store: TradingStore) -> int:
    return store.create_user("rich", 100_000.0).id


@pytest.fixture
def poor_user(store: TradingStore) -> int:
    return store.create_user("poor", 1_000.0).id


@pytest.fixture
def prices() -> StaticPrices:
    return StaticPrices({"AAPL": 150.0, "BTC-USD": 43_250.0, "EUR-USD": 1.09, "VIX": 18.5})


@pytest.fixture
def engine(store: TradingStore, prices: StaticPrices, bus: EventBus, universe: Universe):
    eng = SettlementEngine(store, prices, bus, SymbolLocks(universe.names), max_workers=4)
    yield eng
    eng.shutdown()


def give_position(store: TradingStore, user_id: int, symbol: str, qty: float, price: float) -> None:
    with store.session() as s:
        PositionLedger().apply_fill(s, user_id, symbol, OrderSide.BUY, qty, price)
