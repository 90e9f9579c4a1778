"""PriceState and PriceTick for the simulated feed."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class PriceState:
    """Mutable walk state for one symbol. Owned by the price generator."""

    symbol: str
    base_price: float
    current_price: float
    trend: float
    volatility: float


@dataclass(frozen=True)
class PriceTick:
    symbol: str
    price: float
    timestamp: datetime
    change: float
    change_percent: float

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "ts": self.timestamp.isoformat(),
            "change": self.change,
            "change_percent": self.change_percent,
        }
