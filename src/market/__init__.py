"""
Simulated market: per-symbol random-walk prices published as tick batches.
No real market data.
"""

from market.models import PriceState, PriceTick
from market.price_generator import PriceGenerator
from market.volatility import volatility_for

__all__ = ["PriceGenerator", "PriceState", "PriceTick", "volatility_for"]
