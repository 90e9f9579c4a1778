"""
Synthetic price feed: biased random walk per symbol, one batch per tick.

Each tick:
  shock  = uniform(-1, 1) * volatility * noise_factor
  drift  = trend * 0.001
  price  = max(0.01, price * (1 + drift + shock))
  trend  = trend * 0.95 + (random() - 0.5) * 0.1

All symbols advance together and the new snapshot replaces the old one in a
single assignment, so readers never see two tick generations mixed.
"""

from __future__ import annotations

import logging
import random
import threading
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from config.universe import Universe
from events.bus import PRICE_UPDATE, EventBus
from market.models import PriceState, PriceTick
from market.volatility import volatility_for

logger = logging.getLogger("trade.prices")

PRICE_FLOOR = 0.01
TREND_DRIFT = 0.001
TREND_DECAY = 0.95
TREND_KICK = 0.1


class PriceHistory(Protocol):
    def latest_price(self, symbol: str) -> float | None: ...

    def append_prices(self, ticks: list[PriceTick]) -> None: ...


class PriceGenerator:
    """
    Owns PriceState for every symbol in the universe and emits PriceTick batches
    on ``price_update``. Start/stop toggle a background timer thread; ``tick()``
    can also be driven directly.
    """

    def __init__(
        self,
        universe: Universe,
        bus: EventBus,
        *,
        history: PriceHistory | None = None,
        tick_interval_ms: int = 1000,
        noise_factor: float = 0.001,
        rng: Any = None,
    ) -> None:
        if tick_interval_ms <= 0:
            raise ValueError(f"tick_interval_ms must be positive, got {tick_interval_ms}")
        self._universe = universe
        self._bus = bus
        self._history = history
        self._interval_s = tick_interval_ms / 1000.0
        self._noise_factor = noise_factor
        self._rng = rng or random.Random()

        self._states: dict[str, PriceState] = {}
        self._snapshot: Mapping[str, float] = {}
        self._tick_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._ticks_emitted = 0

        self._init_states()

    def _init_states(self) -> None:
        for spec in self._universe:
            seed = None
            if self._history is not None:
                seed = self._history.latest_price(spec.symbol)
            price = seed if seed is not None and seed > 0 else spec.fallback_price
            self._states[spec.symbol] = PriceState(
                symbol=spec.symbol,
                base_price=price,
                current_price=price,
                trend=0.0,
                volatility=volatility_for(spec),
            )
        self._snapshot = {s: st.current_price for s, st in self._states.items()}
        logger.info("Price generator initialized for %d symbols", len(self._states))

    # -- readers ---------------------------------------------------------

    def get_current_price(self, symbol: str) -> float | None:
        return self._snapshot.get(symbol)

    def get_current_prices(self) -> dict[str, float]:
        return dict(self._snapshot)

    def get_state(self, symbol: str) -> PriceState | None:
        st = self._states.get(symbol)
        if st is None:
            return None
        return PriceState(st.symbol, st.base_price, st.current_price, st.trend, st.volatility)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def ticks_emitted(self) -> int:
        return self._ticks_emitted

    # -- generation ------------------------------------------------------

    def _advance(self, state: PriceState, now: datetime) -> PriceTick:
        random_walk = (self._rng.random() - 0.5) * 2
        drift = state.trend * TREND_DRIFT
        shock = random_walk * state.volatility * self._noise_factor
        new_price = max(PRICE_FLOOR, state.current_price * (1 + drift + shock))

        state.trend = state.trend * TREND_DECAY + (self._rng.random() - 0.5) * TREND_KICK
        state.current_price = new_price

        change = new_price - state.base_price
        change_percent = change / state.base_price * 100
        return PriceTick(
            symbol=state.symbol,
            price=round(new_price, 2),
            timestamp=now,
            change=round(change, 2),
            change_percent=round(change_percent, 2),
        )

    def tick(self) -> list[PriceTick]:
        """Advance every symbol once, persist the batch, and publish it."""
        with self._tick_lock:
            return self._tick_locked()

    def _tick_locked(self) -> list[PriceTick]:
        now = datetime.now(timezone.utc)
        ticks = [self._advance(state, now) for state in self._states.values()]
        self._snapshot = {s: st.current_price for s, st in self._states.items()}

        if self._history is not None:
            try:
                self._history.append_prices(ticks)
            except Exception as exc:
                logger.error("Failed to persist price batch: %s", exc)

        self._ticks_emitted += 1
        self._bus.publish(PRICE_UPDATE, ticks)
        return ticks

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        with self._run_lock:
            if self.is_running:
                logger.warning("Price generator is already running")
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="price-generator", daemon=True)
            self._thread.start()
        logger.info("Starting price generator with %dms interval", int(self._interval_s * 1000))

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            with self._tick_lock:
                if self._stop_event.is_set():
                    break
                try:
                    self._tick_locked()
                except Exception:
                    logger.exception("Error generating price ticks")

    def stop(self) -> None:
        """Stop the timer. No tick is emitted by the timer once this returns."""
        with self._run_lock:
            self._stop_event.set()
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        logger.info("Price generator stopped")
