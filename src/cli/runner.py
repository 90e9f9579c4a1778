"""
Service wiring and the simulation run loop.

Builds the store, bus, price generator and settlement engine from config,
hooks the journal and structured log onto the bus, then ticks until the
duration elapses or Ctrl+C.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import click

from config.loader import AppConfig
from config.universe import Universe, load_universe
from data.store import TradingStore
from events.bus import ORDER_CREATED, ORDER_UPDATE, EventBus
from execution.account import AccountService
from execution.locks import SymbolLocks
from execution.settlement import SettlementEngine
from journal.writer import JournalWriter
from market.price_generator import PriceGenerator

logger = logging.getLogger("trade.runner")

STATUS_EVERY_SECONDS = 10.0


@dataclass
class Services:
    universe: Universe
    store: TradingStore
    bus: EventBus
    generator: PriceGenerator
    settlement: SettlementEngine
    accounts: AccountService
    journal: JournalWriter | None = None

    def start(self) -> None:
        self.settlement.attach()
        self.generator.start()

    def stop(self) -> None:
        self.generator.stop()
        self.settlement.shutdown()


def build_services(
    cfg: AppConfig,
    *,
    universe: Universe | None = None,
    rng: Any = None,
    journal: bool = True,
) -> Services:
    universe = universe or load_universe(cfg.market.universe_path)
    store = TradingStore(cfg.store.path)
    bus = EventBus()
    generator = PriceGenerator(
        universe,
        bus,
        history=store,
        tick_interval_ms=cfg.market.tick_interval_ms,
        noise_factor=cfg.market.noise_factor,
        rng=rng,
    )
    settlement = SettlementEngine(
        store,
        generator,
        bus,
        SymbolLocks(universe.names),
        max_workers=cfg.settlement.max_workers,
    )
    writer = None
    if journal:
        writer = JournalWriter(cfg.journal.path, echo_stdout=cfg.journal.echo_stdout)
        bus.subscribe(ORDER_CREATED, "journal", writer.order_created)
        bus.subscribe(ORDER_UPDATE, "journal", writer.order_update)
    return Services(
        universe=universe,
        store=store,
        bus=bus,
        generator=generator,
        settlement=settlement,
        accounts=AccountService(store, generator),
        journal=writer,
    )


def run_simulation(cfg: AppConfig, seconds: float | None = None) -> int:
    """
    Run the price feed and settlement until *seconds* elapse (forever if None).
    Ctrl+C for graceful shutdown. Returns the number of tick batches emitted.
    """
    from cli.structured_log import StructuredEventLogger

    services = build_services(cfg)
    events = StructuredEventLogger(
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )
    events.attach(services.bus)

    click.echo(
        f"Simulation started: {len(services.universe)} symbols, "
        f"{cfg.market.tick_interval_ms}ms ticks  |  Ctrl+C to stop"
    )
    started = time.monotonic()
    last_status = started
    services.start()
    try:
        while seconds is None or time.monotonic() - started < seconds:
            time.sleep(min(0.25, cfg.market.tick_interval_ms / 1000.0))
            now = time.monotonic()
            if now - last_status >= STATUS_EVERY_SECONDS:
                click.echo(f"  ... {services.generator.ticks_emitted} tick(s) emitted")
                last_status = now
    except KeyboardInterrupt:
        click.echo("\nInterrupted.")
    finally:
        services.stop()
        ticks = services.generator.ticks_emitted
        events.shutdown(ticks)
        events.detach(services.bus)
        events.close()

    click.echo(f"Shutting down after {ticks} tick(s). Goodbye.")
    return ticks
