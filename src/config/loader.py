"""
Config loader: YAML file -> frozen dataclass tree.

Runtime-tunable market constants may be overridden from the environment
(PRICE_TICK_INTERVAL in milliseconds, PRICE_NOISE_FACTOR).
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class MarketConfig:
    tick_interval_ms: int = 1000
    noise_factor: float = 0.001
    universe_path: str | None = None


@dataclass(frozen=True)
class StoreConfig:
    path: str = "data/trading.db"


@dataclass(frozen=True)
class SettlementConfig:
    max_workers: int = 4


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class AppConfig:
    market: MarketConfig = MarketConfig()
    store: StoreConfig = StoreConfig()
    settlement: SettlementConfig = SettlementConfig()
    journal: JournalConfig = JournalConfig()
    alerting: AlertingConfig = AlertingConfig()


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    Environment overrides:
      - PRICE_TICK_INTERVAL  (milliseconds between price ticks)
      - PRICE_NOISE_FACTOR   (scalar applied to per-symbol volatility)
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    m_raw = raw.get("market") or {}
    tick_interval_ms = int(os.environ.get("PRICE_TICK_INTERVAL", m_raw.get("tick_interval_ms", 1000)))
    noise_factor = float(os.environ.get("PRICE_NOISE_FACTOR", m_raw.get("noise_factor", 0.001)))
    if tick_interval_ms <= 0:
        raise ValueError(f"market.tick_interval_ms must be positive, got {tick_interval_ms}")
    if noise_factor < 0:
        raise ValueError(f"market.noise_factor must be >= 0, got {noise_factor}")
    universe_path = m_raw.get("universe_path")
    market_cfg = MarketConfig(
        tick_interval_ms=tick_interval_ms,
        noise_factor=noise_factor,
        universe_path=str(universe_path) if universe_path else None,
    )

    s_raw = raw.get("store") or {}
    store_cfg = StoreConfig(path=str(s_raw.get("path", "data/trading.db")))

    st_raw = raw.get("settlement") or {}
    max_workers = int(st_raw.get("max_workers", 4))
    if max_workers < 1:
        raise ValueError(f"settlement.max_workers must be >= 1, got {max_workers}")
    settlement_cfg = SettlementConfig(max_workers=max_workers)

    j_raw = raw.get("journal") or {}
    j_cfg = JournalConfig(
        path=j_raw.get("path", "data/journal.jsonl"),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    a_raw = raw.get("alerting") or {}
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=str(a_raw.get("webhook_url", "")),
    )

    return AppConfig(
        market=market_cfg,
        store=store_cfg,
        settlement=settlement_cfg,
        journal=j_cfg,
        alerting=a_cfg,
    )
