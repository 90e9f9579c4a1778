"""
Configuration loaders.

App config:  reads config.yaml, applies environment overrides for market constants.
Universe:    reads universe.default.json (or override), validates against JSON Schema.
"""

from config.loader import (
    AlertingConfig,
    AppConfig,
    JournalConfig,
    MarketConfig,
    SettlementConfig,
    StoreConfig,
    load_config,
)
from config.universe import (
    AssetClass,
    SymbolSpec,
    Universe,
    UniverseConfigError,
    build_universe,
    load_universe,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "JournalConfig",
    "MarketConfig",
    "SettlementConfig",
    "StoreConfig",
    "load_config",
    # Symbol universe (JSON + schema)
    "AssetClass",
    "SymbolSpec",
    "Universe",
    "UniverseConfigError",
    "build_universe",
    "load_universe",
]
