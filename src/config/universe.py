"""
Symbol universe loader: JSON file -> frozen dataclass tree, validated against JSON Schema.

Default table:  docs/config/universe.default.json
Schema:         docs/config/universe.schema.json

Each entry names a tradable symbol, its asset class (which selects the
volatility band of the simulated walk), the fallback price used when no
price history exists, and an optional per-symbol volatility override.

Usage:
    from config.universe import load_universe
    universe = load_universe()                  # loads default table
    universe = load_universe("my_symbols.json")
    universe.get("AAPL").fallback_price  # -> 172.32
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

import jsonschema

logger = logging.getLogger("trade.config")


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml.

    Falls back to CWD when installed as a package and no pyproject.toml
    is reachable.
    """
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_UNIVERSE_PATH = _PROJECT_ROOT / "docs" / "config" / "universe.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "universe.schema.json"


class AssetClass(str, Enum):
    """Volatility band of a symbol."""

    EQUITY = "equity"
    CRYPTO = "crypto"
    FOREX = "forex"
    COMMODITY = "commodity"
    INDEX = "index"


@dataclass(frozen=True)
class SymbolSpec:
    symbol: str
    asset_class: AssetClass
    fallback_price: float
    volatility: float | None = None  # overrides the asset-class band


@dataclass(frozen=True)
class Universe:
    """Ordered, immutable set of tradable symbols."""

    symbols: tuple[SymbolSpec, ...]

    def __iter__(self) -> Iterator[SymbolSpec]:
        return iter(self.symbols)

    def __len__(self) -> int:
        return len(self.symbols)

    def __contains__(self, symbol: object) -> bool:
        return any(s.symbol == symbol for s in self.symbols)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(s.symbol for s in self.symbols)

    def get(self, symbol: str) -> SymbolSpec | None:
        for spec in self.symbols:
            if spec.symbol == symbol:
                return spec
        return None


class UniverseConfigError(Exception):
    """Raised when the symbol universe cannot be loaded or fails validation."""


def _validate_schema(data: Any, schema_path: Path) -> None:
    if not schema_path.exists():
        raise UniverseConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise UniverseConfigError(f"Universe validation failed: {exc.message}") from exc


def build_universe(data: dict[str, Any]) -> Universe:
    """Convert a raw (already validated) dict into a Universe."""
    specs: list[SymbolSpec] = []
    seen: set[str] = set()
    for entry in data["symbols"]:
        name = entry["symbol"]
        if name in seen:
            raise UniverseConfigError(f"Duplicate symbol in universe: {name}")
        seen.add(name)
        vol = entry.get("volatility")
        specs.append(
            SymbolSpec(
                symbol=name,
                asset_class=AssetClass(entry["asset_class"]),
                fallback_price=float(entry["fallback_price"]),
                volatility=float(vol) if vol is not None else None,
            )
        )
    return Universe(symbols=tuple(specs))


def load_universe(
    path: str | Path | None = None,
    schema_path: str | Path | None = None,
) -> Universe:
    """Load and validate the symbol universe.

    Raises
    ------
    UniverseConfigError
        If the file is missing, unparseable, or fails schema validation.
    """
    cfg_path = Path(path) if path else DEFAULT_UNIVERSE_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not cfg_path.exists():
        raise UniverseConfigError(f"Universe file not found: {cfg_path}")

    try:
        with open(cfg_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise UniverseConfigError(f"Universe file is not valid JSON: {exc}") from exc

    _validate_schema(data, sch_path)
    universe = build_universe(data)
    logger.debug("Loaded %d symbols from %s", len(universe), cfg_path)
    return universe
