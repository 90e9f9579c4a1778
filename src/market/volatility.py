"""Per-symbol noise scale for the random walk, by asset class."""

from config.universe import AssetClass, SymbolSpec

ASSET_CLASS_VOLATILITY: dict[AssetClass, float] = {
    AssetClass.EQUITY: 0.02,
    AssetClass.CRYPTO: 0.05,
    AssetClass.FOREX: 0.01,
    AssetClass.COMMODITY: 0.03,
    AssetClass.INDEX: 0.015,
}

DEFAULT_VOLATILITY = 0.03


def volatility_for(spec: SymbolSpec) -> float:
    """Symbol override if present, else the asset-class band."""
    if spec.volatility is not None:
        return spec.volatility
    return ASSET_CLASS_VOLATILITY.get(spec.asset_class, DEFAULT_VOLATILITY)
