"""
Persistence: SQLite record store for users, orders, positions and price history.

Depends on execution.models and market.models for record types; neither depends back on data.
"""

from data.store import StoreSession, TradingStore

__all__ = ["StoreSession", "TradingStore"]
