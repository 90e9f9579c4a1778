"""Event fan-out between the price feed, settlement, and external observers."""

from events.bus import ORDER_CREATED, ORDER_UPDATE, PRICE_UPDATE, EventBus

__all__ = ["EventBus", "ORDER_CREATED", "ORDER_UPDATE", "PRICE_UPDATE"]
