"""Live fan-out of newly persisted trades."""

from .hub import NEW_TRADE_EVENT, BroadcastHub, Subscription

__all__ = ["BroadcastHub", "Subscription", "NEW_TRADE_EVENT"]
