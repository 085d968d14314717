"""Trade persistence and deduplication."""

from .models import BatchResult, PersistResult, TradeRecord
from .mapping import map_raw_trade, map_side
from .repository import TradeStore

__all__ = [
    "TradeStore",
    "TradeRecord",
    "PersistResult",
    "BatchResult",
    "map_raw_trade",
    "map_side",
]
