"""Window-based trade synchronization against the broker trade-search API."""

from .service import SyncMode, SyncResult, TradeSyncService
from .windows import SyncWindow, format_timestamp, month_to_date_window, trailing_window

__all__ = [
    "TradeSyncService",
    "SyncMode",
    "SyncResult",
    "SyncWindow",
    "format_timestamp",
    "month_to_date_window",
    "trailing_window",
]
