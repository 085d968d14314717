"""Time windows for trade-search requests."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class SyncWindow:
    """Half-open interval [start, end) of broker trade timestamps."""
    start: str
    end: str

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}


def month_to_date_window(now: datetime) -> SyncWindow:
    """[first day of the current UTC month 00:00, now)"""
    now = now.astimezone(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return SyncWindow(format_timestamp(month_start), format_timestamp(now))


def trailing_window(now: datetime, lookback_seconds: float) -> SyncWindow:
    """[now - lookback, now)"""
    return SyncWindow(format_timestamp(now - timedelta(seconds=lookback_seconds)), format_timestamp(now))
