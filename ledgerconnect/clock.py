"""Time helpers shared by models and projections.

Event timestamps are always stored timezone-aware. A naive datetime coming in
from a caller is taken to be wall-clock time in the configured ledger
timezone. Calendar-day bucketing always converts to that same timezone first.
"""

from datetime import date, datetime, tzinfo
from typing import Optional

from ledgerconnect.config import get_settings


def ledger_tz() -> tzinfo:
    """Return the timezone used for local calendar days."""
    return get_settings().tzinfo


def now(tz: Optional[tzinfo] = None) -> datetime:
    return datetime.now(tz or ledger_tz())


def ensure_aware(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach the ledger timezone to a naive datetime; leave aware ones alone."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=tz or ledger_tz())
    return value


def local_date(value: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of ``value`` in local time (not the UTC date)."""
    return ensure_aware(value, tz).astimezone(tz or ledger_tz()).date()
