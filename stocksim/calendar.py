"""
Exchange session clock.

Maps a wall-clock instant to the trading-session state of the Taiwan Stock
Exchange (fixed UTC+8, regular session 09:00-13:30 local, both ends inclusive).
No holiday table is kept; only weekends are closed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum


class MarketStatus(str, Enum):
    OPEN = 'OPEN'
    PRE_MARKET = 'PRE_MARKET'
    CLOSED = 'CLOSED'


@dataclass(frozen=True)
class ExchangeHours:
    """Exchange-local session boundaries, in minutes since midnight."""

    utc_offset_minutes: int = 8 * 60
    open_minute: int = 9 * 60  # 09:00
    close_minute: int = 13 * 60 + 30  # 13:30

    @property
    def tzinfo(self) -> timezone:
        return timezone(timedelta(minutes=self.utc_offset_minutes))


TWSE_HOURS = ExchangeHours()


def _to_utc(now: datetime, timezone_offset_minutes: int) -> datetime:
    """Normalise ``now`` to an aware UTC datetime.

    A naive ``now`` is read as local time ``timezone_offset_minutes`` east of UTC.
    """
    if now.tzinfo is None or now.utcoffset() is None:
        now = now.replace(tzinfo=timezone(timedelta(minutes=timezone_offset_minutes)))
    return now.astimezone(timezone.utc)


def exchange_time(now: datetime, timezone_offset_minutes: int = 0, hours: ExchangeHours = TWSE_HOURS) -> datetime:
    """Convert ``now`` to exchange-local time."""
    return _to_utc(now, timezone_offset_minutes).astimezone(hours.tzinfo)


def is_weekend(dt: datetime) -> bool:
    """Check if datetime falls on Saturday (5) or Sunday (6)."""
    return dt.weekday() >= 5


def session_state(
    now: datetime,
    timezone_offset_minutes: int = 0,
    hours: ExchangeHours = TWSE_HOURS,
) -> MarketStatus:
    """
    Return the session state at ``now``.

    Args:
        now: Instant to classify. Aware datetimes are used as-is.
        timezone_offset_minutes: Offset (minutes east of UTC) for a naive ``now``.
        hours: Exchange session boundaries.

    Returns:
        OPEN inside the regular session, PRE_MARKET before it on a weekday,
        CLOSED after it and all weekend.
    """
    local = exchange_time(now, timezone_offset_minutes, hours)
    if is_weekend(local):
        return MarketStatus.CLOSED

    minute_of_day = local.hour * 60 + local.minute
    if hours.open_minute <= minute_of_day <= hours.close_minute:
        return MarketStatus.OPEN
    if minute_of_day < hours.open_minute:
        return MarketStatus.PRE_MARKET
    return MarketStatus.CLOSED


def is_trading_time(now: datetime, timezone_offset_minutes: int = 0, hours: ExchangeHours = TWSE_HOURS) -> bool:
    """True while the regular session is open."""
    return session_state(now, timezone_offset_minutes, hours) is MarketStatus.OPEN
