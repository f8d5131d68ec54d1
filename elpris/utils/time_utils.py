"""
Time utility functions for market-local dates and hours.
Each market works in its own time zone (Europe/Oslo, Europe/Copenhagen, Europe/Stockholm).
"""

from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

import pytz

from elpris.markets import TOMORROW_PUBLISH_HOUR, MarketProfile


def market_now(profile: MarketProfile, reference_time: Optional[datetime] = None) -> datetime:
    """
    Get the current time in the market's time zone.

    Args:
        profile: Market whose time zone is used
        reference_time: Reference datetime. If None, uses the current time.
            A timezone-naive value is assumed to already be market-local.

    Returns:
        Timezone-aware datetime in the market's time zone
    """
    market_tz = pytz.timezone(profile.timezone)

    if reference_time is None:
        return datetime.now(market_tz)
    if reference_time.tzinfo is None:
        return market_tz.localize(reference_time)
    return reference_time.astimezone(market_tz)


def is_tomorrow_available(now: datetime) -> bool:
    """Tomorrow's prices are published from 13:00 market-local time."""
    return now.hour >= TOMORROW_PUBLISH_HOUR


def available_dates(now: datetime) -> List[Tuple[str, date, bool]]:
    """
    Quick-pick dates for the date selector as (key, date, enabled) tuples.

    Examples (market-local time):
        - 12:30 -> yesterday, today enabled; tomorrow disabled
        - 13:00 -> yesterday, today, tomorrow enabled
    """
    today = now.date()
    return [
        ("yesterday", today - timedelta(days=1), True),
        ("today", today, True),
        ("tomorrow", today + timedelta(days=1), is_tomorrow_available(now)),
    ]


def is_current_hour(hour: int, selected_date: date, now: datetime) -> bool:
    """True when the bar's hour is the live clock hour and the selected date is today."""
    return hour == now.hour and selected_date == now.date()


def should_refresh_on_resume(last_pause: Optional[datetime], now: datetime) -> bool:
    """
    Decide whether a chart should reload when a client comes back.

    A first start (no previous pause) never refreshes. Otherwise refresh when
    more than an hour has passed or the wall-clock hour has changed.
    """
    if last_pause is None:
        return False
    if now - last_pause > timedelta(hours=1):
        return True
    return now.hour != last_pause.hour


def get_next_refresh_time(now: datetime, minute: int = 0) -> datetime:
    """
    Get the next hourly refresh time after now.

    Examples (minute=0):
        - 12:00 -> 13:00
        - 12:05 -> 13:00
        - 12:59 -> 13:00
    """
    candidate = now.replace(minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(hours=1)
    return candidate
