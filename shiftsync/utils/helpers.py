"""Datetime helpers shared by the expander, splitter and storage layers."""

import logging
from datetime import datetime
from typing import Optional

import pytz

logger = logging.getLogger(__name__)


def get_timezone_aware_now(user_timezone: Optional[str] = None) -> datetime:
    """Get current datetime with timezone awareness.

    Args:
        user_timezone: Optional timezone name (e.g. 'Europe/Berlin'). Defaults to UTC.

    Returns:
        Current datetime in the requested timezone
    """
    utc_now = datetime.now(pytz.utc)
    if user_timezone is None:
        return utc_now
    return utc_now.astimezone(pytz.timezone(user_timezone))


def to_wall_clock(dt: datetime, tz_name: str) -> datetime:
    """Convert an aware datetime to naive wall-clock time in ``tz_name``.

    Naive (floating) datetimes already are wall-clock time and pass through.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.timezone(tz_name)).replace(tzinfo=None)


def localize_wall_clock(dt: datetime, tzinfo) -> datetime:
    """Attach ``tzinfo`` to a naive wall-clock datetime.

    Works for both pytz zones (which need ``localize``) and zoneinfo/dateutil
    zones. A ``None`` zone keeps the datetime floating.
    """
    if tzinfo is None:
        return dt
    localize = getattr(tzinfo, "localize", None)
    if localize is not None:
        return localize(dt)
    return dt.replace(tzinfo=tzinfo)
