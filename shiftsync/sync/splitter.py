"""Decomposition of an occurrence span into per-day entries."""

from datetime import date, datetime, time, timedelta
from typing import NamedTuple

ALL_DAY_START = "00:00"
END_OF_DAY = "23:59"


class DayEntry(NamedTuple):
    """One calendar day covered by an occurrence."""

    date: date
    start_time: str
    end_time: str
    day_index: int


def _clock(dt: datetime) -> str:
    return dt.strftime("%H:%M")


def split_multi_day_event(start: datetime, end: datetime, is_all_day: bool) -> list[DayEntry]:
    """Split ``[start, end)`` into one entry per calendar day.

    Both instants must be naive wall-clock datetimes. All-day spans treat
    ``end`` as exclusive and produce full-day bounds. For timed spans the
    first day ends at 23:59, the last day starts at 00:00, and an end exactly
    at midnight does not add an entry for that day.
    """
    if is_all_day:
        first = start.date()
        days = max((end.date() - first).days, 1)
        return [
            DayEntry(first + timedelta(days=offset), ALL_DAY_START, END_OF_DAY, offset)
            for offset in range(days)
        ]

    if end <= start:
        return [DayEntry(start.date(), _clock(start), _clock(start), 0)]

    entries = []
    day = start.date()
    while True:
        midnight = datetime.combine(day, time())
        next_midnight = midnight + timedelta(days=1)
        segment_start = max(start, midnight)
        segment_end = min(end, next_midnight)

        entries.append(
            DayEntry(
                day,
                _clock(segment_start),
                END_OF_DAY if segment_end == next_midnight else _clock(segment_end),
                len(entries),
            )
        )

        if end <= next_midnight:
            return entries
        day += timedelta(days=1)
