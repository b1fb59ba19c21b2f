"""RRULE expansion of VEVENT series into concrete, window-bounded occurrences."""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Any, Iterator, Optional

import pytz
from dateutil.relativedelta import relativedelta
from dateutil.rrule import rrulestr, rruleset

from ..utils.helpers import get_timezone_aware_now, localize_wall_clock
from .models import EventSeries, ExpandedOccurrence, RemoteEvent

logger = logging.getLogger(__name__)

WINDOW_PAST = relativedelta(months=3)
WINDOW_FUTURE = relativedelta(months=12)

_UNTIL_RE = re.compile(r"UNTIL=([0-9]{8}(?:T[0-9]{6}Z?)?)", re.IGNORECASE)
_COUNT_RE = re.compile(r"COUNT=([0-9]+)", re.IGNORECASE)


class RRuleExpansionError(Exception):
    """Base exception for RRULE expansion errors."""


class RRuleParseError(RRuleExpansionError):
    """Error parsing RRULE string."""


def sync_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Return the fixed sync window: three months back to twelve months ahead."""
    if now is None:
        now = get_timezone_aware_now()
    elif now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now - WINDOW_PAST, now + WINDOW_FUTURE


def format_recurrence_id(value: Any) -> str:
    """Render a RECURRENCE-ID (or generated instance start) as a stable key.

    Zoned datetimes are keyed by their UTC instant so an override written in
    UTC matches a master written with a TZID.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.strftime("%Y%m%dT%H%M%S")
        return value.astimezone(pytz.utc).strftime("%Y%m%dT%H%M%SZ")
    return value.strftime("%Y%m%d")


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    return None


def _text(component: Any, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _is_recurring(component: Any) -> bool:
    return "RRULE" in component or "RDATE" in component


def _as_list(value: Any) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


class RRuleExpander:
    """Client-side RRULE expansion using python-dateutil.

    Rules are evaluated in the event's own wall-clock time and the event's
    timezone is re-attached to every instance, so a weekly 09:00 shift stays
    at 09:00 across DST changes. Floating and all-day times are compared to
    the window in the configured local timezone.
    """

    def __init__(self, settings: Any):
        """Initialize RRuleExpander with settings.

        Args:
            settings: Application settings; ``timezone`` names the local zone
        """
        self.settings = settings
        self.local_tz = pytz.timezone(getattr(settings, "timezone", "UTC"))

    def read_event(self, component: Any, uid: str) -> Optional[RemoteEvent]:
        """Read the facts of one VEVENT, or None when it lacks a start or end."""
        if "DTSTART" not in component:
            return None

        raw_start = component.decoded("DTSTART")
        start = _as_datetime(raw_start)
        if start is None:
            return None
        is_all_day = not isinstance(raw_start, datetime)

        end = self._resolve_end(component, start, is_all_day)
        if end is None:
            return None

        status = _text(component, "STATUS")
        return RemoteEvent(
            uid=uid,
            summary=_text(component, "SUMMARY"),
            description=_text(component, "DESCRIPTION"),
            start=start,
            end=end,
            is_all_day=is_all_day,
            status=status.upper() if status else None,
        )

    def _resolve_end(
        self, component: Any, start: datetime, is_all_day: bool
    ) -> Optional[datetime]:
        if "DTEND" in component:
            end = _as_datetime(component.decoded("DTEND"))
        elif "DURATION" in component:
            duration = component.decoded("DURATION")
            end = start + duration if isinstance(duration, timedelta) else None
        elif is_all_day:
            # RFC 5545: a date-only DTSTART without DTEND lasts one day
            end = start + timedelta(days=1)
        else:
            end = None

        if end is None:
            return None
        if start.tzinfo is None and end.tzinfo is not None:
            return end.replace(tzinfo=None)
        if start.tzinfo is not None and end.tzinfo is None:
            return localize_wall_clock(end, start.tzinfo)
        return end

    def expand(
        self, series: EventSeries, window_start: datetime, window_end: datetime
    ) -> Iterator[ExpandedOccurrence]:
        """Lazily yield the occurrences of ``series`` starting inside the window.

        Overrides replace the generated instance with the same recurrence id;
        cancelled overrides suppress it.
        """
        master_event = (
            self.read_event(series.master, series.uid) if series.master is not None else None
        )

        if master_event is None:
            if series.master is not None:
                logger.debug(f"Dropping VEVENT {series.uid} without start or end")
        elif not master_event.is_cancelled:
            recurring = _is_recurring(series.master)
            if recurring:
                starts = self._rule_starts(series, master_event, window_start, window_end)
            elif self._in_window(master_event.start, window_start, window_end):
                starts = iter([master_event.start])
            else:
                starts = iter([])

            duration = master_event.end - master_event.start
            for start in starts:
                key = format_recurrence_id(start.date() if master_event.is_all_day else start)
                if key in series.overrides:
                    continue
                yield self._occurrence(
                    master_event,
                    key if recurring else None,
                    start,
                    self._shift(start, duration),
                )

        for key, component in series.overrides.items():
            override = self.read_event(component, series.uid)
            if override is None or override.is_cancelled:
                continue
            if self._in_window(override.start, window_start, window_end):
                yield self._occurrence(override, key, override.start, override.end)

    def _rule_starts(
        self,
        series: EventSeries,
        event: RemoteEvent,
        window_start: datetime,
        window_end: datetime,
    ) -> Iterator[datetime]:
        tzinfo = event.start.tzinfo
        dtstart = event.start.replace(tzinfo=None)

        try:
            rule_set = self._build_rule_set(series.master, dtstart, tzinfo, event.is_all_day)
            instances = rule_set.between(
                self._to_rule_clock(window_start, tzinfo, dtstart),
                self._to_rule_clock(window_end, tzinfo, dtstart),
                inc=True,
            )
        except RRuleExpansionError as e:
            logger.warning(f"Skipping recurrence of {series.uid}: {e}")
            return

        logger.debug(f"RRULE expansion: uid={series.uid} instances={len(instances)}")
        for naive in instances:
            yield localize_wall_clock(naive, tzinfo)

    def _build_rule_set(
        self, component: Any, dtstart: datetime, tzinfo: Any, is_all_day: bool
    ) -> rruleset:
        rule_set = rruleset()
        # DTSTART is always the first instance, even when the rule does not match it
        rule_set.rdate(dtstart)

        for recur in _as_list(component.get("RRULE")):
            rule_text = self._rule_text(recur, tzinfo, is_all_day)
            try:
                rule = rrulestr(rule_text, dtstart=dtstart)
            except (ValueError, TypeError) as e:
                raise RRuleParseError(f"Invalid RRULE '{rule_text}': {e}") from e

            count_match = _COUNT_RE.search(rule_text)
            if count_match and dtstart not in rule:
                # DTSTART is the first of the COUNT instances
                count = int(count_match.group(1))
                if count <= 1:
                    continue
                rule = rule.replace(count=count - 1)
            rule_set.rrule(rule)

        for value in self._date_values(component, "RDATE"):
            rule_set.rdate(self._to_rule_clock(value, tzinfo, dtstart))
        for value in self._date_values(component, "EXDATE"):
            rule_set.exdate(self._to_rule_clock(value, tzinfo, dtstart))

        return rule_set

    def _rule_text(self, recur: Any, tzinfo: Any, is_all_day: bool) -> str:
        """Serialize an RRULE with UNTIL moved into the event's wall-clock time.

        dateutil refuses to mix a naive DTSTART with a UTC UNTIL.
        """
        raw = recur.to_ical() if hasattr(recur, "to_ical") else str(recur)
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw

        match = _UNTIL_RE.search(text)
        if not match:
            return text

        value = match.group(1).upper()
        if len(value) == 8:
            until = datetime.strptime(value, "%Y%m%d")
            if not is_all_day:
                until = until.replace(hour=23, minute=59, second=59)
        else:
            until = datetime.strptime(value[:15], "%Y%m%dT%H%M%S")
            if value.endswith("Z"):
                until = self._to_rule_clock(pytz.utc.localize(until), tzinfo, until)

        return text[: match.start(1)] + until.strftime("%Y%m%dT%H%M%S") + text[match.end(1) :]

    def _date_values(self, component: Any, name: str) -> list:
        values = []
        for entry in _as_list(component.get(name)):
            for item in getattr(entry, "dts", []):
                value = item.dt
                if isinstance(value, tuple):
                    # PERIOD values: the instance starts at the period start
                    value = value[0]
                values.append(value)
        return values

    def _to_rule_clock(self, value: Any, tzinfo: Any, dtstart: datetime) -> datetime:
        """Convert a date or datetime to naive wall-clock time of the event."""
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value
            return value.astimezone(tzinfo or self.local_tz).replace(tzinfo=None)
        return datetime.combine(value, dtstart.time())

    def _in_window(self, start: datetime, window_start: datetime, window_end: datetime) -> bool:
        aware = start if start.tzinfo is not None else self.local_tz.localize(start)
        return window_start <= aware <= window_end

    def _shift(self, start: datetime, duration: timedelta) -> datetime:
        """Add an exact duration to an instance start."""
        if start.tzinfo is None:
            return start + duration
        return (start.astimezone(pytz.utc) + duration).astimezone(start.tzinfo)

    def _occurrence(
        self,
        event: RemoteEvent,
        recurrence_id: Optional[str],
        start: datetime,
        end: datetime,
    ) -> ExpandedOccurrence:
        return ExpandedOccurrence(
            uid=event.uid,
            recurrence_id=recurrence_id,
            summary=event.summary,
            description=event.description,
            start=start,
            end=end,
            is_all_day=event.is_all_day,
        )
