"""Thin adapter over icalendar that translates library errors into ParseFailure."""

import hashlib
import logging
from typing import Any, Optional, Union

from icalendar import Calendar

from .exceptions import ParseFailure
from .models import EventSeries
from .rrule_expander import format_recurrence_id

logger = logging.getLogger(__name__)

PARSE_FAILURE_MESSAGE = "Failed to parse calendar data. Invalid ICS format."


class ICSParser:
    """Parses raw feed text into an icalendar component tree."""

    def __init__(self, settings: Optional[Any] = None):
        self.settings = settings

    def parse(self, content: Union[str, bytes]) -> Calendar:
        """Parse raw ICS content.

        Args:
            content: Feed text or bytes

        Returns:
            The VCALENDAR component

        Raises:
            ParseFailure: If the content is empty or not valid iCalendar
        """
        text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
        if not text or "BEGIN:VCALENDAR" not in text.upper():
            raise ParseFailure(PARSE_FAILURE_MESSAGE)

        try:
            calendar = Calendar.from_ical(text)
        except Exception as e:
            logger.warning(f"icalendar rejected feed content: {e}")
            raise ParseFailure(PARSE_FAILURE_MESSAGE) from e

        if calendar.name != "VCALENDAR":
            raise ParseFailure(PARSE_FAILURE_MESSAGE)

        return calendar

    def events(self, calendar: Calendar) -> list:
        """Return every VEVENT sub-component of ``calendar``."""
        return list(calendar.walk("VEVENT"))

    def group_series(self, vevents: list) -> list[EventSeries]:
        """Group VEVENTs by UID into masters plus RECURRENCE-ID overrides.

        Order of first appearance is kept. A second master sharing a UID
        becomes its own series; overrides without a master form a
        master-less series.
        """
        series_by_uid: dict[str, EventSeries] = {}
        extra_series: list[EventSeries] = []

        for component in vevents:
            uid = component_uid(component)
            series = series_by_uid.setdefault(uid, EventSeries(uid=uid))

            if "RECURRENCE-ID" in component:
                key = format_recurrence_id(component.decoded("RECURRENCE-ID"))
                series.overrides[key] = component
            elif series.master is None:
                series.master = component
            else:
                logger.warning(f"Duplicate master VEVENT for UID {uid}, keeping both")
                extra_series.append(EventSeries(uid=uid, master=component))

        return list(series_by_uid.values()) + extra_series

    def has_events(self, content: Union[str, bytes]) -> bool:
        """Check that ``content`` parses and holds at least one VEVENT."""
        try:
            calendar = self.parse(content)
        except ParseFailure:
            return False
        return bool(self.events(calendar))


def component_uid(component: Any) -> str:
    """Return the UID of a component, deriving a stable one when it is missing."""
    uid = str(component.get("UID", "")).strip()
    if uid:
        return uid
    digest = hashlib.sha1(component.to_ical()).hexdigest()
    logger.debug(f"VEVENT without UID, using content digest {digest}")
    return digest
