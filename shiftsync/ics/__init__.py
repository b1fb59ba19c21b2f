"""ICS feed downloading, parsing and recurrence expansion."""

from .exceptions import FetchFailure, FetchTimeoutFailure, ParseFailure
from .fetcher import (
    FETCH_TIMEOUT_SECONDS,
    ICSFetcher,
    decode_data_url,
    encode_ics_upload,
    is_data_url,
    normalize_feed_url,
)
from .models import EventSeries, ExpandedOccurrence, RemoteEvent
from .parser import ICSParser
from .rrule_expander import RRuleExpander, format_recurrence_id, sync_window

__all__ = [
    "FETCH_TIMEOUT_SECONDS",
    "EventSeries",
    "ExpandedOccurrence",
    "FetchFailure",
    "FetchTimeoutFailure",
    "ICSFetcher",
    "ICSParser",
    "ParseFailure",
    "RRuleExpander",
    "RemoteEvent",
    "decode_data_url",
    "encode_ics_upload",
    "format_recurrence_id",
    "is_data_url",
    "normalize_feed_url",
    "sync_window",
]
