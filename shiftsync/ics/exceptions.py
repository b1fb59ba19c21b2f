"""ICS-specific exceptions for fetch and parse failures."""

from ..utils.exceptions import SyncError


class FetchFailure(SyncError):
    """Exception raised when the feed cannot be downloaded."""


class FetchTimeoutFailure(FetchFailure):
    """Exception raised when the feed request exceeds its time budget."""


class ParseFailure(SyncError):
    """Exception raised when feed content is not valid iCalendar."""
