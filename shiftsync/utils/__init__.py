"""Shared utilities: logging setup, exceptions and datetime helpers."""

from .exceptions import PersistenceFailure, SyncConfigNotFound, SyncError
from .helpers import get_timezone_aware_now, localize_wall_clock, to_wall_clock
from .logging import get_log_level, setup_logging

__all__ = [
    "PersistenceFailure",
    "SyncConfigNotFound",
    "SyncError",
    "get_log_level",
    "get_timezone_aware_now",
    "localize_wall_clock",
    "setup_logging",
    "to_wall_clock",
]
