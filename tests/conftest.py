"""Shared fixtures for ShiftSync tests."""

import logging
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Optional

import pytest
import pytest_asyncio
import pytz

from shiftsync.ics.parser import ICSParser
from shiftsync.ics.rrule_expander import RRuleExpander, sync_window
from shiftsync.storage.database import SyncDatabase
from shiftsync.storage.models import SyncConfig, SyncType
from shiftsync.sync.notifier import ChangeNotifier

# Sync window for this clock: 2024-02-15 12:00Z .. 2025-05-15 12:00Z
FIXED_NOW = datetime(2024, 5, 15, 12, 0, tzinfo=pytz.utc)


def make_event(uid: str, *lines: str, summary: Optional[str] = None) -> str:
    """Build one VEVENT from raw property lines."""
    parts = ["BEGIN:VEVENT", f"UID:{uid}", "DTSTAMP:20240101T000000Z"]
    if summary is not None:
        parts.append(f"SUMMARY:{summary}")
    parts.extend(lines)
    parts.append("END:VEVENT")
    return "\r\n".join(parts)


def make_calendar(*events: str) -> str:
    """Wrap VEVENT blocks into a VCALENDAR document."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//ShiftSync Tests//EN", *events]
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo setup_logging() calls made by a test."""
    logger = logging.getLogger("shiftsync")
    level, handlers = logger.level, list(logger.handlers)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers


@pytest.fixture
def ics() -> SimpleNamespace:
    """ICS document builders."""
    return SimpleNamespace(event=make_event, calendar=make_calendar)


@pytest.fixture
def test_settings(tmp_path: Path) -> Any:
    """Create lightweight test settings without file I/O."""

    class MockSettings:
        def __init__(self) -> None:
            self.app_name = "ShiftSync-Test"
            self.timezone = "UTC"
            self.data_dir = tmp_path
            self.config_dir = tmp_path / "config"
            self.database_file = tmp_path / "shiftsync.db"
            self.log_level = "ERROR"
            self.debug = False

    return MockSettings()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fixed_clock(fixed_now: datetime):
    """Clock pinned to FIXED_NOW."""
    return lambda: fixed_now


@pytest.fixture
def parser(test_settings: Any) -> ICSParser:
    return ICSParser(test_settings)


@pytest.fixture
def expander(test_settings: Any) -> RRuleExpander:
    return RRuleExpander(test_settings)


@pytest.fixture
def expand_ics(parser: ICSParser, expander: RRuleExpander):
    """Parse an ICS document and expand every series inside the FIXED_NOW window."""

    def _expand(text: str, now: datetime = FIXED_NOW) -> list:
        window_start, window_end = sync_window(now)
        series = parser.group_series(parser.events(parser.parse(text)))
        occurrences = []
        for item in series:
            occurrences.extend(expander.expand(item, window_start, window_end))
        return sorted(occurrences, key=lambda o: (o.start.isoformat(), o.uid))

    return _expand


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> SyncDatabase:
    """Initialized SQLite database in a temporary directory."""
    db = SyncDatabase(tmp_path / "shiftsync.db")
    await db.initialize()
    return db


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def make_config():
    """Factory for sync configurations."""

    def _make(
        sync_type: SyncType = SyncType.CUSTOM,
        calendar_url: str = "https://example.com/shifts.ics",
        **overrides: Any,
    ) -> SyncConfig:
        values = {
            "calendar_id": "cal-1",
            "name": "Work shifts",
            "calendar_url": calendar_url,
            "color": "#10b981",
            "sync_type": sync_type,
        }
        values.update(overrides)
        return SyncConfig(**values)

    return _make


@pytest_asyncio.fixture
async def stored_config(database: SyncDatabase, make_config) -> SyncConfig:
    """A custom-type sync configuration saved in the database."""
    config = make_config()
    await database.save_sync_config(config)
    return config
