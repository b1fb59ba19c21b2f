"""End-to-end sync runs over HTTP (mocked transport) into a real SQLite store."""

import httpx
import pytest
import pytest_asyncio

from shiftsync.ics.exceptions import FetchFailure
from shiftsync.ics.fetcher import ICSFetcher
from shiftsync.storage.models import SyncStatus, SyncType
from shiftsync.sync.executor import SyncExecutor

pytestmark = pytest.mark.integration

FEED_URL = "webcal://p42-caldav.icloud.com/published/2/team"


class FeedServer:
    """Serves whatever ICS text is currently assigned to ``body``."""

    def __init__(self) -> None:
        self.body = ""
        self.status = 200
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status, text=self.body, headers={"Content-Type": "text/calendar"}
        )


@pytest.fixture
def server():
    return FeedServer()


@pytest_asyncio.fixture
async def http_client(server):
    async with httpx.AsyncClient(transport=httpx.MockTransport(server.handler)) as client:
        yield client


@pytest.fixture
def run_sync(test_settings, database, notifier, fixed_clock, http_client):
    async def _run(config):
        fetcher = ICSFetcher(test_settings, client=http_client)
        executor = SyncExecutor(
            test_settings, database, notifier, fetcher=fetcher, clock=fixed_clock
        )
        return await executor.synchronize(config.id)

    return _run


def shift(ics, uid, start, end, summary, *extra):
    return ics.event(uid, f"DTSTART:{start}", f"DTEND:{end}", *extra, summary=summary)


@pytest.mark.asyncio
async def test_custom_feed_lifecycle(server, run_sync, database, stored_config, ics):
    server.body = ics.calendar(
        shift(ics, "shift-a", "20240601T090000Z", "20240601T170000Z", "Shift A")
    )

    stats = await run_sync(stored_config)

    assert (stats.created, stats.updated, stats.deleted) == (1, 0, 0)
    (occurrence,) = await database.get_occurrences_for_sync(stored_config.id)
    assert (occurrence.date, occurrence.start_time, occurrence.end_time, occurrence.title) == (
        "2024-06-01",
        "09:00",
        "17:00",
        "Shift A",
    )
    assert occurrence.external_event_id == "shift-a"
    assert occurrence.synced_from_external

    # Unchanged feed
    stats = await run_sync(stored_config)
    assert (stats.created, stats.updated, stats.deleted) == (0, 0, 0)

    # Event removed from the feed
    server.body = ics.calendar()
    stats = await run_sync(stored_config)
    assert (stats.created, stats.updated, stats.deleted) == (0, 0, 1)
    assert await database.get_occurrences_for_sync(stored_config.id) == []

    logs = await database.get_sync_logs("cal-1")
    assert [log.status for log in logs] == [SyncStatus.SUCCESS] * 3
    assert logs[0].shifts_deleted == 1
    assert logs[-1].shifts_created == 1
    assert str(server.requests[0].url) == "https://example.com/shifts.ics"


@pytest.mark.asyncio
async def test_icloud_retitle_updates_in_place(server, run_sync, database, make_config, ics):
    config = make_config(sync_type=SyncType.ICLOUD, calendar_url=FEED_URL)
    await database.save_sync_config(config)

    server.body = ics.calendar(
        shift(ics, "evt-1", "20240601T090000Z", "20240601T170000Z", "Early")
    )
    await run_sync(config)
    (before,) = await database.get_occurrences_for_sync(config.id)

    server.body = ics.calendar(
        shift(ics, "evt-1", "20240601T090000Z", "20240601T170000Z", "Early (swapped)")
    )
    stats = await run_sync(config)

    assert (stats.created, stats.updated, stats.deleted) == (0, 1, 0)
    (after,) = await database.get_occurrences_for_sync(config.id)
    assert after.id == before.id
    assert after.title == "Early (swapped)"
    assert str(server.requests[0].url).startswith("https://p42-caldav.icloud.com/")


@pytest.mark.asyncio
async def test_recurring_series_with_override_and_overnight_shift(
    server, run_sync, database, stored_config, ics
):
    server.body = ics.calendar(
        shift(
            ics,
            "nights",
            "20240603T220000Z",
            "20240604T060000Z",
            "Night",
            "RRULE:FREQ=WEEKLY;COUNT=3",
        ),
        shift(
            ics,
            "nights",
            "20240610T230000Z",
            "20240611T070000Z",
            "Night (late)",
            "RECURRENCE-ID:20240610T220000Z",
        ),
    )

    stats = await run_sync(stored_config)

    occurrences = await database.get_occurrences_for_sync(stored_config.id)
    assert stats.total_events == 2
    assert stats.created == 6
    assert [(o.date, o.start_time, o.end_time) for o in occurrences] == [
        ("2024-06-03", "22:00", "23:59"),
        ("2024-06-04", "00:00", "06:00"),
        ("2024-06-10", "23:00", "23:59"),
        ("2024-06-11", "00:00", "07:00"),
        ("2024-06-17", "22:00", "23:59"),
        ("2024-06-18", "00:00", "06:00"),
    ]
    assert occurrences[2].external_event_id == "nights_20240610T220000Z_day0"
    assert occurrences[2].title == "Night (late)"


@pytest.mark.asyncio
async def test_http_error_recorded(server, run_sync, database, stored_config):
    server.status = 503

    with pytest.raises(FetchFailure) as exc_info:
        await run_sync(stored_config)

    assert exc_info.value.status_code == 503
    (log,) = await database.get_sync_logs("cal-1")
    assert log.status == SyncStatus.ERROR
    assert log.error_message == "Failed to fetch calendar: Service Unavailable"
