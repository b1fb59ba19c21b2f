"""Unit tests for window-bounded recurrence expansion."""

from datetime import date, datetime, timedelta

import pytz

from shiftsync.ics.rrule_expander import format_recurrence_id, sync_window

BERLIN = pytz.timezone("Europe/Berlin")


class TestSyncWindow:
    """Test the fixed sync window policy."""

    def test_window_spans_three_months_back_and_a_year_ahead(self, fixed_now):
        window_start, window_end = sync_window(fixed_now)

        assert window_start == datetime(2024, 2, 15, 12, 0, tzinfo=pytz.utc)
        assert window_end == datetime(2025, 5, 15, 12, 0, tzinfo=pytz.utc)

    def test_naive_now_treated_as_utc(self):
        window_start, _ = sync_window(datetime(2024, 5, 15, 12, 0))
        assert window_start.tzinfo is not None

    def test_defaults_to_current_time(self):
        window_start, window_end = sync_window()
        now = datetime.now(pytz.utc)
        assert window_start < now < window_end


class TestFormatRecurrenceId:
    """Test recurrence id keys."""

    def test_date_value(self):
        assert format_recurrence_id(date(2024, 6, 1)) == "20240601"

    def test_floating_datetime(self):
        assert format_recurrence_id(datetime(2024, 6, 1, 9, 30)) == "20240601T093000"

    def test_zoned_datetime_keyed_by_utc_instant(self):
        local = BERLIN.localize(datetime(2024, 6, 1, 11, 0))
        assert format_recurrence_id(local) == "20240601T090000Z"


class TestSingleEvents:
    """Test non-recurring events."""

    def test_event_in_window_yields_one_occurrence(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "shift-a", "DTSTART:20240601T090000Z", "DTEND:20240601T170000Z", summary="Shift A"
            )
        )

        (occurrence,) = expand_ics(text)

        assert occurrence.uid == "shift-a"
        assert occurrence.recurrence_id is None
        assert occurrence.base_event_id == "shift-a"
        assert occurrence.title == "Shift A"
        assert occurrence.end - occurrence.start == timedelta(hours=8)

    def test_event_outside_window_yields_nothing(self, expand_ics, ics):
        text = ics.calendar(
            ics.event("old", "DTSTART:20230101T090000Z", "DTEND:20230101T170000Z"),
            ics.event("far", "DTSTART:20260101T090000Z", "DTEND:20260101T170000Z"),
        )
        assert expand_ics(text) == []

    def test_missing_summary_falls_back_to_untitled(self, expand_ics, ics):
        text = ics.calendar(ics.event("x", "DTSTART:20240601T090000Z", "DTEND:20240601T100000Z"))
        assert expand_ics(text)[0].title == "Untitled Event"

    def test_duration_used_when_dtend_missing(self, expand_ics, ics):
        text = ics.calendar(ics.event("x", "DTSTART:20240601T090000Z", "DURATION:PT4H"))
        (occurrence,) = expand_ics(text)
        assert occurrence.end == occurrence.start + timedelta(hours=4)

    def test_timed_event_without_end_dropped(self, expand_ics, ics):
        text = ics.calendar(ics.event("x", "DTSTART:20240601T090000Z", summary="No end"))
        assert expand_ics(text) == []

    def test_event_without_start_dropped(self, expand_ics, ics):
        text = ics.calendar(ics.event("x", summary="No start"))
        assert expand_ics(text) == []

    def test_all_day_event(self, expand_ics, ics):
        text = ics.calendar(
            ics.event("vacation", "DTSTART;VALUE=DATE:20240601", "DTEND;VALUE=DATE:20240603")
        )

        (occurrence,) = expand_ics(text)

        assert occurrence.is_all_day
        assert occurrence.start == datetime(2024, 6, 1)
        assert occurrence.end == datetime(2024, 6, 3)

    def test_all_day_event_without_end_lasts_one_day(self, expand_ics, ics):
        text = ics.calendar(ics.event("holiday", "DTSTART;VALUE=DATE:20240601"))
        (occurrence,) = expand_ics(text)
        assert occurrence.end == datetime(2024, 6, 2)

    def test_cancelled_event_skipped(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "x", "DTSTART:20240601T090000Z", "DTEND:20240601T100000Z", "STATUS:CANCELLED"
            )
        )
        assert expand_ics(text) == []


class TestRecurringEvents:
    """Test RRULE, RDATE and EXDATE expansion."""

    def test_unbounded_rule_limited_to_window(self, expand_ics, ics, fixed_now):
        text = ics.calendar(
            ics.event(
                "monday",
                "DTSTART:20200106T090000Z",
                "DTEND:20200106T170000Z",
                "RRULE:FREQ=WEEKLY",
                summary="Monday shift",
            )
        )
        window_start, window_end = sync_window(fixed_now)

        occurrences = expand_ics(text)

        assert len(occurrences) == 65
        assert occurrences[0].start == datetime(2024, 2, 19, 9, 0, tzinfo=pytz.utc)
        assert occurrences[-1].start == datetime(2025, 5, 12, 9, 0, tzinfo=pytz.utc)
        assert all(window_start <= o.start <= window_end for o in occurrences)

    def test_yearly_rule_from_years_ago(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "anniversary",
                "DTSTART:20190601T100000Z",
                "DTEND:20190601T120000Z",
                "RRULE:FREQ=YEARLY",
                summary="Inventory",
            )
        )

        (occurrence,) = expand_ics(text)

        assert occurrence.start == datetime(2024, 6, 1, 10, 0, tzinfo=pytz.utc)
        assert occurrence.recurrence_id == "20240601T100000Z"

    def test_count_rule_carries_recurrence_ids(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "daily",
                "DTSTART:20240601T090000Z",
                "DTEND:20240601T170000Z",
                "RRULE:FREQ=DAILY;COUNT=3",
            )
        )

        occurrences = expand_ics(text)

        assert [o.recurrence_id for o in occurrences] == [
            "20240601T090000Z",
            "20240602T090000Z",
            "20240603T090000Z",
        ]
        assert occurrences[1].base_event_id == "daily_20240602T090000Z"

    def test_count_includes_start_outside_the_rule(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "tuesday",
                "DTSTART:20240603T090000Z",
                "DTEND:20240603T170000Z",
                "RRULE:FREQ=WEEKLY;BYDAY=TU;COUNT=2",
            )
        )

        occurrences = expand_ics(text)

        assert [o.start.date() for o in occurrences] == [date(2024, 6, 3), date(2024, 6, 4)]

    def test_count_of_one_yields_only_the_start(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "single",
                "DTSTART:20240603T090000Z",
                "DTEND:20240603T170000Z",
                "RRULE:FREQ=WEEKLY;BYDAY=TU;COUNT=1",
            )
        )

        (occurrence,) = expand_ics(text)

        assert occurrence.start == datetime(2024, 6, 3, 9, 0, tzinfo=pytz.utc)

    def test_utc_until_with_zoned_start(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "berlin",
                "DTSTART;TZID=Europe/Berlin:20240603T090000",
                "DTEND;TZID=Europe/Berlin:20240603T170000",
                "RRULE:FREQ=WEEKLY;UNTIL=20240617T070000Z",
            )
        )

        occurrences = expand_ics(text)

        assert [o.start.date() for o in occurrences] == [
            date(2024, 6, 3),
            date(2024, 6, 10),
            date(2024, 6, 17),
        ]

    def test_local_time_kept_across_dst_change(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "dst",
                "DTSTART;TZID=Europe/Berlin:20240321T090000",
                "DTEND;TZID=Europe/Berlin:20240321T170000",
                "RRULE:FREQ=WEEKLY;COUNT=3",
            )
        )

        occurrences = expand_ics(text)

        assert [o.start.astimezone(BERLIN).hour for o in occurrences] == [9, 9, 9]
        assert [o.start.astimezone(pytz.utc).hour for o in occurrences] == [8, 8, 7]

    def test_exdate_excludes_instance(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "daily",
                "DTSTART:20240601T090000Z",
                "DTEND:20240601T170000Z",
                "RRULE:FREQ=DAILY;COUNT=3",
                "EXDATE:20240602T090000Z",
            )
        )

        assert [o.start.day for o in expand_ics(text)] == [1, 3]

    def test_rdate_adds_instance(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "extra",
                "DTSTART:20240601T090000Z",
                "DTEND:20240601T170000Z",
                "RDATE:20240610T090000Z",
            )
        )

        occurrences = expand_ics(text)

        assert [o.start.day for o in occurrences] == [1, 10]
        assert occurrences[1].recurrence_id == "20240610T090000Z"

    def test_all_day_weekly_rule(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "on-call",
                "DTSTART;VALUE=DATE:20240601",
                "DTEND;VALUE=DATE:20240602",
                "RRULE:FREQ=WEEKLY;COUNT=2",
            )
        )

        occurrences = expand_ics(text)

        assert [o.recurrence_id for o in occurrences] == ["20240601", "20240608"]
        assert all(o.is_all_day for o in occurrences)


class TestOverrides:
    """Test RECURRENCE-ID overrides."""

    def _series(self, ics, *override_lines):
        return ics.calendar(
            ics.event(
                "weekly",
                "DTSTART:20240601T090000Z",
                "DTEND:20240601T170000Z",
                "RRULE:FREQ=WEEKLY;COUNT=3",
                summary="Shift",
            ),
            ics.event("weekly", "RECURRENCE-ID:20240608T090000Z", *override_lines),
        )

    def test_override_replaces_generated_instance(self, expand_ics, ics):
        text = self._series(
            ics, "DTSTART:20240608T120000Z", "DTEND:20240608T200000Z", "SUMMARY:Moved"
        )

        occurrences = expand_ics(text)

        assert len(occurrences) == 3
        moved = [o for o in occurrences if o.recurrence_id == "20240608T090000Z"]
        assert len(moved) == 1
        assert moved[0].title == "Moved"
        assert moved[0].start == datetime(2024, 6, 8, 12, 0, tzinfo=pytz.utc)

    def test_cancelled_override_suppresses_instance(self, expand_ics, ics):
        text = self._series(
            ics, "DTSTART:20240608T090000Z", "DTEND:20240608T170000Z", "STATUS:CANCELLED"
        )

        occurrences = expand_ics(text)

        assert [o.start.day for o in occurrences] == [1, 15]

    def test_override_moved_into_window_is_yielded(self, expand_ics, ics):
        text = ics.calendar(
            ics.event(
                "old",
                "DTSTART:20230101T090000Z",
                "DTEND:20230101T100000Z",
                "RRULE:FREQ=YEARLY;COUNT=1",
            ),
            ics.event(
                "old",
                "RECURRENCE-ID:20230101T090000Z",
                "DTSTART:20240601T090000Z",
                "DTEND:20240601T100000Z",
            ),
        )

        (occurrence,) = expand_ics(text)

        assert occurrence.start.year == 2024
        assert occurrence.recurrence_id == "20230101T090000Z"

