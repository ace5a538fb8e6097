"""Tests for busy-timeline construction."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from conftest import at, busy

from group_scheduler.models import BusyPeriod, TaggedEvent
from group_scheduler.scheduling.first_fit import find_first_available_time
from group_scheduler.scheduling.timeline import (
    build_timeline,
    clip_to_window,
    merge_busy_periods,
    parse_event_time,
)


def _all_day(owner: str, start_day: str, end_day: str) -> TaggedEvent:
    return TaggedEvent(
        owner=owner,
        source_calendar_id="primary",
        start={"date": start_day},
        end={"date": end_day},
        summary="Holiday",
    )


class TestParseEventTime:
    def test_zulu_date_time(self):
        assert parse_event_time({"dateTime": "2026-03-02T09:00:00Z"}) == at("09:00")

    def test_offset_date_time(self):
        parsed = parse_event_time({"dateTime": "2026-03-02T10:00:00+01:00"})
        assert parsed == at("09:00")

    def test_date_only_uses_zone(self):
        berlin = ZoneInfo("Europe/Berlin")
        parsed = parse_event_time({"date": "2026-03-02"}, berlin)
        assert parsed.tzinfo == berlin
        assert (parsed.hour, parsed.minute) == (0, 0)

    def test_unreadable(self):
        assert parse_event_time(None) is None
        assert parse_event_time({}) is None
        assert parse_event_time({"dateTime": "not a time"}) is None


class TestMergeBusyPeriods:
    def test_overlapping_and_touching_periods_coalesce(self):
        periods = [
            BusyPeriod(at("09:30"), at("11:00")),
            BusyPeriod(at("09:00"), at("10:00")),
            BusyPeriod(at("11:00"), at("11:30")),
            BusyPeriod(at("13:00"), at("14:00")),
        ]

        merged = merge_busy_periods(periods)

        assert merged == [
            BusyPeriod(at("09:00"), at("11:30")),
            BusyPeriod(at("13:00"), at("14:00")),
        ]

    def test_merged_periods_are_disjoint_and_idempotent(self):
        periods = [
            BusyPeriod(at("08:00"), at("08:45")),
            BusyPeriod(at("08:30"), at("09:00")),
            BusyPeriod(at("10:00"), at("10:15")),
            BusyPeriod(at("09:59"), at("10:01")),
        ]

        merged = merge_busy_periods(periods)

        for earlier, later in zip(merged, merged[1:]):
            assert earlier.end < later.start
        assert merge_busy_periods(merged) == merged

    def test_every_instant_stays_covered(self):
        periods = [
            BusyPeriod(at("09:00"), at("10:00")),
            BusyPeriod(at("09:30"), at("11:00")),
        ]
        merged = merge_busy_periods(periods)

        instant = at("09:00")
        while instant < at("11:00"):
            assert any(p.contains(instant) for p in merged)
            instant += timedelta(minutes=5)


class TestClipToWindow:
    def test_events_outside_window_are_dropped(self):
        events = [
            busy("a", "06:00", "07:00"),
            busy("a", "07:30", "08:30"),
            busy("a", "11:30", "13:00"),
            busy("a", "13:00", "14:00"),
        ]

        periods = clip_to_window(events, at("08:00"), at("12:00"))

        assert periods == [
            BusyPeriod(at("08:00"), at("08:30")),
            BusyPeriod(at("11:30"), at("12:00")),
        ]

    def test_zero_or_negative_length_events_are_dropped(self):
        events = [busy("a", "09:00", "09:00"), busy("a", "10:00", "09:00")]
        assert clip_to_window(events, at("08:00"), at("12:00")) == []

    def test_all_day_event_blocks_whole_day(self):
        # Google date-only ends are exclusive
        event = _all_day("a", "2026-03-02", "2026-03-03")
        window_end = at("08:00", day="2026-03-03")

        timeline = build_timeline([event], at("08:00"), window_end)

        assert timeline.periods == [
            BusyPeriod(at("08:00"), at("00:00", day="2026-03-03"))
        ]
        assert timeline.is_busy(at("23:59"))
        assert not timeline.is_busy(at("00:30", day="2026-03-03"))

    def test_same_day_date_only_event_covers_the_day(self):
        event = _all_day("a", "2026-03-02", "2026-03-02")

        periods = clip_to_window([event], at("00:00"), at("00:00", day="2026-03-03"))

        assert periods == [BusyPeriod(at("00:00"), at("00:00", day="2026-03-03"))]


def test_build_timeline_merges_across_participants():
    events = [busy("a", "09:00", "10:00"), busy("b", "09:30", "11:00")]

    timeline = build_timeline(events, at("08:00"), at("12:00"))

    assert list(timeline) == [BusyPeriod(at("09:00"), at("11:00"))]
    assert timeline.intersects(at("10:30"), at("11:30"))
    assert not timeline.intersects(at("11:00"), at("12:00"))


class TestMalformedBoundaries:
    def test_non_string_values_are_unreadable(self):
        assert parse_event_time({"dateTime": 123}) is None
        assert parse_event_time({"date": 20260302}) is None
        assert parse_event_time("2026-03-02T09:00:00Z") is None

    def test_bad_event_is_dropped_not_raised(self):
        events = [
            TaggedEvent(
                owner="a",
                source_calendar_id="primary",
                start={"dateTime": 123},
                end={"dateTime": "2026-03-02T10:00:00Z"},
            ),
            busy("a", "08:00", "09:00"),
        ]

        slot = find_first_available_time(events, 60, start=at("08:00"), end=at("12:00"))

        assert slot.start_time == at("09:00")

    def test_from_api_tolerates_string_boundaries(self):
        event = TaggedEvent.from_api(
            {"id": "bad", "start": "2026-03-02T09:00:00Z", "end": "x"},
            owner="a",
            calendar_id="primary",
        )

        assert (event.start, event.end) == ({}, {})
        assert clip_to_window([event], at("08:00"), at("12:00")) == []


class TestAbsoluteInstants:
    def test_spans_and_windows_are_utc(self):
        new_york = ZoneInfo("America/New_York")
        events = [busy("a", "09:00", "10:00")]
        local_start = datetime(2026, 3, 2, 3, 0, tzinfo=new_york)

        timeline = build_timeline(events, local_start, local_start + timedelta(hours=12), new_york)

        assert timeline.window_start.utcoffset() == timedelta(0)
        assert timeline.window_start == at("08:00")
        assert timeline.periods[0].start.utcoffset() == timedelta(0)
