"""Tests for preference parsing and the preference-aware search."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import at, busy

from group_scheduler.models import PreferenceHint, TimeSlot
from group_scheduler.scheduling.preferences import (
    find_best_time,
    parse_hour_window,
    parse_preference,
    parse_preferred_days,
)

TUESDAY = "2026-03-03"
WEDNESDAY = "2026-03-04"


class TestParsing:
    def test_day_and_bucket(self):
        window = parse_preference(
            PreferenceHint(participant="alice", date="Tuesday", time="afternoon")
        )

        assert window.preferred_days == frozenset({"tuesday"})
        assert (window.start_hour, window.end_hour) == (13, 17)
        assert window.matches(at("14:00", day=TUESDAY))
        assert not window.matches(at("14:00", day=WEDNESDAY))
        assert not window.matches(at("17:00", day=TUESDAY))

    @pytest.mark.parametrize(
        "phrase, expected",
        [
            ("in the morning", (9, 12)),
            ("Evening works", (17, 20)),
            ("late night", (19, 22)),
            ("", (9, 17)),
            ("whenever", (9, 17)),
            ("2pm", (14, 16)),
            ("10:30", (10, 12)),
            ("12am", (0, 2)),
            ("12pm", (12, 14)),
            ("morning, ideally 3pm", (15, 17)),
        ],
    )
    def test_hour_window(self, phrase, expected):
        assert parse_hour_window(phrase) == expected

    def test_several_days(self):
        assert parse_preferred_days("Monday or Friday") == frozenset({"monday", "friday"})

    def test_no_day_means_any_day(self):
        window = parse_preference(PreferenceHint(participant="bob", time="morning"))

        assert window.preferred_days == frozenset()
        assert window.matches(at("10:00"))
        assert window.matches(at("10:00", day=WEDNESDAY))


class TestFindBestTime:
    def test_earliest_slot_inside_every_window(self, fixed_now):
        events = [busy("alice", "13:00", "14:00", day=TUESDAY)]
        hints = [
            PreferenceHint(participant="alice", date="tuesday", time="afternoon"),
            PreferenceHint(participant="bob", date="Tuesday or Wednesday", time="afternoon"),
        ]

        result = find_best_time(
            events, hints, duration_minutes=60, now=fixed_now, participants=["alice", "bob"]
        )

        assert result.matched_preferences is True
        assert result.slot == TimeSlot(at("14:00", day=TUESDAY), at("15:00", day=TUESDAY))
        assert len(result.preferences) == 2

    def test_slots_before_now_are_skipped(self):
        now = at("10:30")

        result = find_best_time([], [], duration_minutes=30, now=now, participants=["alice"])

        assert result.slot.start_time == at("11:00")

    def test_falls_back_to_first_fit(self, fixed_now):
        # Nothing in the 08:00-20:00 candidate hours can satisfy 11pm
        hints = [PreferenceHint(participant="alice", time="11pm")]
        events = [busy("alice", "07:00", "08:00")]

        result = find_best_time(
            events, hints, duration_minutes=60, now=fixed_now, participants=["alice"]
        )

        assert result.matched_preferences is False
        assert result.slot == TimeSlot(at("08:00"), at("09:00"))

    def test_fallback_without_participants_is_empty(self, fixed_now):
        hints = [PreferenceHint(participant="alice", time="11pm")]

        result = find_best_time([], hints, now=fixed_now)

        assert result.matched_preferences is False
        assert result.slot is None
        assert result.to_dict()["slot"] is None

    def test_busy_candidates_are_skipped(self, fixed_now):
        events = [busy("alice", "08:00", "10:00"), busy("bob", "09:30", "11:00")]

        result = find_best_time(
            events, [], duration_minutes=60, now=fixed_now, participants=["alice", "bob"]
        )

        assert result.matched_preferences is True
        assert result.slot.start_time == at("11:00")


def test_grid_follows_local_hours_across_dst_change():
    new_york = ZoneInfo("America/New_York")
    # Midnight EDT on Sunday 2026-11-01; clocks fall back at 02:00
    now = datetime(2026, 11, 1, 4, 0, tzinfo=timezone.utc)
    hints = [PreferenceHint(participant="alice", date="Sunday", time="morning")]

    result = find_best_time(
        [], hints, duration_minutes=60, now=now, participants=["alice"], tz=new_york
    )

    assert result.matched_preferences is True
    # 09:00 EST
    assert result.slot.start_time == datetime(2026, 11, 1, 14, 0, tzinfo=timezone.utc)
    assert result.slot.end_time - result.slot.start_time == timedelta(minutes=60)
