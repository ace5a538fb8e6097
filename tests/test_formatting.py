"""Tests for the assistant-facing text renderings."""

from conftest import at, busy

from group_scheduler.formatting import (
    format_events_by_participant,
    format_ranked_slots,
    format_slot,
)
from group_scheduler.models import AvailabilitySlot, ConflictInfo, TimeSlot


def test_events_grouped_by_person():
    events = [
        busy("alice", "09:00", "10:00", summary="Standup", calendar_name="Work"),
        busy("bob", "09:30", "11:00", summary=None),
        busy("alice", "13:00", "14:00", summary="Lunch"),
    ]

    text = format_events_by_participant(events, at("00:00"), at("00:00", day="2026-03-03"))

    assert text.startswith(
        "I have calendar events for 2 people from 2026-03-02 to 2026-03-03."
    )
    assert "People involved: alice, bob" in text
    assert text.index("=== alice ===") < text.index("- Lunch") < text.index("=== bob ===")
    assert "- Untitled Event" in text
    assert "  Calendar: Work" in text
    assert "  Start: Mon, Mar 02, 09:00 AM" in text


def test_no_events():
    text = format_events_by_participant([], at("00:00"), at("00:00", day="2026-03-03"))
    assert "No events scheduled for any of the people." in text


def test_format_slot():
    assert format_slot(None) == "No available time found for all participants."
    assert format_slot(TimeSlot(at("11:00"), at("12:00"))) == (
        "Found available time: Mon, Mar 02, 11:00 AM to Mon, Mar 02, 12:00 PM"
    )


def test_format_ranked_slots():
    slots = [
        AvailabilitySlot(at("09:00"), at("10:00"), 60, []),
        AvailabilitySlot(
            at("10:00"),
            at("11:00"),
            60,
            [ConflictInfo(at("10:00"), at("10:30"), ["carol", "bob"])],
        ),
    ]

    lines = format_ranked_slots(slots).splitlines()

    assert lines[0] == "1. Mon, Mar 02, 09:00 AM (60 min) - everyone free"
    assert lines[1] == "2. Mon, Mar 02, 10:00 AM (60 min) - conflicts: bob, carol"
    assert format_ranked_slots([]) == "No partially available slots found."
