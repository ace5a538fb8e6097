"""Plain-text renderings of scheduling data for assistant prompts."""

from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from group_scheduler.models import AvailabilitySlot, TaggedEvent, TimeSlot
from group_scheduler.scheduling.timeline import UTC, parse_event_time


def _display(value: datetime, tz: ZoneInfo) -> str:
    return value.astimezone(tz).strftime("%a, %b %d, %I:%M %p")


def group_by_participant(events: Sequence[TaggedEvent]) -> Dict[str, List[TaggedEvent]]:
    grouped: Dict[str, List[TaggedEvent]] = OrderedDict()
    for event in events:
        grouped.setdefault(event.owner or "Unknown", []).append(event)
    return grouped


def format_events_by_participant(
    events: Sequence[TaggedEvent],
    window_start: datetime,
    window_end: datetime,
    tz: ZoneInfo = UTC,
) -> str:
    """Describe everyone's scheduled events, grouped by person."""
    people = list(OrderedDict.fromkeys(event.owner for event in events if event.owner))

    lines = [
        f"I have calendar events for {len(people)} people from "
        f"{window_start.astimezone(tz):%Y-%m-%d} to {window_end.astimezone(tz):%Y-%m-%d}.",
        "",
        f"People involved: {', '.join(people)}",
        "",
        "Here are all scheduled events by person:",
        "",
    ]

    if not events:
        lines.append("No events scheduled for any of the people.")
        return "\n".join(lines) + "\n"

    for person, person_events in group_by_participant(events).items():
        lines.append(f"=== {person} ===")
        for event in person_events:
            start = parse_event_time(event.start, tz)
            end = parse_event_time(event.end, tz)
            if not start or not end:
                continue
            lines.append(f"- {event.summary or 'Untitled Event'}")
            lines.append(f"  Calendar: {event.calendar_name or 'Unknown'}")
            lines.append(f"  Start: {_display(start, tz)}")
            lines.append(f"  End: {_display(end, tz)}")
            lines.append("")
        lines.append("")

    return "\n".join(lines)


def format_slot(slot: Optional[TimeSlot], tz: ZoneInfo = UTC) -> str:
    if slot is None:
        return "No available time found for all participants."
    return (
        f"Found available time: {_display(slot.start_time, tz)} "
        f"to {_display(slot.end_time, tz)}"
    )


def format_ranked_slots(slots: Sequence[AvailabilitySlot], tz: ZoneInfo = UTC) -> str:
    """One line per slot, listing who would have to miss part of it."""
    if not slots:
        return "No partially available slots found."

    lines = []
    for rank, slot in enumerate(slots, start=1):
        line = f"{rank}. {_display(slot.start, tz)} ({slot.duration_minutes} min)"
        if slot.conflicts:
            busy = sorted(
                {label for conflict in slot.conflicts for label in conflict.conflicting_participants}
            )
            line += f" - conflicts: {', '.join(busy)}"
        else:
            line += " - everyone free"
        lines.append(line)
    return "\n".join(lines)
