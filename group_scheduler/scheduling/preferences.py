"""Free-text availability hints and the preference-aware slot search."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from group_scheduler.models import (
    WEEKDAY_NAMES,
    MergedTimeline,
    PreferenceHint,
    PreferenceWindow,
    TaggedEvent,
    TimeSlot,
)
from group_scheduler.scheduling.first_fit import find_first_available_time
from group_scheduler.scheduling.timeline import UTC, as_utc, build_timeline

logger = logging.getLogger(__name__)

DEFAULT_HOUR_WINDOW = (9, 17)
DEFAULT_HORIZON_DAYS = 30
DAY_START_HOUR = 8
DAY_END_HOUR = 20

# Checked in order; the first bucket word found in the phrase wins
TIME_BUCKETS = (
    ("morning", (9, 12)),
    ("afternoon", (13, 17)),
    ("evening", (17, 20)),
    ("night", (19, 22)),
)

HOUR_TOKEN = re.compile(r"(\d+)\s*(am|pm|:)")


def parse_hour_window(phrase: str) -> tuple:
    """Map a time phrase to ``(start_hour, end_hour)``.

    An explicit hour ("2pm", "14:00") beats any bucket word and yields a
    two-hour window starting at that hour.
    """
    lowered = (phrase or "").lower()

    window = DEFAULT_HOUR_WINDOW
    for word, bucket in TIME_BUCKETS:
        if word in lowered:
            window = bucket
            break

    match = HOUR_TOKEN.search(lowered)
    if match:
        hour = int(match.group(1))
        if match.group(2) == "pm" and hour < 12:
            hour += 12
        if match.group(2) == "am" and hour == 12:
            hour = 0
        window = (hour, hour + 2)

    return window


def parse_preferred_days(phrase: str) -> frozenset:
    lowered = (phrase or "").lower()
    return frozenset(day for day in WEEKDAY_NAMES if day in lowered)


def parse_preference(hint: PreferenceHint) -> PreferenceWindow:
    start_hour, end_hour = parse_hour_window(hint.time)
    return PreferenceWindow(
        participant=hint.participant,
        preferred_days=parse_preferred_days(hint.date),
        start_hour=start_hour,
        end_hour=end_hour,
    )


@dataclass
class BestTimeResult:
    """Outcome of a preference-aware search."""

    slot: Optional[TimeSlot]
    matched_preferences: bool
    preferences: List[PreferenceWindow] = field(default_factory=list)

    def to_dict(self):
        return {
            "slot": self.slot.to_dict() if self.slot else None,
            "matched_preferences": self.matched_preferences,
            "preferences": [window.to_dict() for window in self.preferences],
        }


def search_preferred_slot(
    timeline: MergedTimeline,
    windows: Sequence[PreferenceWindow],
    duration_minutes: int,
    now: datetime,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    tz: ZoneInfo = UTC,
    day_start_hour: int = DAY_START_HOUR,
    day_end_hour: int = DAY_END_HOUR,
) -> Optional[TimeSlot]:
    """Earliest on-the-hour slot that is free and inside every window.

    Days are walked first, then hours, and the first hit wins. Candidates
    that start before ``now`` are skipped. The grid is laid out in ``tz``;
    the returned slot is in UTC.
    """
    duration = timedelta(minutes=duration_minutes)
    now = as_utc(now, tz)
    today = now.astimezone(tz).date()

    for day_offset in range(horizon_days):
        day = today + timedelta(days=day_offset)
        for hour in range(day_start_hour, day_end_hour):
            local_start = datetime.combine(day, time(hour), tzinfo=tz)
            slot_start = local_start.astimezone(UTC)
            if slot_start < now:
                continue
            slot_end = slot_start + duration
            if timeline.intersects(slot_start, slot_end):
                continue
            if all(window.matches(local_start) for window in windows):
                return TimeSlot(slot_start, slot_end)
    return None


def find_best_time(
    events: Iterable[TaggedEvent],
    hints: Iterable[PreferenceHint],
    duration_minutes: int = 60,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    now: Optional[datetime] = None,
    participants: Optional[Sequence[str]] = None,
    tz: ZoneInfo = UTC,
    day_start_hour: int = DAY_START_HOUR,
    day_end_hour: int = DAY_END_HOUR,
) -> BestTimeResult:
    """Best slot honouring everyone's stated preferences.

    Falls back to the plain first-fit search over the same horizon when no
    slot satisfies all preferences. A None slot means nothing was found.
    """
    events = list(events)
    now = as_utc(now, tz) if now else datetime.now(UTC)
    horizon_end = now + timedelta(days=horizon_days)

    windows = [parse_preference(hint) for hint in hints]
    logger.info(f"Parsed {len(windows)} preference windows")

    timeline = build_timeline(
        events, now, horizon_end + timedelta(minutes=duration_minutes), tz
    )
    slot = search_preferred_slot(
        timeline,
        windows,
        duration_minutes,
        now,
        horizon_days=horizon_days,
        tz=tz,
        day_start_hour=day_start_hour,
        day_end_hour=day_end_hour,
    )
    if slot:
        return BestTimeResult(slot=slot, matched_preferences=True, preferences=windows)

    logger.info("No slot matches every preference, falling back to first fit")
    fallback = find_first_available_time(
        events,
        duration_minutes,
        start=now,
        end=horizon_end,
        participants=participants,
        tz=tz,
    )
    return BestTimeResult(slot=fallback, matched_preferences=False, preferences=windows)
