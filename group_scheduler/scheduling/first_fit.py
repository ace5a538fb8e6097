"""Earliest-gap search over a merged busy timeline."""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from group_scheduler.models import MergedTimeline, TaggedEvent, TimeSlot
from group_scheduler.scheduling.timeline import UTC, as_utc, build_timeline

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 7


def find_first_fit(
    timeline: MergedTimeline,
    duration_minutes: int,
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
) -> Optional[TimeSlot]:
    """Return the earliest free ``duration_minutes`` slot, or None.

    Gaps are taken in order and the first one long enough wins, so ties
    always resolve to the earliest start.
    """
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive (got {duration_minutes})")

    duration = timedelta(minutes=duration_minutes)
    current = as_utc(window_start) if window_start else timeline.window_start
    end = as_utc(window_end) if window_end else timeline.window_end

    for period in timeline:
        if period.start - current >= duration:
            return TimeSlot(current, current + duration)
        current = max(current, period.end)

    if end - current >= duration:
        return TimeSlot(current, current + duration)

    return None


def find_first_available_time(
    events: Iterable[TaggedEvent],
    duration_minutes: int = 60,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    participants: Optional[Sequence[str]] = None,
    tz: ZoneInfo = UTC,
) -> Optional[TimeSlot]:
    """First slot where every participant is free.

    Participants are the distinct event owners plus any labels passed in
    ``participants``. With nobody to schedule around the result is None
    rather than an unconstrained slot.
    """
    events = list(events)
    labels = {event.owner for event in events if event.owner}
    labels.update(label for label in participants or [] if label)
    if not labels:
        logger.info("No participants to schedule around")
        return None

    start = as_utc(start, tz) if start else datetime.now(UTC)
    end = as_utc(end, tz) if end else start + timedelta(days=DEFAULT_WINDOW_DAYS)

    timeline = build_timeline(events, start, end, tz)
    slot = find_first_fit(timeline, duration_minutes, start, end)

    if slot is None:
        logger.info(
            f"No {duration_minutes}-minute slot free for {len(labels)} participants "
            f"between {start.isoformat()} and {end.isoformat()}"
        )
    return slot
