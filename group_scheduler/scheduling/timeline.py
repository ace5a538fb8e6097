"""Turn tagged provider events into a merged busy timeline."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from group_scheduler.models import BusyPeriod, MergedTimeline, TaggedEvent

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")

# Sort key for events whose start cannot be read at all
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def ensure_aware(value: datetime, tz: ZoneInfo = UTC) -> datetime:
    """Attach ``tz`` to naive datetimes; aware ones are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def as_utc(value: datetime, tz: ZoneInfo = UTC) -> datetime:
    """Absolute instant in UTC; naive values are read as ``tz`` wall time.

    Slot arithmetic happens in UTC so durations stay exact across DST changes.
    """
    return ensure_aware(value, tz).astimezone(UTC)


def parse_event_time(
    value: Optional[Dict[str, Any]], tz: ZoneInfo = UTC
) -> Optional[datetime]:
    """Parse a provider ``{"dateTime": ...}`` / ``{"date": ...}`` boundary.

    Date-only values map to midnight in ``tz``. Returns None when the value
    is missing or unparseable.
    """
    if not value or not isinstance(value, dict):
        return None

    date_time = value.get("dateTime")
    if date_time:
        if not isinstance(date_time, str):
            return None
        try:
            dt = datetime.fromisoformat(date_time.replace("Z", "+00:00"))
        except ValueError:
            return None
        return ensure_aware(dt, tz)

    day = value.get("date")
    if day:
        if not isinstance(day, str):
            return None
        try:
            parsed = date.fromisoformat(day)
        except ValueError:
            return None
        return datetime.combine(parsed, time.min, tzinfo=tz)

    return None


def event_span(
    event: TaggedEvent, tz: ZoneInfo = UTC
) -> Optional[Tuple[datetime, datetime]]:
    """Absolute ``(start, end)`` in UTC, or None if the event is malformed."""
    start = parse_event_time(event.start, tz)
    end = parse_event_time(event.end, tz)
    if start is None or end is None:
        logger.debug(f"Dropping event {event.event_id!r} with unreadable bounds")
        return None

    # A date-only event that starts and ends on the same day covers that day
    if event.is_all_day and "dateTime" not in event.end and end <= start:
        end = start + timedelta(days=1)

    start, end = start.astimezone(UTC), end.astimezone(UTC)
    if end <= start:
        logger.debug(f"Dropping event {event.event_id!r}: end {end} <= start {start}")
        return None

    return start, end


def effective_start(event: TaggedEvent, tz: ZoneInfo = UTC) -> datetime:
    return parse_event_time(event.start, tz) or EARLIEST


def clip_to_window(
    events: Iterable[TaggedEvent],
    window_start: datetime,
    window_end: datetime,
    tz: ZoneInfo = UTC,
) -> List[BusyPeriod]:
    """Clip every event to ``[window_start, window_end)``, sorted by start."""
    window_start = as_utc(window_start, tz)
    window_end = as_utc(window_end, tz)

    periods: List[BusyPeriod] = []
    for event in events:
        span = event_span(event, tz)
        if span is None:
            continue
        start, end = span
        if end <= window_start or start >= window_end:
            continue
        periods.append(BusyPeriod(max(start, window_start), min(end, window_end)))

    periods.sort(key=lambda period: period.start)
    return periods


def merge_busy_periods(periods: Iterable[BusyPeriod]) -> List[BusyPeriod]:
    """Coalesce overlapping or touching periods into a disjoint cover."""
    merged: List[BusyPeriod] = []
    for period in sorted(periods, key=lambda p: p.start):
        if period.end <= period.start:
            continue
        if merged and period.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = BusyPeriod(last.start, max(last.end, period.end))
        else:
            merged.append(period)
    return merged


def build_timeline(
    events: Iterable[TaggedEvent],
    window_start: datetime,
    window_end: datetime,
    tz: ZoneInfo = UTC,
) -> MergedTimeline:
    window_start = as_utc(window_start, tz)
    window_end = as_utc(window_end, tz)
    periods = clip_to_window(events, window_start, window_end, tz)
    return MergedTimeline(
        window_start=window_start,
        window_end=window_end,
        periods=merge_busy_periods(periods),
    )
