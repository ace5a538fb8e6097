"""Fixed-duration slot scan with per-participant conflict attribution.

Two scans share the same candidate evaluation:

* ``find_free_slots`` walks each candidate duration at a fine step and keeps
  the first slot nobody conflicts with.
* ``find_partial_availability`` is the fallback when no such slot exists. It
  walks at a coarser step, keeps slots where some (but not all) conflict
  entries are present, and returns the least conflicted few.

Conflict entries for different participants are merged only when their
sub-ranges start and end at exactly the same instant.

The participant total that bounds partial slots is the list passed in. The
scheduler passes only participants whose calendars it can read, so invitees
without calendar access neither conflict nor count toward the total.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple
from zoneinfo import ZoneInfo

from group_scheduler.models import AvailabilitySlot, ConflictInfo, TaggedEvent
from group_scheduler.scheduling.timeline import UTC, as_utc, event_span

logger = logging.getLogger(__name__)

DEFAULT_DURATIONS = (30, 60, 90, 120)
FREE_STEP_MINUTES = 15
PARTIAL_STEP_MINUTES = 30
DEFAULT_TOP_N = 5

Span = Tuple[datetime, datetime]


def _validate_scan(durations: Sequence[int], step_minutes: int) -> None:
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive (got {step_minutes})")
    for duration in durations:
        if duration <= 0:
            raise ValueError(f"Durations must be positive minutes (got {duration})")


def _spans_by_participant(
    events: Iterable[TaggedEvent], participants: Sequence[str], tz: ZoneInfo
) -> Dict[str, List[Span]]:
    wanted = set(participants)
    spans: Dict[str, List[Span]] = defaultdict(list)
    for event in events:
        if event.owner not in wanted:
            continue
        span = event_span(event, tz)
        if span is not None:
            spans[event.owner].append(span)
    return spans


def collect_conflicts(
    spans: Dict[str, List[Span]],
    participants: Sequence[str],
    slot_start: datetime,
    slot_end: datetime,
) -> List[ConflictInfo]:
    """Conflict entries for one candidate slot, in participant order."""
    conflicts: List[ConflictInfo] = []
    for label in participants:
        for event_start, event_end in spans.get(label, []):
            if not (event_start < slot_end and event_end > slot_start):
                continue

            conflict_start = max(slot_start, event_start)
            conflict_end = min(slot_end, event_end)

            existing = next(
                (
                    c
                    for c in conflicts
                    if c.start == conflict_start and c.end == conflict_end
                ),
                None,
            )
            if existing:
                existing.add_participant(label)
            else:
                conflicts.append(
                    ConflictInfo(conflict_start, conflict_end, [label])
                )
    return conflicts


def find_free_slots(
    events: Iterable[TaggedEvent],
    participants: Sequence[str],
    start: datetime,
    end: datetime,
    durations: Sequence[int] = DEFAULT_DURATIONS,
    step_minutes: int = FREE_STEP_MINUTES,
    tz: ZoneInfo = UTC,
) -> List[AvailabilitySlot]:
    """At most one fully free slot per duration, earliest first."""
    _validate_scan(durations, step_minutes)
    if not participants:
        return []

    start = as_utc(start, tz)
    end = as_utc(end, tz)
    spans = _spans_by_participant(events, participants, tz)
    step = timedelta(minutes=step_minutes)

    slots: List[AvailabilitySlot] = []
    for duration in durations:
        length = timedelta(minutes=duration)
        current = start
        while current + length <= end:
            slot_end = current + length
            if not collect_conflicts(spans, participants, current, slot_end):
                slots.append(AvailabilitySlot(current, slot_end, duration, []))
                break
            current += step

    logger.info(
        f"Found {len(slots)} fully free slots for {len(participants)} participants"
    )
    return slots


def find_partial_availability(
    events: Iterable[TaggedEvent],
    participants: Sequence[str],
    start: datetime,
    end: datetime,
    durations: Sequence[int] = DEFAULT_DURATIONS,
    step_minutes: int = PARTIAL_STEP_MINUTES,
    top_n: int = DEFAULT_TOP_N,
    tz: ZoneInfo = UTC,
) -> List[AvailabilitySlot]:
    """Least conflicted slots, fewest conflicts then longest duration first."""
    _validate_scan(durations, step_minutes)
    if not participants:
        return []

    start = as_utc(start, tz)
    end = as_utc(end, tz)
    spans = _spans_by_participant(events, participants, tz)
    step = timedelta(minutes=step_minutes)
    total = len(participants)

    candidates: List[AvailabilitySlot] = []
    for duration in durations:
        length = timedelta(minutes=duration)
        current = start
        while current + length <= end:
            slot_end = current + length
            conflicts = collect_conflicts(spans, participants, current, slot_end)
            # Slots where everyone conflicts are useless
            if 0 < len(conflicts) < total:
                candidates.append(
                    AvailabilitySlot(current, slot_end, duration, conflicts)
                )
            current += step

    candidates.sort(key=lambda slot: (len(slot.conflicts), -slot.duration_minutes))
    logger.info(
        f"Partial availability: {len(candidates)} candidates, returning top {top_n}"
    )
    return candidates[:top_n]
