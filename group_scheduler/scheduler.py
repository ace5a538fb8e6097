"""Request-level entry points: validate, aggregate, then search.

Every call builds its own :class:`SchedulingContext` from the participants
it was given, so concurrent requests never share credentials or timelines.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from group_scheduler.aggregator import (
    CalendarAggregator,
    SchedulingContext,
    SourceFactory,
    google_source_factory,
)
from group_scheduler.calendar_client import to_rfc3339
from group_scheduler.config import SchedulerConfig
from group_scheduler.formatting import format_events_by_participant
from group_scheduler.models import (
    AvailabilitySlot,
    NoParticipantsError,
    Participant,
    PreferenceHint,
    TaggedEvent,
    TimeSlot,
)
from group_scheduler.scheduling.first_fit import find_first_available_time
from group_scheduler.scheduling.preferences import BestTimeResult, find_best_time
from group_scheduler.scheduling.ranking import (
    find_free_slots,
    find_partial_availability,
)
from group_scheduler.scheduling.timeline import ensure_aware

logger = logging.getLogger(__name__)


@dataclass
class RankedAvailability:
    free_slots: List[AvailabilitySlot]
    partial_availability: List[AvailabilitySlot]
    participants: List[str]
    total_events: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "free_slots": [slot.to_dict() for slot in self.free_slots],
            "partial_availability": [
                slot.to_dict() for slot in self.partial_availability
            ],
            "participants": self.participants,
            "total_events": self.total_events,
        }


@dataclass
class BookingResult:
    slot: TimeSlot
    created: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.created)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "slot": self.slot.to_dict(),
            "created": self.created,
            "failed": self.failed,
        }


def usable_participants(participants: Iterable[Participant]) -> List[Participant]:
    """Participants with a credential, first occurrence of each label kept.

    Raises:
        NoParticipantsError: if nobody is left to schedule for
    """
    seen = set()
    usable: List[Participant] = []
    for participant in participants:
        if not participant.has_credential:
            logger.warning(f"No calendar credential for {participant.label}, skipping")
            continue
        if participant.label in seen:
            continue
        seen.add(participant.label)
        usable.append(participant)

    if not usable:
        raise NoParticipantsError("No calendar access available for any participants")
    return usable


class GroupScheduler:
    """Finds meeting times for a group of calendar owners."""

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        source_factory: Optional[SourceFactory] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or SchedulerConfig()
        self.tz = self.config.tzinfo
        self.source_factory = source_factory or google_source_factory(self.config.google)
        self._clock = clock or (lambda: datetime.now(self.tz))

    def now(self) -> datetime:
        return ensure_aware(self._clock(), self.tz)

    def _context(self, participants: Iterable[Participant]) -> SchedulingContext:
        return SchedulingContext(
            participants=usable_participants(participants),
            source_factory=self.source_factory,
            max_workers=self.config.aggregation.max_workers,
            tz=self.tz,
        )

    async def collect_events(
        self,
        participants: Iterable[Participant],
        start: datetime,
        end: datetime,
    ) -> Tuple[SchedulingContext, List[TaggedEvent]]:
        context = self._context(participants)
        events = await CalendarAggregator(context).fetch_events(start, end)
        return context, events

    def _window(
        self, start: Optional[datetime], end: Optional[datetime]
    ) -> Tuple[datetime, datetime]:
        start = ensure_aware(start, self.tz) if start else self.now()
        if end:
            end = ensure_aware(end, self.tz)
        else:
            end = start + timedelta(days=self.config.aggregation.window_days)
        if end <= start:
            raise ValueError("Search window end must be after its start")
        return start, end

    async def find_first_fit(
        self,
        participants: Iterable[Participant],
        duration_minutes: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[TimeSlot]:
        """Earliest slot where everyone is free, or None."""
        duration = duration_minutes or self.config.search.default_duration_minutes
        start, end = self._window(start, end)
        context, events = await self.collect_events(participants, start, end)
        return find_first_available_time(
            events,
            duration,
            start=start,
            end=end,
            participants=context.labels,
            tz=self.tz,
        )

    async def find_ranked(
        self,
        participants: Iterable[Participant],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        durations: Optional[Sequence[int]] = None,
    ) -> RankedAvailability:
        """Fully free slots, or the least conflicted ones when none exist."""
        policy = self.config.search
        durations = durations or policy.candidate_durations
        start, end = self._window(start, end)
        context, events = await self.collect_events(participants, start, end)
        labels = context.labels

        free_slots = find_free_slots(
            events,
            labels,
            start,
            end,
            durations=durations,
            step_minutes=policy.free_step_minutes,
            tz=self.tz,
        )

        partial: List[AvailabilitySlot] = []
        if not free_slots:
            partial = find_partial_availability(
                events,
                labels,
                start,
                end,
                durations=durations,
                step_minutes=policy.partial_step_minutes,
                top_n=policy.top_n,
                tz=self.tz,
            )

        return RankedAvailability(
            free_slots=free_slots,
            partial_availability=partial,
            participants=labels,
            total_events=len(events),
        )

    async def find_preferred(
        self,
        participants: Iterable[Participant],
        hints: Iterable[PreferenceHint] = (),
        duration_minutes: Optional[int] = None,
        horizon_days: Optional[int] = None,
    ) -> BestTimeResult:
        """Earliest free slot inside everyone's preferences, else first fit."""
        policy = self.config.search
        duration = duration_minutes or policy.default_duration_minutes
        horizon = horizon_days or policy.horizon_days
        now = self.now()
        fetch_end = now + timedelta(days=horizon, minutes=duration)

        context, events = await self.collect_events(participants, now, fetch_end)
        return find_best_time(
            events,
            list(hints),
            duration_minutes=duration,
            horizon_days=horizon,
            now=now,
            participants=context.labels,
            tz=self.tz,
            day_start_hour=policy.day_start_hour,
            day_end_hour=policy.day_end_hour,
        )

    async def describe_events(
        self,
        participants: Iterable[Participant],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Tuple[List[TaggedEvent], str]:
        """Aggregated events plus a text summary for an assistant prompt."""
        start, end = self._window(start, end)
        _, events = await self.collect_events(participants, start, end)
        return events, format_events_by_participant(events, start, end, self.tz)

    async def book(
        self,
        participants: Iterable[Participant],
        slot: TimeSlot,
        summary: str,
        description: str = "",
        attendees: Optional[Sequence[str]] = None,
    ) -> BookingResult:
        """Create the slot on each participant's primary calendar.

        A participant whose calendar rejects the event is reported in
        ``failed``; the others are still booked.
        """
        context = self._context(participants)
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": to_rfc3339(slot.start_time), "timeZone": "UTC"},
            "end": {"dateTime": to_rfc3339(slot.end_time), "timeZone": "UTC"},
            "attendees": [{"email": email} for email in attendees or []],
        }

        loop = asyncio.get_running_loop()
        result = BookingResult(slot=slot)
        for participant in context.participants:
            try:
                created = await loop.run_in_executor(
                    None, self._book_one, participant, body
                )
                result.created.append(created)
            except Exception as e:
                logger.error(f"Failed to create event for {participant.label}: {e}")
                result.failed.append(participant.label)

        logger.info(
            f"Booked {len(result.created)}/{len(context.participants)} participants"
        )
        return result

    def _book_one(self, participant: Participant, body: Dict[str, Any]) -> Dict[str, Any]:
        source: Any = self.source_factory(participant)
        calendar_id = source.get_primary_calendar_id()
        event = source.create_event(body, calendar_id)
        return {
            "participant": participant.label,
            "event_id": event.get("id"),
            "calendar_id": calendar_id,
        }
