"""Fan-out over participants' calendars into one sorted event list."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence
from zoneinfo import ZoneInfo

from group_scheduler.calendar_client import CalendarClient, to_rfc3339
from group_scheduler.config import GoogleOAuthConfig
from group_scheduler.models import Participant, TaggedEvent
from group_scheduler.scheduling.timeline import UTC, effective_start

logger = logging.getLogger(__name__)


class RemoteEventSource(Protocol):
    def list_calendars(self) -> List[Dict[str, Any]]:
        ...

    def list_events(
        self, calendar_id: str, time_min: str, time_max: str
    ) -> List[Dict[str, Any]]:
        ...


SourceFactory = Callable[[Participant], RemoteEventSource]


def google_source_factory(oauth: Optional[GoogleOAuthConfig] = None) -> SourceFactory:
    def factory(participant: Participant) -> RemoteEventSource:
        return CalendarClient(participant, oauth)

    return factory


@dataclass
class SchedulingContext:
    """Everything one scheduling request needs to reach the calendars."""

    participants: Sequence[Participant]
    source_factory: SourceFactory
    max_workers: int = 4
    tz: ZoneInfo = UTC

    @property
    def labels(self) -> List[str]:
        return [participant.label for participant in self.participants]


class CalendarAggregator:
    """Collects tagged events for every participant in a context.

    A participant whose calendar list cannot be read, or a single calendar
    whose events cannot be fetched, contributes nothing; the rest of the
    aggregation carries on.
    """

    def __init__(self, context: SchedulingContext):
        self.context = context

    async def fetch_events(
        self, window_start: datetime, window_end: datetime
    ) -> List[TaggedEvent]:
        participants = list(self.context.participants)
        if not participants:
            return []

        time_min = to_rfc3339(window_start)
        time_max = to_rfc3339(window_end)
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(
            max_workers=self.context.max_workers,
            thread_name_prefix="calendar-fetch",
        )

        try:
            tasks = [
                self._fetch_participant(loop, executor, index, participant, time_min, time_max)
                for index, participant in enumerate(participants)
            ]
            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            # Abandon anything still queued if the request was cancelled
            executor.shutdown(wait=False, cancel_futures=True)

        events: List[TaggedEvent] = []
        for participant, result in zip(participants, results):
            if isinstance(result, Exception):
                logger.error(f"Participant fetch error for {participant.label}: {result}")
                continue
            events.extend(result)

        tz = self.context.tz
        events.sort(key=lambda event: effective_start(event, tz))

        logger.info(
            f"Aggregated {len(events)} events across {len(participants)} participants"
        )
        return events

    def fetch_events_sync(
        self, window_start: datetime, window_end: datetime
    ) -> List[TaggedEvent]:
        return asyncio.run(self.fetch_events(window_start, window_end))

    async def _fetch_participant(
        self,
        loop: asyncio.AbstractEventLoop,
        executor: ThreadPoolExecutor,
        index: int,
        participant: Participant,
        time_min: str,
        time_max: str,
    ) -> List[TaggedEvent]:
        try:
            source = await loop.run_in_executor(
                executor, self.context.source_factory, participant
            )
            calendars = await loop.run_in_executor(executor, source.list_calendars)
        except Exception as e:
            logger.warning(f"Could not fetch calendars for {participant.label}: {e}")
            return []

        logger.info(f"Found {len(calendars)} calendars for {participant.label}")

        tasks = [
            self._fetch_calendar(
                loop, executor, source, index, participant, calendar, time_min, time_max
            )
            for calendar in calendars
            if calendar.get("id")
        ]
        results = await asyncio.gather(*tasks)
        return [event for calendar_events in results for event in calendar_events]

    async def _fetch_calendar(
        self,
        loop: asyncio.AbstractEventLoop,
        executor: ThreadPoolExecutor,
        source: RemoteEventSource,
        index: int,
        participant: Participant,
        calendar: Dict[str, Any],
        time_min: str,
        time_max: str,
    ) -> List[TaggedEvent]:
        calendar_id = calendar["id"]
        try:
            raw_events = await loop.run_in_executor(
                executor, source.list_events, calendar_id, time_min, time_max
            )
        except Exception as e:
            logger.warning(
                f"Could not fetch events from calendar {calendar.get('summary', calendar_id)} "
                f"for {participant.label}: {e}"
            )
            return []

        tagged: List[TaggedEvent] = []
        for event in raw_events:
            if not isinstance(event, dict):
                logger.debug(f"Skipping malformed event in {calendar_id}: {event!r}")
                continue
            tagged.append(
                TaggedEvent.from_api(
                    event,
                    owner=participant.label,
                    calendar_id=calendar_id,
                    calendar_name=calendar.get("summary"),
                    participant_index=index + 1,
                )
            )
        return tagged
