"""Data model for the group scheduler."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterator, List, Optional


WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class NoParticipantsError(ValueError):
    """Raised when a scheduling request carries no usable participant."""


@dataclass(frozen=True)
class Participant:
    """A person whose calendars are consulted.

    ``credential`` is an opaque access token handed to the remote event
    source; ``label`` (usually an email address) is what results refer to.
    """

    label: str
    credential: str = field(repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)

    @property
    def has_credential(self) -> bool:
        return bool(self.credential and self.credential.strip())


@dataclass(frozen=True)
class TaggedEvent:
    """A raw provider event annotated with the participant that owns it."""

    owner: str
    source_calendar_id: str
    start: Dict[str, Any]
    end: Dict[str, Any]
    summary: Optional[str] = None
    calendar_name: Optional[str] = None
    event_id: Optional[str] = None
    participant_index: Optional[int] = None

    @classmethod
    def from_api(
        cls,
        event: Dict[str, Any],
        owner: str,
        calendar_id: str,
        calendar_name: Optional[str] = None,
        participant_index: Optional[int] = None,
    ) -> "TaggedEvent":
        start = event.get("start")
        end = event.get("end")
        # Non-dict boundaries become empty and are dropped as unreadable
        return cls(
            owner=owner,
            source_calendar_id=calendar_id,
            start=dict(start) if isinstance(start, dict) else {},
            end=dict(end) if isinstance(end, dict) else {},
            summary=event.get("summary"),
            calendar_name=calendar_name,
            event_id=event.get("id"),
            participant_index=participant_index,
        )

    @property
    def is_all_day(self) -> bool:
        return "dateTime" not in self.start and "date" in self.start

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.event_id,
            "summary": self.summary,
            "start": self.start,
            "end": self.end,
            "calendarId": self.source_calendar_id,
            "calendarName": self.calendar_name,
            "calendarOwner": self.owner,
            "participantIndex": self.participant_index,
        }


@dataclass(frozen=True)
class BusyPeriod:
    """Half-open busy interval ``[start, end)``."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


@dataclass
class MergedTimeline:
    """Disjoint busy periods sorted by start, built fresh per query."""

    window_start: datetime
    window_end: datetime
    periods: List[BusyPeriod] = field(default_factory=list)

    def __iter__(self) -> Iterator[BusyPeriod]:
        return iter(self.periods)

    def __len__(self) -> int:
        return len(self.periods)

    def is_busy(self, instant: datetime) -> bool:
        return any(period.contains(instant) for period in self.periods)

    def intersects(self, start: datetime, end: datetime) -> bool:
        for period in self.periods:
            if period.start >= end:
                break
            if period.overlaps(start, end):
                return True
        return False


@dataclass(frozen=True)
class TimeSlot:
    """A single proposed meeting time."""

    start_time: datetime
    end_time: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration": self.duration_minutes,
        }


@dataclass
class ConflictInfo:
    """Sub-range of a candidate slot during which some participants are busy."""

    start: datetime
    end: datetime
    conflicting_participants: List[str] = field(default_factory=list)

    def add_participant(self, label: str) -> None:
        if label not in self.conflicting_participants:
            self.conflicting_participants.append(label)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "conflicting_participants": list(self.conflicting_participants),
        }


@dataclass
class AvailabilitySlot:
    """Candidate slot; an empty ``conflicts`` list means everyone is free."""

    start: datetime
    end: datetime
    duration_minutes: int
    conflicts: List[ConflictInfo] = field(default_factory=list)

    @property
    def is_fully_free(self) -> bool:
        return not self.conflicts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration": self.duration_minutes,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }


@dataclass(frozen=True)
class PreferenceHint:
    """Free-text availability hint as a participant typed it."""

    participant: str
    date: str = ""
    time: str = ""
    notes: str = ""


@dataclass(frozen=True)
class PreferenceWindow:
    """Parsed day/hour constraint for one participant.

    An empty ``preferred_days`` set means any day is acceptable.
    """

    participant: str
    preferred_days: FrozenSet[str]
    start_hour: int
    end_hour: int

    def matches(self, slot_start: datetime) -> bool:
        day_name = WEEKDAY_NAMES[slot_start.weekday()]
        day_ok = not self.preferred_days or day_name in self.preferred_days
        return day_ok and self.start_hour <= slot_start.hour < self.end_hour

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant": self.participant,
            "preferred_days": sorted(self.preferred_days),
            "hour_window": {"start": self.start_hour, "end": self.end_hour},
        }
