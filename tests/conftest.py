"""Pytest fixtures for group scheduler tests."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest

from group_scheduler.config import SchedulerConfig
from group_scheduler.models import Participant, TaggedEvent

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Monday
BASE_DAY = "2026-03-02"


def at(clock: str, day: str = BASE_DAY) -> datetime:
    """Aware UTC datetime for ``HH:MM`` on ``day``."""
    return datetime.fromisoformat(f"{day}T{clock}:00").replace(tzinfo=timezone.utc)


def busy(owner: str, start: str, end: str, day: str = BASE_DAY, **extra) -> TaggedEvent:
    """Timed event owned by ``owner`` between two ``HH:MM`` clock times."""
    return TaggedEvent(
        owner=owner,
        source_calendar_id=extra.get("calendar_id", f"{owner}-primary"),
        start={"dateTime": f"{day}T{start}:00Z"},
        end={"dateTime": f"{day}T{end}:00Z"},
        summary=extra.get("summary", "Busy"),
        calendar_name=extra.get("calendar_name"),
        event_id=extra.get("event_id"),
    )


def api_event(event_id: str, start: str, end: str, summary: str = "Busy") -> Dict[str, Any]:
    """Raw Calendar API event dict."""
    return {
        "id": event_id,
        "summary": summary,
        "start": {"dateTime": start},
        "end": {"dateTime": end},
    }


class FakeSource:
    """In-memory stand-in for one participant's calendar account."""

    def __init__(
        self,
        calendars: Optional[List[Dict[str, Any]]] = None,
        events: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        failing_calendars: Optional[set] = None,
        fail_listing: bool = False,
        fail_create: bool = False,
    ):
        self.calendars = calendars if calendars is not None else [
            {"id": "primary", "summary": "Primary"}
        ]
        self.events = events or {}
        self.failing_calendars = failing_calendars or set()
        self.fail_listing = fail_listing
        self.fail_create = fail_create
        self.list_events_calls: List[tuple] = []
        self.created: List[tuple] = []

    def list_calendars(self) -> List[Dict[str, Any]]:
        if self.fail_listing:
            raise RuntimeError("calendar list unavailable")
        return list(self.calendars)

    def list_events(self, calendar_id: str, time_min: str, time_max: str):
        self.list_events_calls.append((calendar_id, time_min, time_max))
        if calendar_id in self.failing_calendars:
            raise RuntimeError(f"calendar {calendar_id} unavailable")
        return list(self.events.get(calendar_id, []))

    def get_primary_calendar_id(self) -> str:
        return "primary"

    def create_event(self, event_data: Dict[str, Any], calendar_id: str = "primary"):
        if self.fail_create:
            raise RuntimeError("insert rejected")
        self.created.append((calendar_id, event_data))
        return {"id": f"evt-{len(self.created)}"}


class FakeSourceFactory:
    """Maps participant labels to fake sources; unknown labels fail."""

    def __init__(self, sources: Dict[str, FakeSource]):
        self.sources = sources
        self.requested: List[str] = []

    def __call__(self, participant: Participant) -> FakeSource:
        self.requested.append(participant.label)
        if participant.label not in self.sources:
            raise RuntimeError(f"no account for {participant.label}")
        return self.sources[participant.label]


@pytest.fixture
def participants():
    """Three participants with synthetic access tokens."""
    return [
        Participant(label="alice@example.com", credential="token-a"),
        Participant(label="bob@example.com", credential="token-b"),
        Participant(label="carol@example.com", credential="token-c"),
    ]


@pytest.fixture
def fixed_now():
    """Monday 07:00 UTC."""
    return at("07:00")


@pytest.fixture
def scheduler_config():
    return SchedulerConfig()


@pytest.fixture
def mock_calendar_service():
    """Create a mock Calendar API service with common responses."""
    with patch("group_scheduler.calendar_client.build") as mock_build, patch(
        "group_scheduler.calendar_client.AuthorizedHttp"
    ):
        service = MagicMock()
        mock_build.return_value = service

        events = service.events()
        calendar_list = service.calendarList()

        # Default list events
        events.list().execute.return_value = {
            "items": [
                {
                    "id": "evt123",
                    "summary": "Mock Event",
                    "start": {"dateTime": "2024-01-01T10:00:00Z"},
                    "end": {"dateTime": "2024-01-01T11:00:00Z"},
                }
            ]
        }

        # Default insert
        events.insert().execute.return_value = {
            "id": "new_evt_123",
            "htmlLink": "https://calendar.google.com/event?id=new_evt_123",
        }

        # Default calendar list
        calendar_list.list().execute.return_value = {
            "items": [
                {"id": "me@example.com", "summary": "Me", "primary": True},
                {"id": "team@group.calendar.google.com", "summary": "Team"},
            ]
        }
        calendar_list.get().execute.return_value = {"id": "me@example.com"}

        yield service
