"""Google Calendar client acting on behalf of one participant."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httplib2
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

from group_scheduler.config import GoogleOAuthConfig
from group_scheduler.models import Participant

logger = logging.getLogger(__name__)


def to_rfc3339(value: datetime) -> str:
    """Format an aware datetime the way the Calendar API expects."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class CalendarClient:
    """Client for reading (and booking into) one participant's calendars."""

    def __init__(
        self,
        participant: Participant,
        oauth: Optional[GoogleOAuthConfig] = None,
        timeout: float = 30.0,
    ):
        self.participant = participant
        self.oauth: GoogleOAuthConfig = oauth or GoogleOAuthConfig()
        self.timeout = timeout
        self.service: Any = None
        self._creds: Optional[Credentials] = None

    def _get_credentials(self) -> Credentials:
        """Wrap the participant's access token in Google credentials."""
        creds = Credentials(
            token=self.participant.credential,
            refresh_token=self.participant.refresh_token,
            token_uri=self.oauth.token_uri,
            client_id=self.oauth.client_id,
            client_secret=self.oauth.client_secret,
            scopes=self.oauth.scopes,
        )

        if creds.expired and self._can_refresh(creds):
            creds.refresh(Request())

        return creds

    def _can_refresh(self, creds: Credentials) -> bool:
        return bool(creds.refresh_token) and self.oauth.can_refresh

    def connect(self):
        """Initialize the Calendar service."""
        try:
            self._creds = self._get_credentials()
            self.service = build(
                "calendar", "v3", credentials=self._creds, cache_discovery=False
            )
            logger.debug(f"Connected to Google Calendar for {self.participant.label}")
        except Exception as e:
            logger.error(
                f"Failed to connect to Google Calendar for {self.participant.label}: {e}"
            )
            raise

    def _ensure_connected(self) -> Any:
        """Ensure service is connected and return it."""
        if not self.service:
            self.connect()
        if not self.service:
            raise RuntimeError("Failed to connect to Calendar service")
        if self._creds is None:
            self._creds = self._get_credentials()
        return self.service

    def _execute(self, make_request: Callable[[Any], Any]) -> Dict[str, Any]:
        """Run a request on its own HTTP connection.

        httplib2 connections are not thread-safe, so every call gets a fresh
        one; AuthorizedHttp refreshes the token on a 401 when it can.
        """
        service = self._ensure_connected()
        http = AuthorizedHttp(self._creds, http=httplib2.Http(timeout=self.timeout))
        return make_request(service).execute(http=http)

    def list_calendars(self) -> List[Dict[str, Any]]:
        """List every calendar on the participant's calendar list."""
        calendars: List[Dict[str, Any]] = []
        page_token = None

        while True:
            result = self._execute(
                lambda service: service.calendarList().list(pageToken=page_token)
            )
            calendars.extend(result.get("items", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return calendars

    def list_events(
        self, calendar_id: str, time_min: str, time_max: str
    ) -> List[Dict[str, Any]]:
        """List events in a given time range, with recurrences expanded."""
        events: List[Dict[str, Any]] = []
        page_token = None

        while True:
            result = self._execute(
                lambda service: service.events().list(
                    calendarId=calendar_id,
                    timeMin=time_min,
                    timeMax=time_max,
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                )
            )
            events.extend(result.get("items", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return events

    def get_primary_calendar_id(self) -> str:
        """Resolve the primary calendar id, falling back to ``primary``."""
        try:
            result = self._execute(
                lambda service: service.calendarList().get(calendarId="primary")
            )
            return result.get("id") or "primary"
        except Exception as e:
            logger.warning(
                f"Could not get primary calendar ID for {self.participant.label}, "
                f"using 'primary' as fallback: {e}"
            )
            return "primary"

    def create_event(
        self, event_data: Dict[str, Any], calendar_id: str = "primary"
    ) -> Dict[str, Any]:
        """Create a new calendar event."""
        event = self._execute(
            lambda service: service.events().insert(
                calendarId=calendar_id, body=event_data
            )
        )
        logger.info(f"Created event for {self.participant.label}: {event.get('htmlLink')}")
        return event
