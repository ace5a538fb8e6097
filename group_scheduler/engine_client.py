import logging
import os
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

SOCKET_PATH = os.environ.get("ENGINE_SOCKET", "/tmp/group-scheduler.sock")


class EngineClient:
    """Thin client for a running scheduler engine.

    Talks over the engine's Unix socket unless ``base_url`` is given.
    Participants are passed as dicts with ``label``, ``access_token`` and
    optionally ``refresh_token``.
    """

    def __init__(
        self,
        socket_path: str = SOCKET_PATH,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
    ):
        self.socket_path = socket_path
        self.base_url = base_url
        self.timeout = timeout
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            if self.base_url:
                self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout)
            else:
                transport = httpx.HTTPTransport(uds=self.socket_path)
                self._client = httpx.Client(
                    transport=transport,
                    base_url="http://localhost",
                    timeout=self.timeout,
                )
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.ConnectError:
            raise ConnectionError(
                f"Cannot connect to engine at {self.base_url or self.socket_path}. "
                "Is group-scheduler-engine running?"
            )
        except httpx.HTTPStatusError as e:
            error_detail = e.response.json().get("detail", str(e))
            raise RuntimeError(f"Engine error: {error_detail}")

    def get_status(self) -> dict[str, Any]:
        return self._request("GET", "/api/status")

    def find_first_fit(
        self,
        participants: list[dict[str, Any]],
        duration_minutes: Optional[int] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/api/schedule/first-fit",
            json={
                "participants": participants,
                "duration_minutes": duration_minutes,
                "start": start,
                "end": end,
            },
        )

    def find_ranked(
        self,
        participants: list[dict[str, Any]],
        start: Optional[str] = None,
        end: Optional[str] = None,
        durations: Optional[list[int]] = None,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/api/schedule/ranked",
            json={
                "participants": participants,
                "start": start,
                "end": end,
                "durations": durations,
            },
        )

    def find_preferred(
        self,
        participants: list[dict[str, Any]],
        preferences: list[dict[str, str]],
        duration_minutes: Optional[int] = None,
        horizon_days: Optional[int] = None,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/api/schedule/preferred",
            json={
                "participants": participants,
                "preferences": preferences,
                "duration_minutes": duration_minutes,
                "horizon_days": horizon_days,
            },
        )

    def list_events(
        self,
        participants: list[dict[str, Any]],
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/api/schedule/events",
            json={"participants": participants, "start": start, "end": end},
        )

    def book(
        self,
        participants: list[dict[str, Any]],
        start_time: str,
        end_time: str,
        summary: str,
        description: str = "",
        attendees: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        return self._request(
            "POST",
            "/api/schedule/book",
            json={
                "participants": participants,
                "start_time": start_time,
                "end_time": end_time,
                "summary": summary,
                "description": description,
                "attendees": attendees,
            },
        )


_engine_client: Optional[EngineClient] = None


def get_engine_client() -> EngineClient:
    global _engine_client
    if _engine_client is None:
        _engine_client = EngineClient()
    return _engine_client
