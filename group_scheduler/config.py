"""Configuration handling for the group scheduler."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import yaml  # type: ignore
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# Load environment variables from .env file if it exists
load_dotenv()


DEFAULT_SCOPES = ["https://www.googleapis.com/auth/calendar"]


@dataclass
class GoogleOAuthConfig:
    """OAuth client used to refresh participant access tokens."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    token_uri: str = "https://oauth2.googleapis.com/token"
    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))

    @property
    def can_refresh(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GoogleOAuthConfig":
        """Create OAuth configuration from dictionary."""
        # Client credentials can be specified in environment variables
        client_id = data.get("client_id") or os.environ.get("GOOGLE_CLIENT_ID")
        client_secret = data.get("client_secret") or os.environ.get(
            "GOOGLE_CLIENT_SECRET"
        )

        if not client_id or not client_secret:
            logger.warning(
                "Google OAuth client not configured - expired participant tokens "
                "cannot be refreshed"
            )

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            token_uri=data.get("token_uri", "https://oauth2.googleapis.com/token"),
            scopes=data.get("scopes", list(DEFAULT_SCOPES)),
        )


@dataclass
class AggregationConfig:
    """Fan-out settings for fetching participant calendars."""

    max_workers: int = 4
    window_days: int = 7

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(
                f"max_workers must be at least 1 (got {self.max_workers})"
            )
        if self.window_days < 1:
            raise ValueError(
                f"window_days must be at least 1 (got {self.window_days})"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregationConfig":
        return cls(
            max_workers=int(
                data.get("max_workers")
                or os.environ.get("SCHEDULER_MAX_WORKERS", "4")
            ),
            window_days=data.get("window_days", 7),
        )


@dataclass
class SearchPolicyConfig:
    """Policy knobs for the slot finders."""

    candidate_durations: List[int] = field(default_factory=lambda: [30, 60, 90, 120])
    free_step_minutes: int = 15
    partial_step_minutes: int = 30
    top_n: int = 5
    horizon_days: int = 30
    day_start_hour: int = 8
    day_end_hour: int = 20
    default_duration_minutes: int = 60

    def __post_init__(self):
        """Validate search policy."""
        if not self.candidate_durations:
            raise ValueError("candidate_durations must contain at least one duration")

        for duration in self.candidate_durations:
            if duration <= 0:
                raise ValueError(
                    f"Invalid candidate duration: {duration}. Durations must be positive minutes"
                )

        if self.free_step_minutes <= 0 or self.partial_step_minutes <= 0:
            raise ValueError("Step sizes must be positive minutes")

        if self.top_n < 1:
            raise ValueError(f"top_n must be at least 1 (got {self.top_n})")

        if self.horizon_days < 1:
            raise ValueError(f"horizon_days must be at least 1 (got {self.horizon_days})")

        if not (0 <= self.day_start_hour < self.day_end_hour <= 24):
            raise ValueError(
                "Candidate hours must satisfy 0 <= day_start_hour < day_end_hour <= 24 "
                f"(start: {self.day_start_hour}, end: {self.day_end_hour})"
            )

        if self.default_duration_minutes <= 0:
            raise ValueError("default_duration_minutes must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchPolicyConfig":
        """Create SearchPolicyConfig from dictionary."""
        return cls(
            candidate_durations=data.get("candidate_durations", [30, 60, 90, 120]),
            free_step_minutes=data.get("free_step_minutes", 15),
            partial_step_minutes=data.get("partial_step_minutes", 30),
            top_n=data.get("top_n", 5),
            horizon_days=data.get("horizon_days", 30),
            day_start_hour=data.get("day_start_hour", 8),
            day_end_hour=data.get("day_end_hour", 20),
            default_duration_minutes=data.get("default_duration_minutes", 60),
        )


@dataclass
class EngineConfig:
    """Where the scheduling API listens."""

    host: Optional[str] = None
    port: Optional[int] = None
    socket_path: str = "/tmp/group-scheduler.sock"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        port = data.get("port") or os.environ.get("ENGINE_PORT")
        return cls(
            host=data.get("host") or os.environ.get("ENGINE_HOST"),
            port=int(port) if port else None,
            socket_path=data.get("socket_path")
            or os.environ.get("ENGINE_SOCKET", "/tmp/group-scheduler.sock"),
        )


@dataclass
class SchedulerConfig:
    """Top-level scheduler configuration."""

    timezone: str = "UTC"
    google: GoogleOAuthConfig = field(default_factory=GoogleOAuthConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    search: SearchPolicyConfig = field(default_factory=SearchPolicyConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)

    def __post_init__(self):
        """Validate server configuration."""
        try:
            ZoneInfo(self.timezone)
        except Exception as e:
            raise ValueError(
                f"Invalid timezone '{self.timezone}': {e}. "
                "Must be a valid IANA timezone (e.g., 'America/Los_Angeles')"
            )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchedulerConfig":
        """Create configuration from dictionary."""
        return cls(
            timezone=data.get("timezone")
            or os.environ.get("SCHEDULER_TIMEZONE", "UTC"),
            google=GoogleOAuthConfig.from_dict(data.get("google") or {}),
            aggregation=AggregationConfig.from_dict(data.get("aggregation") or {}),
            search=SearchPolicyConfig.from_dict(data.get("search") or {}),
            engine=EngineConfig.from_dict(data.get("engine") or {}),
        )


def load_config(config_path: Optional[str] = None) -> SchedulerConfig:
    """Load configuration from file or environment variables.

    Args:
        config_path: Path to configuration file

    Returns:
        Scheduler configuration

    Raises:
        ValueError: If configuration is invalid
    """
    # Container paths first (Docker), then local dev paths
    default_locations = [
        Path("/app/config/config.yaml"),
        Path("config/config.yaml"),
        Path("config/config.yml"),
        Path("config.yaml"),
        Path("config.yml"),
        Path("~/.config/group-scheduler/config.yaml"),
        Path("/etc/group-scheduler/config.yaml"),
    ]

    config_data: Dict[str, Any] = {}

    if config_path:
        try:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {config_path}")
        except FileNotFoundError:
            logger.warning(f"Configuration file not found: {config_path}")
    else:
        for path in default_locations:
            expanded_path = path.expanduser()
            if expanded_path.exists():
                with open(expanded_path, "r") as f:
                    config_data = yaml.safe_load(f) or {}
                logger.info(f"Loaded configuration from {expanded_path}")
                break

    if not config_data:
        logger.info("No configuration file found, using environment variables")

    try:
        return SchedulerConfig.from_dict(config_data)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid configuration: {e}")
