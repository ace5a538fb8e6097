import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, conint

from group_scheduler.config import SchedulerConfig, load_config
from group_scheduler.models import NoParticipantsError, Participant, PreferenceHint, TimeSlot
from group_scheduler.scheduler import GroupScheduler

logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.WARNING)


class EngineState:
    def __init__(self):
        self.config: Optional[SchedulerConfig] = None
        self.scheduler: Optional[GroupScheduler] = None
        self.running = False


state = EngineState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load configuration and build the scheduler once per process."""
    logger.info("Starting group-scheduler engine...")

    if state.scheduler is None:
        state.config = load_config(os.environ.get("SCHEDULER_CONFIG"))
        state.scheduler = GroupScheduler(state.config)
    state.running = True

    yield

    logger.info("Shutting down group-scheduler engine...")
    state.running = False


app = FastAPI(title="Group Scheduler Engine", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request body validation failures as 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# Request models
class ParticipantModel(BaseModel):
    label: str
    access_token: str
    refresh_token: Optional[str] = None

    def to_participant(self) -> Participant:
        return Participant(
            label=self.label,
            credential=self.access_token,
            refresh_token=self.refresh_token,
        )


class WindowRequest(BaseModel):
    participants: list[ParticipantModel]
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class FirstFitRequest(WindowRequest):
    duration_minutes: Optional[int] = Field(default=None, gt=0)


class RankedRequest(WindowRequest):
    durations: Optional[list[conint(gt=0)]] = None


class PreferenceHintModel(BaseModel):
    participant: str
    date: str = ""
    time: str = ""
    notes: str = ""


class PreferredRequest(BaseModel):
    participants: list[ParticipantModel]
    preferences: list[PreferenceHintModel] = []
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    horizon_days: Optional[int] = Field(default=None, gt=0)


class BookRequest(BaseModel):
    participants: list[ParticipantModel]
    start_time: datetime
    end_time: datetime
    summary: str
    description: str = ""
    attendees: Optional[list[str]] = None


def _get_scheduler() -> GroupScheduler:
    if not state.scheduler:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduler not initialized",
        )
    return state.scheduler


def _participants(models: list[ParticipantModel]) -> list[Participant]:
    return [model.to_participant() for model in models]


def _no_participants(e: NoParticipantsError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": str(e), "error_type": "no_participants"},
    )


# ============================================================================
# Status endpoints
# ============================================================================


@app.get("/api/status")
async def get_status():
    return {
        "status": "running" if state.running else "stopped",
        "timezone": state.config.timezone if state.config else None,
    }


# ============================================================================
# Scheduling endpoints
# ============================================================================


@app.post("/api/schedule/first-fit")
async def first_fit(req: FirstFitRequest):
    scheduler = _get_scheduler()
    try:
        slot = await scheduler.find_first_fit(
            _participants(req.participants),
            duration_minutes=req.duration_minutes,
            start=req.start,
            end=req.end,
        )
        return {"status": "ok", "slot": slot.to_dict() if slot else None}
    except NoParticipantsError as e:
        raise _no_participants(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("First-fit search error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search for a free slot",
        )


@app.post("/api/schedule/ranked")
async def ranked(req: RankedRequest):
    scheduler = _get_scheduler()
    try:
        result = await scheduler.find_ranked(
            _participants(req.participants),
            start=req.start,
            end=req.end,
            durations=req.durations,
        )
        return {"status": "ok", **result.to_dict()}
    except NoParticipantsError as e:
        raise _no_participants(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("Ranked availability error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to rank availability",
        )


@app.post("/api/schedule/preferred")
async def preferred(req: PreferredRequest):
    scheduler = _get_scheduler()
    hints = [
        PreferenceHint(
            participant=hint.participant,
            date=hint.date,
            time=hint.time,
            notes=hint.notes,
        )
        for hint in req.preferences
    ]
    try:
        result = await scheduler.find_preferred(
            _participants(req.participants),
            hints,
            duration_minutes=req.duration_minutes,
            horizon_days=req.horizon_days,
        )
        return {"status": "ok", **result.to_dict()}
    except NoParticipantsError as e:
        raise _no_participants(e)
    except Exception:
        logger.exception("Preferred time search error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search for a preferred slot",
        )


@app.post("/api/schedule/events")
async def list_events(req: WindowRequest):
    scheduler = _get_scheduler()
    try:
        events, formatted = await scheduler.describe_events(
            _participants(req.participants), start=req.start, end=req.end
        )
        return {
            "status": "ok",
            "events": [event.to_dict() for event in events],
            "formatted": formatted,
        }
    except NoParticipantsError as e:
        raise _no_participants(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception("List events error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list events",
        )


@app.post("/api/schedule/book")
async def book(req: BookRequest):
    scheduler = _get_scheduler()
    if req.end_time <= req.start_time:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_time must be after start_time",
        )
    try:
        result = await scheduler.book(
            _participants(req.participants),
            TimeSlot(req.start_time, req.end_time),
            req.summary,
            description=req.description,
            attendees=req.attendees,
        )
        return {"status": "ok" if result.success else "error", **result.to_dict()}
    except NoParticipantsError as e:
        raise _no_participants(e)
    except Exception:
        logger.exception("Booking error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to book event",
        )


def run_engine():
    import argparse

    parser = argparse.ArgumentParser(description="Group Scheduler Engine API")
    parser.add_argument(
        "--host", type=str, default=None, help="TCP host to bind to (e.g., 127.0.0.1)"
    )
    parser.add_argument(
        "--port", type=int, default=None, help="TCP port to bind to (e.g., 8001)"
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Path to config.yaml"
    )
    args = parser.parse_args()

    state.config = load_config(args.config)
    state.scheduler = GroupScheduler(state.config)

    host = args.host or state.config.engine.host
    port = args.port or state.config.engine.port

    if host and port:
        logger.info(f"Starting Engine API on TCP {host}:{port}")
        config = uvicorn.Config(app, host=host, port=port, log_level="info")
    else:
        socket_path = state.config.engine.socket_path
        if Path(socket_path).exists():
            Path(socket_path).unlink()
        logger.info(f"Starting Engine API on Unix socket {socket_path}")
        config = uvicorn.Config(app, uds=socket_path, log_level="info")

    server = uvicorn.Server(config)
    server.run()
