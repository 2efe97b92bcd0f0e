"""Health check endpoint."""
import os
import time
from datetime import datetime, timezone

import psutil
from fastapi import APIRouter, Request
from pydantic import BaseModel

from comercialhg.config.settings import get_settings

router = APIRouter()

HEALTH_PATH = "/health"

# Epoch seconds at which the operating system started this process
PROCESS_STARTED_AT = psutil.Process(os.getpid()).create_time()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    uptime: float
    environment: str


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def process_uptime() -> float:
    """Seconds since the server process started."""
    return max(0.0, time.time() - PROCESS_STARTED_AT)


def _environment(request: Request) -> str:
    settings = getattr(request.app.state, "settings", None) or get_settings()
    return settings.environment


@router.get(HEALTH_PATH, response_model=HealthResponse, tags=["health"])
async def health_check(request: Request):
    """
    Liveness probe.

    Answers 200 whenever the process is serving, independent of the data
    store or any other dependency.

    **Returns:**
    - `status`: always "OK"
    - `timestamp`: current UTC time (ISO-8601)
    - `uptime`: process uptime in seconds
    - `environment`: configured environment name
    """
    return HealthResponse(
        status="OK",
        timestamp=utc_timestamp(),
        uptime=process_uptime(),
        environment=_environment(request),
    )
