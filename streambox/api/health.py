"""Health endpoints: process health, liveness and readiness."""
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from streambox.api.schemas import HealthOut
from streambox.services import Components, get_components

router = APIRouter(tags=["health"])
logger = logging.getLogger("streambox.health")

# Monitor counts as stalled after this many missed check intervals.
STALE_AFTER_INTERVALS = 3


@router.get("/health", response_model=HealthOut)
async def health(components: Components = Depends(get_components)):
    """Version and process uptime."""
    return HealthOut(
        status="healthy",
        version=components.settings.VERSION,
        uptime=int(time.monotonic() - components.started_at),
    )


@router.get("/health/live")
async def liveness():
    """Liveness: process is running. No dependencies checked."""
    return {"status": "ok"}


@router.get("/health/ready")
async def readiness(components: Components = Depends(get_components)):
    """Readiness: the stream monitor is running and has checked recently."""
    errors = []
    if not components.monitor.running:
        errors.append("monitor not running")

    interval = components.settings.CHECK_INTERVAL
    uptime = time.monotonic() - components.started_at
    last_check = components.status.snapshot().last_check
    if last_check is None:
        if uptime > interval * STALE_AFTER_INTERVALS:
            errors.append("monitor has not checked yet")
    else:
        age = (datetime.now(timezone.utc) - last_check).total_seconds()
        if age > interval * STALE_AFTER_INTERVALS:
            logger.warning("monitor stalled: last check %.1fs ago", age)
            errors.append("monitor stalled")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "errors": errors},
        )
    return {"status": "ok"}
