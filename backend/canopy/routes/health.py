"""
Canopy Backend: Health Check Route
===================================

What:  Liveness and readiness probe for load balancers and orchestrators.
How:   Runs SELECT 1 on a fresh session and reads the task queue state.

Status levels:
    healthy:    database reachable, bulk workers running       (HTTP 200)
    degraded:   database reachable, bulk workers stopped       (HTTP 200)
    unhealthy:  database unreachable                           (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text

from canopy import __version__
from canopy.context import AppContext
from canopy.dependencies import get_context
from canopy.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response, ctx: AppContext = Depends(get_context)) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with ctx.session_factory() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    queue_status = "running" if ctx.task_queue.is_running else "stopped"
    if overall == "healthy" and queue_status == "stopped":
        overall = "degraded"
    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        task_queue=queue_status,
        pending_operations=ctx.task_queue.pending,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
