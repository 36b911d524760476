"""
Pocket Diary Backend: Health Check Route
==========================================

What:  GET /health for uptime probes and load balancers.
How:   SELECT 1 against the database plus the chat provider's local status
       (configured, circuit not open). No upstream call is made.

Status levels:
    - healthy:   database reachable and chat available
    - degraded:  database reachable, chat unconfigured or circuit open
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pocketdiary import __version__
from pocketdiary import database
from pocketdiary.schemas.common import HealthResponse
from pocketdiary.services.chat_service import chat_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check():
    db_status = "connected"
    overall = "healthy"

    try:
        async with database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", type(e).__name__)

    if not chat_service.api_key:
        chat_status = "unconfigured"
    elif not await chat_service.health_check():
        chat_status = "circuit_open"
    else:
        chat_status = "available"
    if chat_status != "available" and overall == "healthy":
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        chat=chat_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
