"""
Pocket Diary Backend: Keep-Alive Loop
=======================================

What:  Background task that touches the database (and optionally a public
       URL) every KEEPALIVE_INTERVAL seconds.
Why:   Free hosting tiers suspend idle services and idle databases.
Who:   Started and cancelled by the FastAPI lifespan in main.py.

Failures are logged and the loop carries on; it never takes the app down.
"""

import asyncio
import logging
from typing import Optional

import httpx
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from pocketdiary.config import settings

logger = logging.getLogger(__name__)


async def ping_once(engine: AsyncEngine, url: Optional[str] = None) -> bool:
    """
    One keep-alive round: SELECT 1, then GET `url` if given.

    Returns:
        True if every ping succeeded.
    """
    ok = True
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        ok = False
        logger.warning("Keep-alive database ping failed: %s", type(e).__name__)

    if url:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(url)
            logger.debug("Keep-alive GET %s → %d", url, response.status_code)
        except httpx.HTTPError as e:
            ok = False
            logger.warning("Keep-alive GET %s failed: %s", url, type(e).__name__)

    return ok


async def keepalive_loop(engine: AsyncEngine, interval: int, url: Optional[str] = None) -> None:
    """Run ping_once every `interval` seconds until cancelled."""
    logger.info("Keep-alive started (every %ds)", interval)
    while True:
        await asyncio.sleep(interval)
        await ping_once(engine, url)


def start_keepalive(engine: AsyncEngine) -> Optional[asyncio.Task]:
    """Schedule the loop on the running event loop; None when disabled."""
    if settings.keepalive_interval <= 0:
        logger.info("Keep-alive disabled")
        return None
    return asyncio.create_task(
        keepalive_loop(engine, settings.keepalive_interval, settings.keepalive_url or None),
        name="keepalive",
    )


async def stop_keepalive(task: Optional[asyncio.Task]) -> None:
    """Cancel the loop and wait for it to finish."""
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Keep-alive stopped")
