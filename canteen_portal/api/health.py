"""
Canteen Portal — Health endpoint

Probes PostgreSQL and Redis; any failed probe turns the answer into a 503.
"""
import asyncio
import logging
from typing import Awaitable, Callable

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from canteen_portal.core.config import get_settings
from canteen_portal.core.redis_client import ping_redis
from canteen_portal.db.database import engine

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


async def _ping_database() -> bool:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


PROBES: dict[str, Callable[[], Awaitable[bool]]] = {
    "database": _ping_database,
    "redis": ping_redis,
}


async def _probe(name: str, check: Callable[[], Awaitable[bool]]) -> str:
    try:
        await asyncio.wait_for(check(), timeout=settings.HEALTH_CHECK_TIMEOUT)
    except Exception as exc:
        logger.warning("%s health check failed: %s", name, exc)
        return f"error: {str(exc)[:100]}"
    return "ok"


@router.get("/health")
async def health_check():
    results = await asyncio.gather(*(_probe(name, check) for name, check in PROBES.items()))
    deps = dict(zip(PROBES, results))
    healthy = all(state == "ok" for state in deps.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "dependencies": deps,
        },
    )
