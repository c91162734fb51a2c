"""
Monitoring Routes

Health check and Prometheus metrics endpoints.
"""

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from viewguard.config import settings
from viewguard.database import get_db
from viewguard.utils.cache import get_cache_manager
from viewguard.utils.metrics import set_app_info, update_health_status, update_uptime

router = APIRouter(tags=["Monitoring"])

APP_START_TIME = time.time()

set_app_info(version=settings.app_version, environment=settings.environment)


class HealthStatus(BaseModel):
    status: str
    timestamp: str
    version: str
    uptime_seconds: float
    checks: dict[str, dict[str, Any]]


async def _check_database(db: AsyncSession) -> dict[str, Any]:
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        update_health_status("database", False)
        return {"status": "unhealthy", "error": str(e)}
    update_health_status("database", True)
    return {"status": "healthy", "latency_ms": round((time.perf_counter() - start) * 1000, 2)}


async def _check_cache() -> dict[str, Any]:
    if not settings.redis_url:
        return {"status": "not_configured"}
    cache = await get_cache_manager()
    healthy = cache.enabled
    update_health_status("redis", healthy)
    return {"status": "healthy" if healthy else "unhealthy"}


@router.get("/health", response_model=HealthStatus)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthStatus:
    """
    Health probe.

    Reports the database and, when configured, the Redis cache. The status is
    ``degraded`` when a configured dependency is unreachable.
    """
    checks = {
        "database": await _check_database(db),
        "redis": await _check_cache(),
    }
    all_healthy = all(check["status"] in ("healthy", "not_configured") for check in checks.values())

    return HealthStatus(
        status="healthy" if all_healthy else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
        uptime_seconds=round(time.time() - APP_START_TIME, 2),
        checks=checks,
    )


@router.get("/metrics")
async def prometheus_metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    update_uptime(APP_START_TIME)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
