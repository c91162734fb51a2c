"""
Analytics Routes

View statistics, the system-wide overview and administrative actions on
view counters.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from viewguard.auth import require_admin
from viewguard.config import settings
from viewguard.database import get_db
from viewguard.exceptions import ContentNotFoundError
from viewguard.middleware.rate_limit import limiter
from viewguard.routes.views import get_view_tracking_service
from viewguard.schemas.view_tracking import (
    AdminAction,
    AdminActionRequest,
    BulkFixResponse,
    ResetViewCountResponse,
    SuspiciousActivityResponse,
    SystemViewStats,
    ViewStats,
)
from viewguard.services.analytics_service import AnalyticsService, analytics_service
from viewguard.services.suspicious_activity_service import (
    SuspiciousActivityService,
    suspicious_activity_service,
)
from viewguard.services.view_tracking_service import ViewTrackingService
from viewguard.utils.cache import get_cache_manager
from viewguard.utils.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analytics"])


def get_analytics_service() -> AnalyticsService:
    return analytics_service


def get_suspicious_activity_service() -> SuspiciousActivityService:
    return suspicious_activity_service


@router.get("", response_model=SystemViewStats)
async def get_system_view_stats(
    db: AsyncSession = Depends(get_db),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """
    Site-wide view overview.

    **Returns**: totals, visits and unique visitors for today and this week,
    the most viewed articles and counters that look broken.
    """
    return await service.get_system_stats(db)


@router.post("/actions", dependencies=[Depends(require_admin)])
@limiter.limit(settings.admin_actions_rate_limit)
async def perform_admin_action(
    request: Request,
    payload: AdminActionRequest,
    db: AsyncSession = Depends(get_db),
    tracking: ViewTrackingService = Depends(get_view_tracking_service),
    detector: SuspiciousActivityService = Depends(get_suspicious_activity_service),
):
    """
    Run an administrative action on view counters.

    **Actions**:
    - `reset_view_count`: set one article's count (clamped to the safe range)
    - `bulk_fix_view_counts`: zero every negative counter
    - `get_suspicious_activity`: scan the view ledger over `1h`, `24h` or `7d`

    **Requires**: `X-Admin-Key` when an admin key is configured
    """
    if payload.action == AdminAction.RESET_VIEW_COUNT:
        views = await tracking.counter.reset(db, payload.content_slug, payload.new_count)
        await (await get_cache_manager()).invalidate_analytics()
        return ResetViewCountResponse(
            success=True,
            content_slug=payload.content_slug,
            views=views,
            message=f"View count reset to {views}",
        )

    if payload.action == AdminAction.BULK_FIX_VIEW_COUNTS:
        result = await tracking.counter.bulk_fix_negative_counts(db)
        await (await get_cache_manager()).invalidate_analytics()
        logger.info(f"Bulk view count fix: {result.updated} updated, {result.errors} errors")
        return BulkFixResponse(
            success=result.errors == 0,
            updated=result.updated,
            errors=result.errors,
            message=f"Fixed {result.updated} negative view counts",
        )

    now = utcnow()
    records = await detector.scan(db, payload.content_slug, payload.time_range, now=now)
    return SuspiciousActivityResponse(
        content_slug=payload.content_slug,
        time_range=payload.time_range,
        report=detector.build_report(records, payload.time_range),
        timestamp=now,
    )


@router.get("/{content_slug}", response_model=ViewStats)
async def get_content_view_stats(
    content_slug: str,
    db: AsyncSession = Depends(get_db),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """
    View statistics for one article.

    **Returns**: total views, unique visitors today and this week, average
    views per day, top referrers and the hourly distribution of the last day.
    """
    stats = await service.get_view_stats(db, content_slug)
    if stats is None:
        raise ContentNotFoundError(content_slug)
    return stats
