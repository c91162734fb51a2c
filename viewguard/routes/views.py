"""
View Routes

Public endpoint that reports one article view.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from viewguard.database import get_db
from viewguard.schemas.view_tracking import TrackViewResponse
from viewguard.services.view_tracking_service import ViewTrackingService, view_tracking_service
from viewguard.utils.request_meta import get_client_ip, get_referrer, get_user_agent
from viewguard.utils.view_count import format_view_count

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Views"])


def get_view_tracking_service() -> ViewTrackingService:
    return view_tracking_service


@router.post("/{content_slug}", response_model=TrackViewResponse)
async def track_view(
    content_slug: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    service: ViewTrackingService = Depends(get_view_tracking_service),
):
    """
    Report a view of a published article.

    **Returns**: the new view count when the view was counted.

    **Errors**:
    - 404 when the article does not exist or is not published
    - 429 when the view was rejected (`error.details.reason` is `bot_detected`,
      `rate_limit_exceeded` or `cooldown_active`)
    - 500 when the counter could not be updated
    """
    result = await service.track_view(
        db,
        content_slug,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        referrer=get_referrer(request),
    )
    result.raise_for_status(content_slug, service.config.max_safe_view_count)

    if result.ledger_error:
        logger.warning(f"View of {content_slug} counted without a ledger record")

    return TrackViewResponse(
        views=result.new_count,
        display_views=format_view_count(result.new_count),
        counted=True,
        ledger_recorded=result.ledger_error is None,
    )
