"""
Analytics Service

Read-only view statistics for one article and for the whole site, computed
from the view ledger and the view counters. Every sub-query degrades to an
empty value on failure so a single broken aggregate never fails the report.
Unique visitors are distinct origin addresses; readers behind one NAT or
proxy count once.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from viewguard.config import ViewTrackingConfig, build_view_tracking_config, settings
from viewguard.models.content import Content, ContentStatus
from viewguard.models.view_counter import ContentViewCounter
from viewguard.models.view_event import ViewEvent, ViewOutcome
from viewguard.schemas.view_tracking import (
    ContentViewSummary,
    HourlyBucket,
    ProblematicCounter,
    ReferrerCount,
    SystemViewStats,
    ViewStats,
)
from viewguard.utils.cache import CacheManager, get_cache_manager
from viewguard.utils.clock import utcnow
from viewguard.utils.view_count import format_view_count, is_safe_view_count, sanitize_view_count

logger = logging.getLogger(__name__)

T = TypeVar("T")

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(days=7)


def _human_traffic():
    return ViewEvent.outcome != ViewOutcome.BOT_DETECTED


def average_views_per_day(total_views: int, created_at: datetime, now: datetime) -> int:
    """Views divided by whole days since creation (at least one), rounded half up."""
    days = max(1, (now - created_at).days)
    return int(total_views / days + 0.5)


class AnalyticsService:
    """Service for view statistics and the system-wide overview"""

    def __init__(self, config: ViewTrackingConfig | None = None):
        self.config = config or build_view_tracking_config()

    @staticmethod
    async def _safe(db: AsyncSession, name: str, query: Callable[[], Awaitable[T]], default: T) -> T:
        try:
            return await query()
        except SQLAlchemyError as e:
            logger.warning(f"Analytics sub-query '{name}' failed: {e}")
            await db.rollback()
            return default

    # ------------------------------------------------------------------
    # Per-content statistics
    # ------------------------------------------------------------------

    @staticmethod
    async def count_unique_ips(db: AsyncSession, content_slug: str | None, since: datetime) -> int:
        conditions = [ViewEvent.created_at >= since, _human_traffic()]
        if content_slug is not None:
            conditions.append(ViewEvent.content_slug == content_slug)
        result = await db.execute(select(func.count(func.distinct(ViewEvent.ip_address))).where(and_(*conditions)))
        return result.scalar() or 0

    async def get_top_referrers(self, db: AsyncSession, content_slug: str, since: datetime) -> list[ReferrerCount]:
        result = await db.execute(
            select(ViewEvent.referrer, func.count(ViewEvent.id).label("count"))
            .where(and_(ViewEvent.content_slug == content_slug, ViewEvent.created_at >= since, _human_traffic()))
            .group_by(ViewEvent.referrer)
            .order_by(func.count(ViewEvent.id).desc(), ViewEvent.referrer)
            .limit(self.config.top_referrers)
        )
        return [ReferrerCount(referrer=referrer or "Direct", count=count) for referrer, count in result.all()]

    @staticmethod
    async def get_hourly_distribution(db: AsyncSession, content_slug: str, since: datetime) -> list[HourlyBucket]:
        """Admitted views per UTC hour of day."""
        result = await db.execute(
            select(ViewEvent.created_at).where(
                and_(
                    ViewEvent.content_slug == content_slug,
                    ViewEvent.created_at >= since,
                    ViewEvent.outcome == ViewOutcome.ADMITTED,
                )
            )
        )
        buckets = [0] * 24
        for (created_at,) in result.all():
            buckets[created_at.hour] += 1
        return [HourlyBucket(hour=hour, views=views) for hour, views in enumerate(buckets)]

    async def get_view_stats(
        self, db: AsyncSession, content_slug: str, now: datetime | None = None
    ) -> ViewStats | None:
        """
        Get view statistics for one article.

        Args:
            db: Database session
            content_slug: Article slug
            now: Reference time (defaults to the current UTC time)

        Returns:
            ViewStats, or None when the article does not exist
        """
        now = now or utcnow()
        content_result = await db.execute(select(Content.created_at).where(Content.slug == content_slug))
        created_at = content_result.scalar()
        if created_at is None:
            return None

        day_ago = now - ONE_DAY
        week_ago = now - ONE_WEEK

        async def total_views() -> int:
            result = await db.execute(
                select(ContentViewCounter.view_count).where(ContentViewCounter.content_slug == content_slug)
            )
            return result.scalar() or 0

        total = await self._safe(db, "total_views", total_views, 0)
        if not is_safe_view_count(total, self.config.max_safe_view_count):
            # Repaired by bulk_fix_view_counts; report the nearest valid value meanwhile
            logger.warning(f"Stored view count for {content_slug} is out of range: {total}")
            total = sanitize_view_count(total, self.config.max_safe_view_count)
        unique_today = await self._safe(
            db, "unique_ips_today", lambda: self.count_unique_ips(db, content_slug, day_ago), 0
        )
        unique_week = await self._safe(
            db, "unique_ips_this_week", lambda: self.count_unique_ips(db, content_slug, week_ago), 0
        )
        top_referrers = await self._safe(
            db, "top_referrers", lambda: self.get_top_referrers(db, content_slug, week_ago), []
        )
        hourly = await self._safe(
            db, "hourly_distribution", lambda: self.get_hourly_distribution(db, content_slug, day_ago), []
        )

        return ViewStats(
            content_slug=content_slug,
            total_views=total,
            display_total_views=format_view_count(total),
            unique_ips_today=unique_today,
            unique_ips_this_week=unique_week,
            average_views_per_day=average_views_per_day(total, created_at, now),
            top_referrers=top_referrers,
            hourly_distribution=hourly,
        )

    # ------------------------------------------------------------------
    # System-wide statistics
    # ------------------------------------------------------------------

    @staticmethod
    async def get_counter_totals(db: AsyncSession) -> dict[str, int]:
        result = await db.execute(
            select(
                func.coalesce(func.sum(ContentViewCounter.view_count), 0),
                func.coalesce(func.avg(ContentViewCounter.view_count), 0),
                func.coalesce(func.max(ContentViewCounter.view_count), 0),
                func.count(ContentViewCounter.id),
            )
        )
        total, average, maximum, count = result.one()
        return {
            "total_views": int(total),
            "average_views": int(float(average) + 0.5),
            "max_views": int(maximum),
            "total_counters": int(count),
        }

    @staticmethod
    async def count_visits(db: AsyncSession, since: datetime) -> int:
        result = await db.execute(
            select(func.count(ViewEvent.id)).where(and_(ViewEvent.created_at >= since, _human_traffic()))
        )
        return result.scalar() or 0

    async def get_top_content(self, db: AsyncSession) -> list[ContentViewSummary]:
        result = await db.execute(
            select(Content.slug, Content.title, ContentViewCounter.view_count, Content.published_at)
            .join(ContentViewCounter, ContentViewCounter.content_slug == Content.slug)
            .where(Content.status == ContentStatus.PUBLISHED)
            .order_by(ContentViewCounter.view_count.desc(), Content.slug)
            .limit(self.config.top_content)
        )
        return [
            ContentViewSummary(content_slug=slug, title=title, views=views, published_at=published_at)
            for slug, title, views, published_at in result.all()
        ]

    async def get_problematic_counters(self, db: AsyncSession) -> list[ProblematicCounter]:
        """Counters that are negative or suspiciously high."""
        result = await db.execute(
            select(ContentViewCounter.content_slug, ContentViewCounter.view_count, Content.created_at)
            .outerjoin(Content, Content.slug == ContentViewCounter.content_slug)
            .where(
                or_(
                    ContentViewCounter.view_count < 0,
                    ContentViewCounter.view_count >= self.config.suspicious_view_count,
                )
            )
            .order_by(ContentViewCounter.content_slug)
        )
        return [
            ProblematicCounter(content_slug=slug, views=views, created_at=created_at)
            for slug, views, created_at in result.all()
        ]

    async def compute_system_stats(self, db: AsyncSession, now: datetime) -> SystemViewStats:
        day_ago = now - ONE_DAY
        week_ago = now - ONE_WEEK

        totals = await self._safe(db, "counter_totals", lambda: self.get_counter_totals(db), {})
        return SystemViewStats(
            **totals,
            visits_today=await self._safe(db, "visits_today", lambda: self.count_visits(db, day_ago), 0),
            visits_this_week=await self._safe(db, "visits_this_week", lambda: self.count_visits(db, week_ago), 0),
            unique_visitors_today=await self._safe(
                db, "unique_visitors_today", lambda: self.count_unique_ips(db, None, day_ago), 0
            ),
            unique_visitors_this_week=await self._safe(
                db, "unique_visitors_this_week", lambda: self.count_unique_ips(db, None, week_ago), 0
            ),
            top_content_by_views=await self._safe(db, "top_content", lambda: self.get_top_content(db), []),
            problematic_counters=await self._safe(
                db, "problematic_counters", lambda: self.get_problematic_counters(db), []
            ),
            generated_at=now,
        )

    async def get_system_stats(
        self, db: AsyncSession, now: datetime | None = None, cache: CacheManager | None = None
    ) -> SystemViewStats:
        """
        Get the system-wide view overview, served from Redis when cached.

        An explicit ``now`` bypasses the cache.
        """
        if now is not None:
            return await self.compute_system_stats(db, now)

        cache_key = f"{CacheManager.PREFIX_ANALYTICS}system_view_stats"
        cm = cache or await get_cache_manager()
        cached_data: dict[str, Any] | None = await cm.get(cache_key)
        if cached_data is not None:
            logger.debug("System view stats served from cache")
            return SystemViewStats(**cached_data)

        stats = await self.compute_system_stats(db, utcnow())
        await cm.set(cache_key, stats.model_dump(mode="json"), settings.analytics_cache_ttl)
        return stats


# Singleton instance
analytics_service = AnalyticsService()
