"""
Abuse Guard

Rate-limit and cooldown checks for one (content, origin) pair. Both checks
read the view ledger directly, so decisions survive process restarts and no
in-process state is kept.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from viewguard.config import ViewTrackingConfig
from viewguard.constants.view_tracking import RejectionReason
from viewguard.models.view_event import ViewEvent, ViewOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    admitted: bool
    reason: RejectionReason | None = None


ADMITTED = AdmissionDecision(admitted=True)


class AbuseGuard:
    def __init__(self, config: ViewTrackingConfig):
        self.config = config

    @staticmethod
    def _pair_conditions(content_slug: str, ip_address: str | None) -> list:
        # Bot-rejected attempts never reach the guard, so they do not count against the origin
        conditions = [
            ViewEvent.content_slug == content_slug,
            ViewEvent.outcome != ViewOutcome.BOT_DETECTED,
        ]
        if ip_address is None:
            conditions.append(ViewEvent.ip_address.is_(None))
        else:
            conditions.append(ViewEvent.ip_address == ip_address)
        return conditions

    async def count_recent_views(
        self, db: AsyncSession, content_slug: str, ip_address: str | None, now: datetime
    ) -> int:
        window_start = now - self.config.rate_window
        result = await db.execute(
            select(func.count(ViewEvent.id)).where(
                and_(*self._pair_conditions(content_slug, ip_address), ViewEvent.created_at >= window_start)
            )
        )
        return result.scalar() or 0

    async def last_view_within_cooldown(
        self, db: AsyncSession, content_slug: str, ip_address: str | None, now: datetime
    ) -> datetime | None:
        cooldown_start = now - self.config.cooldown
        result = await db.execute(
            select(ViewEvent.created_at)
            .where(and_(*self._pair_conditions(content_slug, ip_address), ViewEvent.created_at > cooldown_start))
            .order_by(ViewEvent.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def admit(
        self, db: AsyncSession, content_slug: str, ip_address: str | None, now: datetime
    ) -> AdmissionDecision:
        """
        Decide whether a view from ``ip_address`` may be counted.

        Any storage error rejects the view: the guard never allows an
        increment when it cannot read its own history.
        """
        try:
            if self.config.rate_limiting_enabled:
                recent = await self.count_recent_views(db, content_slug, ip_address, now)
                if recent >= self.config.rate_limit_per_window:
                    logger.info(
                        "Rate limit exceeded for %s from %s (%d views in window)", content_slug, ip_address, recent
                    )
                    return AdmissionDecision(admitted=False, reason=RejectionReason.RATE_LIMIT_EXCEEDED)

            if self.config.cooldown.total_seconds() > 0:
                last_seen = await self.last_view_within_cooldown(db, content_slug, ip_address, now)
                if last_seen is not None:
                    logger.info("Cooldown active for %s from %s (last view %s)", content_slug, ip_address, last_seen)
                    return AdmissionDecision(admitted=False, reason=RejectionReason.COOLDOWN_ACTIVE)
        except SQLAlchemyError as e:
            logger.error(f"Abuse check failed for {content_slug}, rejecting view: {e}")
            try:
                await db.rollback()
            except SQLAlchemyError as rollback_error:
                logger.warning(f"Rollback after failed abuse check also failed: {rollback_error}")
            return AdmissionDecision(admitted=False, reason=RejectionReason.STORAGE_ERROR)

        return ADMITTED
