"""
View Counter Service

Transactional, overflow-safe increment of the per-content view counter plus
the administrative reset and repair operations.
"""

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import and_, case, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from viewguard.config import ViewTrackingConfig
from viewguard.exceptions import ContentNotFoundError, StorageError
from viewguard.models.content import Content, ContentStatus
from viewguard.models.view_counter import ContentViewCounter
from viewguard.utils.clock import utcnow
from viewguard.utils.metrics import record_counter_increment

logger = logging.getLogger(__name__)


class IncrementError(str, enum.Enum):
    NOT_FOUND = "not_found"
    OVERFLOW = "overflow"
    STORAGE = "storage"


@dataclass(frozen=True)
class IncrementResult:
    ok: bool
    new_count: int | None = None
    error: IncrementError | None = None


@dataclass(frozen=True)
class BulkFixResult:
    updated: int
    errors: int


class ViewCounterService:
    def __init__(self, config: ViewTrackingConfig):
        self.config = config

    @staticmethod
    async def get_publishable_content(db: AsyncSession, content_slug: str) -> Content | None:
        result = await db.execute(
            select(Content).where(and_(Content.slug == content_slug, Content.status == ContentStatus.PUBLISHED))
        )
        return result.scalars().first()

    @staticmethod
    async def get_count(db: AsyncSession, content_slug: str) -> int | None:
        result = await db.execute(
            select(ContentViewCounter.view_count).where(ContentViewCounter.content_slug == content_slug)
        )
        return result.scalar()

    async def lock_content(self, db: AsyncSession, content_slug: str) -> bool:
        """
        Take the per-content write lock for the rest of the transaction.

        Issues a no-op UPDATE on the published content row. PostgreSQL holds
        the row lock and SQLite the database write lock until the caller
        commits or rolls back, so admissions for one article run one at a
        time. Returns False when the content is not published.
        """
        result = await db.execute(
            update(Content)
            .where(and_(Content.slug == content_slug, Content.status == ContentStatus.PUBLISHED))
            .values(status=Content.status)
            .returning(Content.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar() is not None

    async def _bump(self, db: AsyncSession, content_slug: str) -> int | None:
        """
        Add one view in a single row-level UPDATE.

        Negative stored values are treated as zero. Rows already at the
        ceiling are left untouched and None is returned.
        """
        stmt = (
            update(ContentViewCounter)
            .where(
                and_(
                    ContentViewCounter.content_slug == content_slug,
                    ContentViewCounter.view_count < self.config.max_safe_view_count,
                )
            )
            .values(
                view_count=case((ContentViewCounter.view_count < 0, 0), else_=ContentViewCounter.view_count) + 1,
                updated_at=utcnow(),
            )
            .returning(ContentViewCounter.view_count)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar()

    async def _add_one(self, db: AsyncSession, content_slug: str) -> IncrementResult:
        new_count = await self._bump(db, content_slug)
        if new_count is None:
            if await self.get_count(db, content_slug) is not None:
                return IncrementResult(ok=False, error=IncrementError.OVERFLOW)
            # First accepted view for this content
            db.add(ContentViewCounter(content_slug=content_slug, view_count=1))
            await db.flush()
            new_count = 1
        return IncrementResult(ok=True, new_count=new_count)

    async def _increment_once(self, db: AsyncSession, content_slug: str) -> IncrementResult:
        if not await self.lock_content(db, content_slug):
            await db.rollback()
            return IncrementResult(ok=False, error=IncrementError.NOT_FOUND)

        result = await self._add_one(db, content_slug)
        if result.ok:
            await db.commit()
        else:
            await db.rollback()
        return result

    def record_outcome(self, content_slug: str, result: IncrementResult) -> None:
        """Count and log a finished increment."""
        if result.ok:
            record_counter_increment("ok")
            logger.debug("View count for %s is now %d", content_slug, result.new_count)
            return

        record_counter_increment(result.error.value)
        if result.error == IncrementError.OVERFLOW:
            logger.error(
                "View count for %s is at the maximum safe value %d; reset required",
                content_slug,
                self.config.max_safe_view_count,
            )

    async def increment(self, db: AsyncSession, content_slug: str) -> IncrementResult:
        """
        Increment the view counter for published content.

        Runs as one transaction. Concurrent calls for the same slug serialize
        on the content lock; different slugs never touch the same row.
        """
        try:
            try:
                result = await self._increment_once(db, content_slug)
            except IntegrityError:
                # Another request created the counter first; it exists now
                await db.rollback()
                result = await self._increment_once(db, content_slug)
        except SQLAlchemyError as e:
            logger.error(f"View count increment failed for {content_slug}: {e}")
            await db.rollback()
            result = IncrementResult(ok=False, error=IncrementError.STORAGE)

        self.record_outcome(content_slug, result)
        return result

    async def increment_locked(self, db: AsyncSession, content_slug: str) -> IncrementResult:
        """
        Add one view inside a transaction that already holds the content lock.

        Nothing is committed on success; the caller commits together with its
        own writes and then reports through ``record_outcome``. On failure the
        transaction is rolled back, which also releases the lock.
        """
        try:
            result = await self._add_one(db, content_slug)
        except SQLAlchemyError as e:
            logger.error(f"View count increment failed for {content_slug}: {e}")
            result = IncrementResult(ok=False, error=IncrementError.STORAGE)

        if not result.ok:
            await db.rollback()
            self.record_outcome(content_slug, result)
        return result

    async def reset(self, db: AsyncSession, content_slug: str, new_count: int = 0) -> int:
        """
        Set the view count of existing content to ``new_count``.

        The value is clamped to the range [0, max_safe_view_count]. Returns
        the stored value.
        """
        value = min(max(0, new_count), self.config.max_safe_view_count)
        try:
            content_result = await db.execute(select(Content.id).where(Content.slug == content_slug))
            if content_result.scalar() is None:
                raise ContentNotFoundError(content_slug)

            counter_result = await db.execute(
                select(ContentViewCounter).where(ContentViewCounter.content_slug == content_slug)
            )
            counter = counter_result.scalars().first()
            if counter is None:
                db.add(ContentViewCounter(content_slug=content_slug, view_count=value))
            else:
                counter.view_count = value
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error resetting view count for {content_slug}: {e}")
            raise StorageError("Failed to reset view count", operation="reset_view_count") from e

        logger.info(f"View count reset for {content_slug} to {value}")
        return value

    async def bulk_fix_negative_counts(self, db: AsyncSession) -> BulkFixResult:
        """Zero every negative counter, one row at a time."""
        updated = 0
        errors = 0

        try:
            result = await db.execute(
                select(ContentViewCounter.id, ContentViewCounter.content_slug).where(ContentViewCounter.view_count < 0)
            )
            broken = result.all()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error scanning for negative view counts: {e}")
            return BulkFixResult(updated=0, errors=1)

        for counter_id, content_slug in broken:
            try:
                await db.execute(
                    update(ContentViewCounter)
                    .where(ContentViewCounter.id == counter_id)
                    .values(view_count=0, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
                updated += 1
                logger.info(f"Fixed negative view count for {content_slug}")
            except SQLAlchemyError as e:
                await db.rollback()
                errors += 1
                logger.error(f"Error fixing view count for {content_slug}: {e}")

        return BulkFixResult(updated=updated, errors=errors)
