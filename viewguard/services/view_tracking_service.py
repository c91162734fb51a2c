"""
View Tracking Service

Runs one view attempt through the admission pipeline:

    classify -> admit -> increment -> record

Each stage returns a typed result, so every partial failure is an explicit
branch. Every attempt that reaches a decision is written to the ledger.
From admit onwards the attempt holds the content lock, and the counter
update commits together with its admitted ledger row.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from viewguard.config import ViewTrackingConfig, build_view_tracking_config
from viewguard.constants.view_tracking import RejectionReason
from viewguard.exceptions import (
    ContentNotFoundError,
    CounterOverflowError,
    StorageError,
    ValidationError,
    ViewRejectedError,
)
from viewguard.models.view_event import ViewOutcome
from viewguard.services.abuse_guard import AbuseGuard
from viewguard.services.bot_classifier import BotClassifier
from viewguard.services.event_ledger import EventLedger, ViewAttempt
from viewguard.services.view_counter_service import IncrementError, IncrementResult, ViewCounterService
from viewguard.utils.clock import as_naive_utc, utcnow
from viewguard.utils.metrics import record_view_decision
from viewguard.utils.request_meta import describe_user_agent

logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 255


class TrackingStatus(str, enum.Enum):
    COUNTED = "counted"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    OVERFLOW = "overflow"
    STORAGE_ERROR = "storage_error"


@dataclass(frozen=True)
class ViewTrackingResult:
    status: TrackingStatus
    new_count: int | None = None
    reason: RejectionReason | None = None
    ledger_error: str | None = None

    @property
    def counted(self) -> bool:
        return self.status == TrackingStatus.COUNTED

    def raise_for_status(self, content_slug: str, ceiling: int) -> None:
        """Translate a failed result into the matching application exception."""
        if self.status == TrackingStatus.REJECTED:
            if self.reason == RejectionReason.STORAGE_ERROR:
                raise StorageError("View could not be checked against abuse limits", operation="admit_view")
            raise ViewRejectedError(self.reason.value, content_slug=content_slug)
        if self.status == TrackingStatus.NOT_FOUND:
            raise ContentNotFoundError(content_slug)
        if self.status == TrackingStatus.OVERFLOW:
            raise CounterOverflowError(content_slug, ceiling)
        if self.status == TrackingStatus.STORAGE_ERROR:
            raise StorageError("View count could not be updated", operation="increment_view_count")


_REJECTION_OUTCOMES = {
    RejectionReason.BOT_DETECTED: ViewOutcome.BOT_DETECTED,
    RejectionReason.RATE_LIMIT_EXCEEDED: ViewOutcome.RATE_LIMIT_EXCEEDED,
    RejectionReason.COOLDOWN_ACTIVE: ViewOutcome.COOLDOWN_ACTIVE,
    RejectionReason.STORAGE_ERROR: ViewOutcome.FAILED,
}


def validate_content_slug(content_slug: str | None) -> str:
    if content_slug is None or not content_slug.strip():
        raise ValidationError("Content slug is required", field="content_slug")
    content_slug = content_slug.strip()
    if len(content_slug) > MAX_SLUG_LENGTH:
        raise ValidationError(f"Content slug must be at most {MAX_SLUG_LENGTH} characters", field="content_slug")
    return content_slug


class ViewTrackingService:
    def __init__(self, config: ViewTrackingConfig | None = None):
        self.config = config or build_view_tracking_config()
        self.classifier = BotClassifier(self.config)
        self.guard = AbuseGuard(self.config)
        self.counter = ViewCounterService(self.config)
        self.ledger = EventLedger()

    async def _reject(self, db: AsyncSession, attempt: ViewAttempt, reason: RejectionReason) -> ViewTrackingResult:
        outcome = _REJECTION_OUTCOMES[reason]
        ledger_result = await self.ledger.record(db, attempt, outcome, reason=reason.value)
        record_view_decision(outcome.value)
        return ViewTrackingResult(
            status=TrackingStatus.REJECTED,
            reason=reason,
            ledger_error=ledger_result.error,
        )

    async def _fail(self, db: AsyncSession, attempt: ViewAttempt, error: IncrementError) -> ViewTrackingResult:
        attempt.metadata["increment_error"] = error.value
        ledger_result = await self.ledger.record(db, attempt, ViewOutcome.FAILED, reason=error.value)
        record_view_decision(ViewOutcome.FAILED.value)
        status = TrackingStatus.OVERFLOW if error == IncrementError.OVERFLOW else TrackingStatus.STORAGE_ERROR
        return ViewTrackingResult(status=status, ledger_error=ledger_result.error)

    async def track_view(
        self,
        db: AsyncSession,
        content_slug: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        referrer: str | None = None,
        now: datetime | None = None,
    ) -> ViewTrackingResult:
        """
        Decide whether one view counts and, if so, increment the counter.

        Raises ValidationError for a missing or malformed slug, before any
        side effect. Every other outcome is returned, not raised.
        """
        content_slug = validate_content_slug(content_slug)
        now = as_naive_utc(now) if now is not None else utcnow()
        attempt = ViewAttempt(
            content_slug=content_slug,
            occurred_at=now,
            ip_address=ip_address,
            user_agent=user_agent,
            referrer=referrer,
            metadata=describe_user_agent(user_agent),
        )

        # Unknown or unpublished content leaves no trace in the ledger
        try:
            content = await self.counter.get_publishable_content(db, content_slug)
        except SQLAlchemyError as e:
            logger.error(f"Content lookup failed for {content_slug}: {e}")
            await db.rollback()
            return ViewTrackingResult(status=TrackingStatus.STORAGE_ERROR)
        if content is None:
            record_view_decision("not_found")
            return ViewTrackingResult(status=TrackingStatus.NOT_FOUND)

        classification = self.classifier.classify(user_agent)
        if classification.is_bot:
            logger.info(f"Bot view of {content_slug} rejected (pattern: {classification.label})")
            attempt.metadata["bot_pattern"] = classification.label
            return await self._reject(db, attempt, RejectionReason.BOT_DETECTED)

        # Admission, increment and the admitted row share one transaction under
        # the content lock, so parallel attempts see each other's ledger rows
        try:
            locked = await self.counter.lock_content(db, content_slug)
        except SQLAlchemyError as e:
            logger.error(f"Could not lock {content_slug} for admission: {e}")
            await db.rollback()
            return await self._reject(db, attempt, RejectionReason.STORAGE_ERROR)
        if not locked:
            # Unpublished between the lookup and the lock
            await db.rollback()
            record_view_decision("not_found")
            return ViewTrackingResult(status=TrackingStatus.NOT_FOUND)

        decision = await self.guard.admit(db, content_slug, ip_address, now)
        if not decision.admitted:
            return await self._reject(db, attempt, decision.reason)

        increment = await self.counter.increment_locked(db, content_slug)
        if not increment.ok:
            return await self._fail(db, attempt, increment.error)

        ledger_result = await self.ledger.record_admitted(db, attempt)
        try:
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Commit of counted view for {content_slug} failed: {e}")
            await db.rollback()
            failure = IncrementResult(ok=False, error=IncrementError.STORAGE)
            self.counter.record_outcome(content_slug, failure)
            return await self._fail(db, attempt, failure.error)

        self.counter.record_outcome(content_slug, increment)
        record_view_decision(ViewOutcome.ADMITTED.value)
        if not ledger_result.ok:
            # The count stands; the missing audit row is reported, not compensated
            logger.error(f"View of {content_slug} counted but not recorded in the ledger: {ledger_result.error}")

        return ViewTrackingResult(
            status=TrackingStatus.COUNTED,
            new_count=increment.new_count,
            ledger_error=ledger_result.error,
        )


# Singleton instance built from application settings
view_tracking_service = ViewTrackingService()
