"""
Event Ledger

Append-only record of every view attempt. Rejected and failed attempts are
committed on their own, so a failed counter update never prevents the audit
record. The admitted row shares the counter's transaction behind a
savepoint, so a failed audit record never undoes a counted view.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from viewguard.constants.view_tracking import DIRECT_REFERRER
from viewguard.models.view_event import ViewEvent, ViewOutcome
from viewguard.utils.metrics import record_ledger_write_failure

logger = logging.getLogger(__name__)


@dataclass
class ViewAttempt:
    """One incoming "article viewed" event as seen at the edge."""

    content_slug: str
    occurred_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LedgerWriteResult:
    ok: bool
    event_id: int | None = None
    error: str | None = None


class EventLedger:
    @staticmethod
    def _build_event(attempt: ViewAttempt, outcome: ViewOutcome, reason: str | None) -> ViewEvent:
        return ViewEvent(
            content_slug=attempt.content_slug,
            ip_address=attempt.ip_address,
            user_agent=attempt.user_agent,
            referrer=attempt.referrer or DIRECT_REFERRER,
            outcome=outcome,
            reason=reason,
            event_metadata={**attempt.metadata, "view_counted": outcome == ViewOutcome.ADMITTED},
            created_at=attempt.occurred_at,
        )

    async def record(
        self,
        db: AsyncSession,
        attempt: ViewAttempt,
        outcome: ViewOutcome,
        reason: str | None = None,
    ) -> LedgerWriteResult:
        """
        Append one ledger row for ``attempt`` and commit it.

        Never raises on storage failure; the failure is logged and returned
        so the caller can report it.
        """
        event = self._build_event(attempt, outcome, reason)
        try:
            db.add(event)
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to record {outcome.value} view of {attempt.content_slug}: {e}")
            await db.rollback()
            record_ledger_write_failure()
            return LedgerWriteResult(ok=False, error=str(e))

        return LedgerWriteResult(ok=True, event_id=event.id)

    async def record_admitted(self, db: AsyncSession, attempt: ViewAttempt) -> LedgerWriteResult:
        """
        Append the admitted row inside the caller's open transaction.

        The insert runs under a savepoint: a failed write is rolled back on
        its own and the caller's counter update survives. The caller commits.
        """
        event = self._build_event(attempt, ViewOutcome.ADMITTED, None)
        try:
            async with db.begin_nested():
                db.add(event)
        except SQLAlchemyError as e:
            logger.error(f"Failed to record admitted view of {attempt.content_slug}: {e}")
            record_ledger_write_failure()
            return LedgerWriteResult(ok=False, error=str(e))

        return LedgerWriteResult(ok=True, event_id=event.id)

    async def prune(self, db: AsyncSession, older_than: datetime) -> int:
        """Delete ledger rows created before ``older_than``. Returns the number removed."""
        result = await db.execute(
            delete(ViewEvent).where(ViewEvent.created_at < older_than).execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount or 0
