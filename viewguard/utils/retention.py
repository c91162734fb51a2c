"""
View Ledger Retention Policy

Prunes view events older than the configured retention period. Runs as a
recurring APScheduler job, never on the request path.
"""

import logging
from datetime import timedelta

from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from viewguard import database
from viewguard.services.event_ledger import EventLedger
from viewguard.utils.clock import utcnow
from viewguard.utils.metrics import record_events_pruned

logger = logging.getLogger(__name__)

RETENTION_JOB_ID = "view_event_retention"


async def prune_old_view_events(retention_days: int, session_factory=None) -> int:
    """
    Delete view events older than ``retention_days``.

    Opens its own session. Returns the number of deleted rows, or 0 when the
    delete failed.
    """
    session_factory = session_factory or database.AsyncSessionLocal
    cutoff = utcnow() - timedelta(days=retention_days)
    async with session_factory() as db:
        try:
            deleted = await EventLedger().prune(db, cutoff)
        except SQLAlchemyError as exc:
            logger.warning("view_event_retention: prune failed: %s", exc)
            return 0

    record_events_pruned(deleted)
    if deleted:
        logger.info("view_event_retention: deleted %d events older than %s", deleted, cutoff.isoformat())
    return deleted


def install_retention_policy(scheduler, retention_days: int, interval_hours: int = 24) -> None:
    """
    Register the ledger pruning job with the shared scheduler.

    Args:
        scheduler: The application's AsyncIOScheduler (from viewguard.scheduler).
        retention_days: View events older than this many days are deleted.
        interval_hours: How often to run (default: once daily).
    """
    scheduler.add_job(
        prune_old_view_events,
        trigger=IntervalTrigger(hours=interval_hours),
        args=[retention_days],
        id=RETENTION_JOB_ID,
        replace_existing=True,
        max_instances=1,
    )
    logger.info(
        "view_event_retention: installed (retention=%d days, interval=%dh)",
        retention_days,
        interval_hours,
    )
