"""
Suspicious Activity Service

Diagnostic scans over the view ledger for operators. Findings never change
an earlier admission decision.
"""

import logging
from datetime import datetime

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from viewguard.config import ViewTrackingConfig, build_view_tracking_config
from viewguard.constants.view_tracking import (
    HIGH_SEVERITY_MULTIPLIER,
    Severity,
    SuspiciousActivityKind,
    TimeWindow,
)
from viewguard.models.view_event import ViewEvent, ViewOutcome
from viewguard.schemas.view_tracking import (
    SuspiciousActivityRecord,
    SuspiciousActivityReport,
    SuspiciousActivitySummary,
)
from viewguard.services.bot_classifier import BotClassifier
from viewguard.utils.clock import utcnow

logger = logging.getLogger(__name__)

UNKNOWN_ORIGIN = "Unknown"
EVIDENCE_UA_LENGTH = 100
STREAM_BATCH_SIZE = 500


class SuspiciousActivityService:
    def __init__(self, config: ViewTrackingConfig | None = None):
        self.config = config or build_view_tracking_config()
        self.classifier = BotClassifier(self.config)

    def severity_for(self, request_count: int) -> Severity:
        threshold = self.config.rate_limit_per_window
        if request_count > threshold * HIGH_SEVERITY_MULTIPLIER:
            return Severity.HIGH
        return Severity.MEDIUM

    @staticmethod
    def _scope(content_slug: str | None, since: datetime) -> list:
        conditions = [ViewEvent.created_at >= since]
        if content_slug is not None:
            conditions.append(ViewEvent.content_slug == content_slug)
        return conditions

    async def find_excessive_origins(
        self, db: AsyncSession, content_slug: str | None, since: datetime, now: datetime
    ) -> list[SuspiciousActivityRecord]:
        """Origins whose attempts on one article exceed the rate threshold within the window."""
        request_count = func.count(ViewEvent.id)
        result = await db.execute(
            select(ViewEvent.ip_address, ViewEvent.content_slug, request_count.label("request_count"))
            .where(and_(*self._scope(content_slug, since)))
            .group_by(ViewEvent.ip_address, ViewEvent.content_slug)
            .having(request_count > self.config.rate_limit_per_window)
            .order_by(request_count.desc())
            .limit(self.config.suspicious_scan_limit)
        )
        return [
            SuspiciousActivityRecord(
                kind=SuspiciousActivityKind.RATE_LIMIT_EXCEEDED,
                ip_address=ip_address or UNKNOWN_ORIGIN,
                content_slug=slug,
                evidence=f"{count} view attempts since {since.isoformat(timespec='seconds')}",
                timestamp=now,
                severity=self.severity_for(count),
                request_count=count,
            )
            for ip_address, slug, count in result.all()
        ]

    def _admitted_events(self, content_slug: str | None, since: datetime, extra):
        conditions = self._scope(content_slug, since) + [ViewEvent.outcome == ViewOutcome.ADMITTED, extra]
        return (
            select(ViewEvent.ip_address, ViewEvent.content_slug, ViewEvent.user_agent, ViewEvent.created_at)
            .where(and_(*conditions))
            .order_by(ViewEvent.created_at.desc())
        )

    async def find_admitted_bots(
        self, db: AsyncSession, content_slug: str | None, since: datetime
    ) -> list[SuspiciousActivityRecord]:
        """
        Admitted views whose User-Agent matches the bot table, i.e. classifier gaps.

        Rows are streamed in batches and the scan stops at the cap, so a wide
        window never loads all of its admitted traffic at once.
        """
        records = []
        stmt = self._admitted_events(content_slug, since, ViewEvent.user_agent.is_not(None))
        result = await db.stream(stmt.execution_options(yield_per=STREAM_BATCH_SIZE))
        try:
            async for ip_address, slug, user_agent, created_at in result:
                label = self.classifier.match(user_agent)
                if label is None:
                    continue
                records.append(
                    SuspiciousActivityRecord(
                        kind=SuspiciousActivityKind.BOT_DETECTED,
                        ip_address=ip_address or UNKNOWN_ORIGIN,
                        content_slug=slug,
                        evidence=f"Admitted bot user agent ({label}): {user_agent[:EVIDENCE_UA_LENGTH]}",
                        timestamp=created_at,
                        severity=Severity.MEDIUM,
                    )
                )
                if len(records) >= self.config.suspicious_scan_limit:
                    break
        finally:
            await result.close()
        return records

    async def find_missing_signatures(
        self, db: AsyncSession, content_slug: str | None, since: datetime
    ) -> list[SuspiciousActivityRecord]:
        """Admitted views that carried no User-Agent at all."""
        result = await db.execute(
            self._admitted_events(content_slug, since, ViewEvent.user_agent.is_(None)).limit(
                self.config.suspicious_scan_limit
            )
        )
        return [
            SuspiciousActivityRecord(
                kind=SuspiciousActivityKind.UNUSUAL_PATTERN,
                ip_address=ip_address or UNKNOWN_ORIGIN,
                content_slug=slug,
                evidence="Admitted view without a User-Agent",
                timestamp=created_at,
                severity=Severity.LOW,
            )
            for ip_address, slug, _user_agent, created_at in result.all()
        ]

    async def scan(
        self,
        db: AsyncSession,
        content_slug: str | None = None,
        window: TimeWindow = TimeWindow.LAST_DAY,
        now: datetime | None = None,
    ) -> list[SuspiciousActivityRecord]:
        """
        Run every detection pass over the trailing ``window``.

        A failing pass is logged and skipped; the others still report.
        """
        now = now or utcnow()
        since = now - window.duration
        passes = (
            ("excessive_origins", lambda: self.find_excessive_origins(db, content_slug, since, now)),
            ("admitted_bots", lambda: self.find_admitted_bots(db, content_slug, since)),
            ("missing_signatures", lambda: self.find_missing_signatures(db, content_slug, since)),
        )

        findings: list[SuspiciousActivityRecord] = []
        for name, run in passes:
            try:
                findings.extend(await run())
            except SQLAlchemyError as e:
                logger.warning(f"Suspicious activity pass '{name}' failed: {e}")
                await db.rollback()

        if findings:
            logger.info(
                "Suspicious activity scan (%s, %s) found %d records", content_slug or "all", window.value, len(findings)
            )
        return findings

    @staticmethod
    def build_report(records: list[SuspiciousActivityRecord], window: TimeWindow) -> SuspiciousActivityReport:
        by_kind: dict[str, list[SuspiciousActivityRecord]] = {kind.value: [] for kind in SuspiciousActivityKind}
        for record in records:
            by_kind[SuspiciousActivityKind(record.kind).value].append(record)

        bot_requests = by_kind[SuspiciousActivityKind.BOT_DETECTED.value]
        return SuspiciousActivityReport(
            suspicious_ips=by_kind[SuspiciousActivityKind.RATE_LIMIT_EXCEEDED.value],
            bot_traffic=bot_requests,
            unusual_patterns=by_kind[SuspiciousActivityKind.UNUSUAL_PATTERN.value],
            summary=SuspiciousActivitySummary(
                total_suspicious_ips=len(by_kind[SuspiciousActivityKind.RATE_LIMIT_EXCEEDED.value]),
                total_bot_requests=len(bot_requests),
                total_unusual_patterns=len(by_kind[SuspiciousActivityKind.UNUSUAL_PATTERN.value]),
                time_range=window,
            ),
        )


# Singleton instance
suspicious_activity_service = SuspiciousActivityService()
