"""
Tests for the suspicious activity scan and report
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError
from utils.view_helpers import add_view_event

from viewguard.config import build_view_tracking_config
from viewguard.constants.view_tracking import Severity, SuspiciousActivityKind, TimeWindow
from viewguard.models.view_event import ViewOutcome
from viewguard.services.suspicious_activity_service import SuspiciousActivityService

NOW = datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def detector():
    return SuspiciousActivityService(build_view_tracking_config(rate_limit_per_window=3))


async def add_burst(db, slug, ip, count, start=NOW - timedelta(minutes=30)):
    for i in range(count):
        await add_view_event(db, slug, ip, outcome=ViewOutcome.RATE_LIMIT_EXCEEDED, created_at=start + timedelta(seconds=i))


class TestScan:
    @pytest.mark.asyncio
    async def test_quiet_ledger_has_no_findings(self, test_db, detector):
        await add_view_event(test_db, "alpha", "10.0.0.1", created_at=NOW - timedelta(minutes=5))
        assert await detector.scan(test_db, None, TimeWindow.LAST_DAY, now=NOW) == []

    @pytest.mark.asyncio
    async def test_flags_origins_over_threshold(self, test_db, detector):
        await add_burst(test_db, "alpha", "10.0.0.1", 4)
        await add_burst(test_db, "alpha", "10.0.0.2", 3)

        records = await detector.scan(test_db, "alpha", TimeWindow.LAST_HOUR, now=NOW)

        assert len(records) == 1
        record = records[0]
        assert record.kind == SuspiciousActivityKind.RATE_LIMIT_EXCEEDED.value
        assert record.ip_address == "10.0.0.1"
        assert record.request_count == 4
        assert record.severity == Severity.MEDIUM.value

    @pytest.mark.asyncio
    async def test_heavy_origin_is_high_severity(self, test_db, detector):
        await add_burst(test_db, "alpha", "10.0.0.1", 16)

        records = await detector.scan(test_db, None, TimeWindow.LAST_HOUR, now=NOW)

        assert records[0].severity == Severity.HIGH.value

    @pytest.mark.asyncio
    async def test_window_limits_the_scan(self, test_db, detector):
        await add_burst(test_db, "alpha", "10.0.0.1", 5, start=NOW - timedelta(hours=3))

        assert await detector.scan(test_db, None, TimeWindow.LAST_HOUR, now=NOW) == []
        assert len(await detector.scan(test_db, None, TimeWindow.LAST_DAY, now=NOW)) == 1

    @pytest.mark.asyncio
    async def test_content_filter(self, test_db, detector):
        await add_burst(test_db, "alpha", "10.0.0.1", 5)

        assert await detector.scan(test_db, "beta", TimeWindow.LAST_DAY, now=NOW) == []

    @pytest.mark.asyncio
    async def test_admitted_bot_signature_is_reported(self, test_db):
        # Bot detection was switched off when this view was admitted
        detector = SuspiciousActivityService(build_view_tracking_config(bot_detection_enabled=False))
        await add_view_event(test_db, "alpha", "10.0.0.4", user_agent="curl/8.4.0", created_at=NOW - timedelta(minutes=1))

        records = await detector.scan(test_db, None, TimeWindow.LAST_HOUR, now=NOW)

        assert [record.kind for record in records] == [SuspiciousActivityKind.BOT_DETECTED.value]
        assert "curl" in records[0].evidence

    @pytest.mark.asyncio
    async def test_missing_user_agent_is_unusual(self, test_db, detector):
        await add_view_event(test_db, "alpha", None, user_agent=None, created_at=NOW - timedelta(minutes=1))

        records = await detector.scan(test_db, None, TimeWindow.LAST_HOUR, now=NOW)

        assert len(records) == 1
        assert records[0].kind == SuspiciousActivityKind.UNUSUAL_PATTERN.value
        assert records[0].severity == Severity.LOW.value
        assert records[0].ip_address == "Unknown"

    @pytest.mark.asyncio
    async def test_failing_pass_does_not_stop_the_others(self, test_db, detector, monkeypatch):
        await add_view_event(test_db, "alpha", "10.0.0.1", user_agent=None, created_at=NOW - timedelta(minutes=1))

        async def broken(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("timeout"))

        monkeypatch.setattr(detector, "find_excessive_origins", broken)

        records = await detector.scan(test_db, None, TimeWindow.LAST_HOUR, now=NOW)

        assert [record.kind for record in records] == [SuspiciousActivityKind.UNUSUAL_PATTERN.value]

    @pytest.mark.asyncio
    async def test_results_are_capped_per_pass(self, test_db):
        detector = SuspiciousActivityService(build_view_tracking_config(suspicious_scan_limit=2))
        for i in range(4):
            await add_view_event(test_db, "alpha", f"10.0.0.{i}", user_agent=None, created_at=NOW - timedelta(minutes=i + 1))

        records = await detector.scan(test_db, None, TimeWindow.LAST_HOUR, now=NOW)

        assert len(records) == 2

    @pytest.mark.asyncio
    async def test_admitted_bot_scan_stops_at_the_cap(self, test_db, monkeypatch):
        detector = SuspiciousActivityService(
            build_view_tracking_config(bot_detection_enabled=False, suspicious_scan_limit=2)
        )
        for i in range(6):
            await add_view_event(
                test_db, "alpha", f"10.0.0.{i}", user_agent="curl/8.4.0", created_at=NOW - timedelta(minutes=i + 1)
            )

        matched = []
        real_match = detector.classifier.match

        def counting_match(user_agent):
            matched.append(user_agent)
            return real_match(user_agent)

        monkeypatch.setattr(detector.classifier, "match", counting_match)

        records = await detector.find_admitted_bots(test_db, None, NOW - timedelta(hours=1))

        assert len(records) == 2
        assert len(matched) == 2
        # Newest first
        assert [record.ip_address for record in records] == ["10.0.0.0", "10.0.0.1"]


class TestReport:
    @pytest.mark.asyncio
    async def test_build_report_groups_by_kind(self, test_db, detector):
        await add_burst(test_db, "alpha", "10.0.0.1", 5)
        await add_view_event(test_db, "alpha", "10.0.0.8", user_agent=None, created_at=NOW - timedelta(minutes=2))

        records = await detector.scan(test_db, None, TimeWindow.LAST_DAY, now=NOW)
        report = detector.build_report(records, TimeWindow.LAST_DAY)

        assert report.summary.total_suspicious_ips == 1
        assert report.summary.total_bot_requests == 0
        assert report.summary.total_unusual_patterns == 1
        assert report.summary.time_range == TimeWindow.LAST_DAY
        assert report.suspicious_ips[0].ip_address == "10.0.0.1"

    def test_empty_report(self, detector):
        report = detector.build_report([], TimeWindow.LAST_WEEK)
        assert report.suspicious_ips == []
        assert report.summary.total_suspicious_ips == 0
