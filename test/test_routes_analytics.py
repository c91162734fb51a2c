"""
Tests for the analytics and administrative endpoints
"""

import pytest
from utils.view_helpers import add_view_event, create_test_content, get_view_count, set_view_count

from viewguard.config import settings


class TestAnalyticsRoutes:
    @pytest.mark.asyncio
    async def test_content_stats(self, client, test_db):
        await create_test_content(test_db, "alpha")
        await set_view_count(test_db, "alpha", 2_500_000)
        await add_view_event(test_db, "alpha", "10.0.0.1")

        response = client.get("/analytics/alpha")

        assert response.status_code == 200
        data = response.json()
        assert data["content_slug"] == "alpha"
        assert data["total_views"] == 2_500_000
        assert data["display_total_views"] == "2.5M"
        assert data["unique_ips_today"] == 1
        assert len(data["hourly_distribution"]) == 24

    @pytest.mark.asyncio
    async def test_content_stats_unknown_content(self, client, test_db):
        response = client.get("/analytics/missing")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_system_stats(self, client, test_db):
        await create_test_content(test_db, "alpha")
        await set_view_count(test_db, "alpha", 7)

        response = client.get("/analytics")

        assert response.status_code == 200
        data = response.json()
        assert data["total_views"] == 7
        assert data["top_content_by_views"][0]["content_slug"] == "alpha"


class TestAdminActions:
    @pytest.mark.asyncio
    async def test_reset_view_count(self, client, test_db, session_factory):
        await create_test_content(test_db, "alpha")
        await set_view_count(test_db, "alpha", 900)

        response = client.post(
            "/analytics/actions", json={"action": "reset_view_count", "content_slug": "alpha", "new_count": 5}
        )

        assert response.status_code == 200
        assert response.json()["views"] == 5
        assert await get_view_count(session_factory, "alpha") == 5

        view = client.post("/views/alpha")
        assert view.json()["views"] == 6

    @pytest.mark.asyncio
    async def test_reset_requires_slug(self, client, test_db):
        response = client.post("/analytics/actions", json={"action": "reset_view_count"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_reset_unknown_content(self, client, test_db):
        response = client.post("/analytics/actions", json={"action": "reset_view_count", "content_slug": "missing"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_bulk_fix(self, client, test_db, session_factory):
        await create_test_content(test_db, "alpha")
        await set_view_count(test_db, "alpha", -12)

        response = client.post("/analytics/actions", json={"action": "bulk_fix_view_counts"})

        assert response.status_code == 200
        assert response.json()["updated"] == 1
        assert response.json()["success"] is True
        assert await get_view_count(session_factory, "alpha") == 0

    @pytest.mark.asyncio
    async def test_suspicious_activity(self, client, test_db):
        await add_view_event(test_db, "alpha", "10.0.0.7", user_agent=None)

        response = client.post(
            "/analytics/actions", json={"action": "get_suspicious_activity", "time_range": "1h"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["time_range"] == "1h"
        assert data["report"]["summary"]["total_unusual_patterns"] == 1
        assert data["report"]["unusual_patterns"][0]["severity"] == "low"

    @pytest.mark.asyncio
    async def test_invalid_time_range(self, client, test_db):
        response = client.post(
            "/analytics/actions", json={"action": "get_suspicious_activity", "time_range": "30d"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_action(self, client, test_db):
        response = client.post("/analytics/actions", json={"action": "delete_everything"})

        assert response.status_code == 422
        assert response.json()["error"]["error_code"] == "VALIDATION_FAILED"

    @pytest.mark.asyncio
    async def test_admin_key_is_enforced_when_configured(self, client, test_db, monkeypatch):
        monkeypatch.setattr(settings, "admin_api_key", "s3cret")

        denied = client.post("/analytics/actions", json={"action": "bulk_fix_view_counts"})
        wrong = client.post(
            "/analytics/actions", json={"action": "bulk_fix_view_counts"}, headers={"X-Admin-Key": "guess"}
        )
        allowed = client.post(
            "/analytics/actions", json={"action": "bulk_fix_view_counts"}, headers={"X-Admin-Key": "s3cret"}
        )

        assert denied.status_code == 403
        assert wrong.status_code == 403
        assert allowed.status_code == 200


class TestMonitoringRoutes:
    @pytest.mark.asyncio
    async def test_health(self, client, test_db):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["redis"]["status"] == "not_configured"

    @pytest.mark.asyncio
    async def test_metrics_exposition(self, client, test_db):
        await create_test_content(test_db, "alpha")
        client.post("/views/alpha")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "viewguard_view_decisions_total" in response.text
        assert "viewguard_counter_increments_total" in response.text
