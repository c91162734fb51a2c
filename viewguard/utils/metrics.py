"""
Prometheus Metrics Module

Provides application metrics using the prometheus_client library.
Metrics are exposed at /metrics endpoint for Prometheus scraping.
"""

import time
from collections.abc import Callable

from prometheus_client import Counter, Gauge, Histogram, Info
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("viewguard_app", "ViewGuard application information")


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment})


# =============================================================================
# HTTP Request Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "viewguard_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "viewguard_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# =============================================================================
# View Tracking Metrics
# =============================================================================

VIEW_DECISIONS_TOTAL = Counter(
    "viewguard_view_decisions_total",
    "View attempts by final outcome",
    ["outcome"],  # admitted, bot_detected, rate_limit_exceeded, cooldown_active, failed
)

COUNTER_INCREMENTS_TOTAL = Counter(
    "viewguard_counter_increments_total",
    "View counter increment attempts by result",
    ["result"],  # ok, not_found, overflow, storage
)

LEDGER_WRITE_FAILURES_TOTAL = Counter(
    "viewguard_ledger_write_failures_total",
    "View ledger records that could not be written",
)

LEDGER_EVENTS_PRUNED_TOTAL = Counter(
    "viewguard_ledger_events_pruned_total",
    "View ledger records removed by the retention job",
)

# =============================================================================
# Application Health Metrics
# =============================================================================

APP_UPTIME_SECONDS = Gauge(
    "viewguard_uptime_seconds",
    "Application uptime in seconds",
)

HEALTH_CHECK_STATUS = Gauge(
    "viewguard_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    ["service"],
)

# =============================================================================
# Prometheus Metrics Middleware
# =============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics for Prometheus.

    Tracks request count by method, endpoint and status code, and request
    duration by method and endpoint.
    """

    EXCLUDED_PATHS = {"/metrics", "/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_path(path)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()

        return response

    @staticmethod
    def _normalize_path(path: str) -> str:
        """
        Collapse per-article paths so slugs do not explode label cardinality.

        Examples:
            /views/city-budget -> /views/{slug}
            /analytics/city-budget -> /analytics/{slug}
            /analytics/actions -> /analytics/actions
        """
        parts = path.strip("/").split("/")
        if len(parts) == 2 and parts[0] in ("views", "analytics") and parts[1] != "actions":
            return f"/{parts[0]}/{{slug}}"
        return path


# =============================================================================
# Helper Functions
# =============================================================================


def record_view_decision(outcome: str) -> None:
    """Record the final outcome of one view attempt."""
    VIEW_DECISIONS_TOTAL.labels(outcome=outcome).inc()


def record_counter_increment(result: str) -> None:
    COUNTER_INCREMENTS_TOTAL.labels(result=result).inc()


def record_ledger_write_failure() -> None:
    LEDGER_WRITE_FAILURES_TOTAL.inc()


def record_events_pruned(count: int) -> None:
    LEDGER_EVENTS_PRUNED_TOTAL.inc(count)


def update_health_status(service: str, healthy: bool) -> None:
    """Update health check status for a service."""
    HEALTH_CHECK_STATUS.labels(service=service).set(1 if healthy else 0)


def update_uptime(start_time: float) -> None:
    """Update application uptime."""
    APP_UPTIME_SECONDS.set(time.time() - start_time)
