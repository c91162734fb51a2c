"""
View Tracking Constants

Rejection reasons, suspicious-activity kinds and the time windows accepted
by the operator endpoints.
"""

from datetime import timedelta
from enum import Enum


class RejectionReason(str, Enum):
    """Reason string returned to the caller when a view is not counted."""

    BOT_DETECTED = "bot_detected"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    COOLDOWN_ACTIVE = "cooldown_active"
    STORAGE_ERROR = "storage_error"


class SuspiciousActivityKind(str, Enum):
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    BOT_DETECTED = "bot_detected"
    UNUSUAL_PATTERN = "unusual_pattern"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TimeWindow(str, Enum):
    """Trailing windows for suspicious activity reports."""

    LAST_HOUR = "1h"
    LAST_DAY = "24h"
    LAST_WEEK = "7d"

    @property
    def duration(self) -> timedelta:
        return TIME_WINDOW_DURATIONS[self]


TIME_WINDOW_DURATIONS = {
    TimeWindow.LAST_HOUR: timedelta(hours=1),
    TimeWindow.LAST_DAY: timedelta(days=1),
    TimeWindow.LAST_WEEK: timedelta(days=7),
}

DIRECT_REFERRER = "Direct"

# A rate-limit group this many times over the threshold is reported as high severity
HIGH_SEVERITY_MULTIPLIER = 5
