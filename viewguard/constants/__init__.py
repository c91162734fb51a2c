from .bot_patterns import BOT_USER_AGENT_PATTERNS
from .view_tracking import (
    DIRECT_REFERRER,
    RejectionReason,
    Severity,
    SuspiciousActivityKind,
    TimeWindow,
)

__all__ = [
    "BOT_USER_AGENT_PATTERNS",
    "DIRECT_REFERRER",
    "RejectionReason",
    "Severity",
    "SuspiciousActivityKind",
    "TimeWindow",
]
