from .view_tracking import (
    AdminAction,
    AdminActionRequest,
    BulkFixResponse,
    ResetViewCountResponse,
    SuspiciousActivityRecord,
    SuspiciousActivityReport,
    SuspiciousActivityResponse,
    SystemViewStats,
    TrackViewResponse,
    ViewStats,
)

# Define the public API of this module
__all__ = [
    "AdminAction",
    "AdminActionRequest",
    "BulkFixResponse",
    "ResetViewCountResponse",
    "SuspiciousActivityRecord",
    "SuspiciousActivityReport",
    "SuspiciousActivityResponse",
    "SystemViewStats",
    "TrackViewResponse",
    "ViewStats",
]
