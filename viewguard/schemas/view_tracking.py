from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from viewguard.constants.view_tracking import Severity, SuspiciousActivityKind, TimeWindow


class TrackViewResponse(BaseModel):
    views: int = Field(..., ge=0, description="View count after this view was counted.")
    display_views: str = Field(..., description="Abbreviated view count, e.g. 1.5K.")
    counted: bool = Field(True, description="Whether the view incremented the counter.")
    ledger_recorded: bool = Field(True, description="False when the audit record could not be written.")


class ReferrerCount(BaseModel):
    referrer: str
    count: int


class HourlyBucket(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    views: int


class ViewStats(BaseModel):
    content_slug: str
    total_views: int
    display_total_views: str
    unique_ips_today: int
    unique_ips_this_week: int
    average_views_per_day: int
    top_referrers: List[ReferrerCount] = []
    hourly_distribution: List[HourlyBucket] = []


class ContentViewSummary(BaseModel):
    content_slug: str
    title: Optional[str] = None
    views: int
    published_at: Optional[datetime] = None


class ProblematicCounter(BaseModel):
    content_slug: str
    views: int
    created_at: Optional[datetime] = None


class SystemViewStats(BaseModel):
    total_views: int = 0
    average_views: int = 0
    max_views: int = 0
    total_counters: int = 0
    visits_today: int = 0
    visits_this_week: int = 0
    unique_visitors_today: int = 0
    unique_visitors_this_week: int = 0
    top_content_by_views: List[ContentViewSummary] = []
    problematic_counters: List[ProblematicCounter] = []
    generated_at: datetime


class SuspiciousActivityRecord(BaseModel):
    """One finding of the suspicious activity scan. Computed, never stored."""

    model_config = ConfigDict(use_enum_values=True)

    kind: SuspiciousActivityKind
    ip_address: str
    content_slug: str
    evidence: str
    timestamp: datetime
    severity: Severity
    request_count: Optional[int] = None


class SuspiciousActivitySummary(BaseModel):
    total_suspicious_ips: int
    total_bot_requests: int
    total_unusual_patterns: int
    time_range: TimeWindow


class SuspiciousActivityReport(BaseModel):
    suspicious_ips: List[SuspiciousActivityRecord] = []
    bot_traffic: List[SuspiciousActivityRecord] = []
    unusual_patterns: List[SuspiciousActivityRecord] = []
    summary: SuspiciousActivitySummary


class AdminAction(str, Enum):
    RESET_VIEW_COUNT = "reset_view_count"
    BULK_FIX_VIEW_COUNTS = "bulk_fix_view_counts"
    GET_SUSPICIOUS_ACTIVITY = "get_suspicious_activity"


class AdminActionRequest(BaseModel):
    action: AdminAction = Field(..., description="Administrative action to perform.")
    content_slug: Optional[str] = Field(None, min_length=1, max_length=255)
    new_count: int = Field(0, description="Target count for reset_view_count; negative values become 0.")
    time_range: TimeWindow = Field(TimeWindow.LAST_DAY, description="Window for get_suspicious_activity.")

    @model_validator(mode="after")
    def require_slug_for_reset(self):
        if self.action == AdminAction.RESET_VIEW_COUNT and not self.content_slug:
            raise ValueError("content_slug is required for reset_view_count")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "action": "reset_view_count",
                "content_slug": "city-council-approves-budget",
                "new_count": 0,
            }
        }
    )


class ResetViewCountResponse(BaseModel):
    success: bool
    content_slug: str
    views: int
    message: str


class BulkFixResponse(BaseModel):
    success: bool
    updated: int
    errors: int
    message: str


class SuspiciousActivityResponse(BaseModel):
    content_slug: Optional[str] = None
    time_range: TimeWindow
    report: SuspiciousActivityReport
    timestamp: datetime
