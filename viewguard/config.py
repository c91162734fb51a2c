import re
from dataclasses import dataclass
from datetime import timedelta
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from typing import Optional

from viewguard.constants.bot_patterns import BOT_USER_AGENT_PATTERNS, compile_extra_patterns

load_dotenv()

# Largest value a BIGINT counter column can hold
BIGINT_MAX = 2**63 - 1


class Settings(BaseSettings):
    # Application settings
    app_name: str = "ViewGuard"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"
    log_json: bool = False

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./viewguard.db"

    # Admin actions are open when no key is configured
    admin_api_key: Optional[str] = None
    admin_actions_rate_limit: str = "30/minute"

    # Redis cache for system-wide analytics (disabled when unset)
    redis_url: Optional[str] = None
    analytics_cache_ttl: int = 120

    # View tracking
    view_rate_limit_per_window: int = 10
    view_rate_window_seconds: int = 3600
    view_cooldown_seconds: int = 300
    max_safe_view_count: int = BIGINT_MAX
    view_rate_limiting_enabled: bool = True
    view_bot_detection_enabled: bool = True
    extra_bot_user_agent_patterns: list[str] = []

    # Analytics and anomaly reporting
    suspicious_view_count: int = 1_000_000
    analytics_top_referrers: int = 5
    analytics_top_content: int = 10
    suspicious_scan_limit: int = 100

    # Ledger retention
    view_event_retention_days: int = 90
    view_event_retention_interval_hours: int = 24

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()


@dataclass(frozen=True)
class ViewTrackingConfig:
    """
    Immutable view-tracking policy handed to each component at construction.

    Build it with ``build_view_tracking_config`` rather than directly so the
    defaults come from ``Settings``.
    """

    rate_limit_per_window: int = 10
    rate_window: timedelta = timedelta(hours=1)
    cooldown: timedelta = timedelta(minutes=5)
    max_safe_view_count: int = BIGINT_MAX
    rate_limiting_enabled: bool = True
    bot_detection_enabled: bool = True
    bot_patterns: tuple[tuple[str, re.Pattern], ...] = BOT_USER_AGENT_PATTERNS
    suspicious_view_count: int = 1_000_000
    top_referrers: int = 5
    top_content: int = 10
    suspicious_scan_limit: int = 100

    def __post_init__(self):
        if self.rate_limit_per_window < 1:
            raise ValueError("rate_limit_per_window must be at least 1")
        if self.max_safe_view_count < 1:
            raise ValueError("max_safe_view_count must be positive")
        if self.cooldown < timedelta(0) or self.rate_window <= timedelta(0):
            raise ValueError("rate_window must be positive and cooldown non-negative")


def build_view_tracking_config(source: Optional[Settings] = None, **overrides) -> ViewTrackingConfig:
    """
    Build the view-tracking policy from application settings.

    Keyword overrides replace individual fields, e.g.
    ``build_view_tracking_config(cooldown=timedelta(0))``.
    """
    source = source or settings
    values = {
        "rate_limit_per_window": source.view_rate_limit_per_window,
        "rate_window": timedelta(seconds=source.view_rate_window_seconds),
        "cooldown": timedelta(seconds=source.view_cooldown_seconds),
        "max_safe_view_count": source.max_safe_view_count,
        "rate_limiting_enabled": source.view_rate_limiting_enabled,
        "bot_detection_enabled": source.view_bot_detection_enabled,
        "bot_patterns": BOT_USER_AGENT_PATTERNS + compile_extra_patterns(source.extra_bot_user_agent_patterns),
        "suspicious_view_count": source.suspicious_view_count,
        "top_referrers": source.analytics_top_referrers,
        "top_content": source.analytics_top_content,
        "suspicious_scan_limit": source.suspicious_scan_limit,
    }
    values.update(overrides)
    return ViewTrackingConfig(**values)


def permissive_view_tracking_config(**overrides) -> ViewTrackingConfig:
    """Policy with abuse protection switched off; bot detection stays on."""
    values = {"rate_limiting_enabled": False, "cooldown": timedelta(0)}
    values.update(overrides)
    return build_view_tracking_config(**values)


def strict_view_tracking_config(**overrides) -> ViewTrackingConfig:
    """Policy that allows one view per origin per content and hour."""
    values = {"rate_limit_per_window": 1, "cooldown": timedelta(hours=1)}
    values.update(overrides)
    return build_view_tracking_config(**values)
