"""Append-only ledger of view attempts and their outcomes."""

import enum

from sqlalchemy import JSON, Column, DateTime, Enum, Index, Integer, String, Text

from viewguard.database import Base
from viewguard.utils.clock import utcnow


class ViewOutcome(str, enum.Enum):
    ADMITTED = "admitted"
    BOT_DETECTED = "bot_detected"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    COOLDOWN_ACTIVE = "cooldown_active"
    # Admitted by the guards but the counter could not be incremented
    FAILED = "failed"


class ViewEvent(Base):
    __tablename__ = "view_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    content_slug = Column(String(255), nullable=False)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=False, default="Direct")
    outcome = Column(Enum(ViewOutcome, native_enum=False, length=32), nullable=False)
    reason = Column(String(64), nullable=True)
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_view_events_pair_created", "content_slug", "ip_address", "created_at"),
        Index("idx_view_events_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ViewEvent {self.content_slug} {self.ip_address} {self.outcome.value}>"
