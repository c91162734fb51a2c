"""Durable per-content view counter."""

from sqlalchemy import BigInteger, Column, DateTime, Integer, String, UniqueConstraint

from viewguard.database import Base
from viewguard.utils.clock import utcnow


class ContentViewCounter(Base):
    __tablename__ = "content_view_counters"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    content_slug = Column(String(255), nullable=False, index=True)
    view_count = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("content_slug", name="unique_counter_slug"),)
