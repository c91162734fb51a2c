from sqlalchemy import Column, Integer, String, DateTime, Enum, Index, UniqueConstraint
from viewguard.database import Base
from viewguard.utils.clock import utcnow
import enum


class ContentStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"


class Content(Base):
    """Article record owned by the editorial side; only read here."""

    __tablename__ = "content"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    status = Column(Enum(ContentStatus), default=ContentStatus.DRAFT, nullable=False)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("slug", name="unique_slug"),
        Index("idx_content_status", "status"),
    )
