from .content import Content, ContentStatus
from .view_counter import ContentViewCounter
from .view_event import ViewEvent, ViewOutcome

__all__ = [
    "Content",
    "ContentStatus",
    "ContentViewCounter",
    "ViewEvent",
    "ViewOutcome",
]
