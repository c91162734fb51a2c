"""
Rate Limiting for administrative endpoints

View admission has its own ledger-backed abuse guard; slowapi only protects
the operator surface from being hammered.
"""

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    headers_enabled=False,
)


def configure_rate_limiting(app):
    """
    Attach the limiter and its 429 handler to the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
