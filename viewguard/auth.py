import hmac
import logging
from typing import Optional

from fastapi import Header

from viewguard.config import settings
from viewguard.exceptions import AuthorizationError

logger = logging.getLogger(__name__)


def verify_admin_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of an admin key; no configured key means open access."""
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


async def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """Dependency guarding administrative view-tracking actions."""
    if not verify_admin_key(x_admin_key, settings.admin_api_key):
        logger.warning("Rejected administrative request with missing or invalid X-Admin-Key")
        raise AuthorizationError("A valid X-Admin-Key header is required")
