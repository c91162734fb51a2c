"""
Custom Exception Classes for ViewGuard

This module defines custom exceptions for better error handling and
consistent error responses across the application.
"""

import enum
from typing import Any

from fastapi import status


class ErrorCode(str, enum.Enum):
    """Machine-readable error codes returned in every error response"""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONTENT_NOT_FOUND = "RESOURCE_CONTENT_NOT_FOUND"
    VIEW_REJECTED = "VIEW_REJECTED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    COUNTER_OVERFLOW = "COUNTER_OVERFLOW"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class CMSError(Exception):
    """Base exception class for all application exceptions"""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Authorization Exceptions
# ============================================================================


class AuthorizationError(CMSError):
    """Raised when the caller may not perform an administrative action"""

    error_code = ErrorCode.AUTH_PERMISSION_DENIED

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class ResourceNotFoundError(CMSError):
    """Base class for resource not found errors"""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ContentNotFoundError(ResourceNotFoundError):
    """Raised when content does not exist or is not publishable"""

    error_code = ErrorCode.RESOURCE_CONTENT_NOT_FOUND

    def __init__(self, content_slug: Any | None = None):
        super().__init__(resource_type="Content", resource_id=content_slug)


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(CMSError):
    """Raised when input validation fails"""

    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=error_details)


# ============================================================================
# View Tracking Exceptions
# ============================================================================


class ViewRejectedError(CMSError):
    """Raised when a view is refused by bot detection or abuse protection"""

    error_code = ErrorCode.VIEW_REJECTED

    def __init__(self, reason: str, content_slug: str | None = None):
        details: dict[str, Any] = {"reason": reason}
        if content_slug is not None:
            details["content_slug"] = content_slug
        super().__init__(
            message=f"View not counted: {reason}",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details,
        )
        self.reason = reason


class CounterOverflowError(CMSError):
    """Raised when a view counter has reached its safety ceiling"""

    error_code = ErrorCode.COUNTER_OVERFLOW

    def __init__(self, content_slug: str, ceiling: int):
        super().__init__(
            message=f"View count for '{content_slug}' is at its maximum safe value",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"content_slug": content_slug, "max_safe_view_count": ceiling},
        )


# ============================================================================
# Database & Service Exceptions
# ============================================================================


class StorageError(CMSError):
    """Raised when a database operation fails"""

    error_code = ErrorCode.DATABASE_ERROR

    def __init__(self, message: str = "A database error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)
