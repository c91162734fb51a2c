"""
Tests for application exceptions and their error responses
"""

import json

import pytest
from fastapi import status

from viewguard.exception_handlers import create_error_response, error_code_for, error_type_for
from viewguard.exceptions import (
    AuthorizationError,
    CMSError,
    ContentNotFoundError,
    CounterOverflowError,
    ErrorCode,
    StorageError,
    ValidationError,
    ViewRejectedError,
)


class TestCMSError:
    def test_defaults(self):
        exc = CMSError("Test error")
        assert str(exc) == "Test error"
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.details == {}
        assert exc.error_code == ErrorCode.INTERNAL_ERROR

    def test_explicit_error_code(self):
        exc = CMSError("Unavailable", status_code=503, error_code=ErrorCode.SERVICE_UNAVAILABLE)
        assert exc.error_code == ErrorCode.SERVICE_UNAVAILABLE


class TestViewTrackingErrors:
    def test_view_rejected(self):
        exc = ViewRejectedError("cooldown_active", content_slug="beta")
        assert exc.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert exc.reason == "cooldown_active"
        assert exc.details == {"reason": "cooldown_active", "content_slug": "beta"}
        assert exc.error_code == ErrorCode.VIEW_REJECTED

    def test_content_not_found(self):
        exc = ContentNotFoundError("alpha")
        assert exc.status_code == status.HTTP_404_NOT_FOUND
        assert "alpha" in exc.message
        assert exc.error_code == ErrorCode.RESOURCE_CONTENT_NOT_FOUND

    def test_counter_overflow(self):
        exc = CounterOverflowError("alpha", 100)
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.error_code == ErrorCode.COUNTER_OVERFLOW
        assert exc.details["max_safe_view_count"] == 100

    def test_storage_error(self):
        exc = StorageError(operation="increment_view_count")
        assert exc.details == {"operation": "increment_view_count"}
        assert exc.error_code == ErrorCode.DATABASE_ERROR

    def test_validation_error(self):
        exc = ValidationError("Content slug is required", field="content_slug")
        assert exc.status_code == status.HTTP_400_BAD_REQUEST
        assert exc.details == {"field": "content_slug"}

    def test_authorization_error(self):
        assert AuthorizationError().status_code == status.HTTP_403_FORBIDDEN


class TestErrorResponses:
    def test_error_response_format(self):
        response = create_error_response(
            status_code=429,
            message="View not counted: bot_detected",
            error_code=ErrorCode.VIEW_REJECTED,
            details={"reason": "bot_detected"},
            path="/views/alpha",
        )

        body = json.loads(response.body)
        assert response.status_code == 429
        assert body["error"] == {
            "status_code": 429,
            "message": "View not counted: bot_detected",
            "type": "Too Many Requests",
            "error_code": "VIEW_REJECTED",
            "details": {"reason": "bot_detected"},
            "path": "/views/alpha",
        }

    def test_error_type_and_code_lookup(self):
        assert error_type_for(404) == "Not Found"
        assert error_type_for(418) == "Error"
        assert error_code_for(429) == ErrorCode.RATE_LIMIT_EXCEEDED
        assert error_code_for(418) == ErrorCode.UNKNOWN_ERROR
        assert error_code_for(502) == ErrorCode.INTERNAL_ERROR


class TestRegisteredHandlers:
    def test_request_errors_are_handled_at_the_fastapi_layer(self):
        from fastapi.exceptions import RequestValidationError
        from pydantic import ValidationError as PydanticValidationError

        from main import app

        assert RequestValidationError in app.exception_handlers
        assert PydanticValidationError not in app.exception_handlers

    @pytest.mark.asyncio
    async def test_unknown_route_uses_the_error_envelope(self, client):
        response = client.get("/no-such-route")

        assert response.status_code == 404
        assert response.json()["error"]["error_code"] == "RESOURCE_NOT_FOUND"
        assert response.json()["error"]["path"] == "/no-such-route"
