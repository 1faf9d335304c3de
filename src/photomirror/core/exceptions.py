"""Custom exception hierarchy for PhotoMirror.

This module defines a consistent exception hierarchy that enables:
- Typed failure classes for the upstream access layer
- Consistent HTTP status code mapping
- Machine-readable error handling for API consumers

Upstream failures raised by the transport:

    AuthenticationError   401/403, never retried
    RateLimitedError      429 after the retry budget is spent
    TransportError        network failure or timeout after the retry budget
    UpstreamError         any other non-2xx, not retried
    CancellationError     caller cancelled; not a failure

Usage:
    from photomirror.core.exceptions import UpstreamError

    raise UpstreamError(status=500, body="Internal Server Error")
"""

from typing import Any

BODY_EXCERPT_LENGTH = 200


class PhotoMirrorError(Exception):
    """Base exception for all PhotoMirror errors.

    All custom exceptions should inherit from this class to enable
    consistent error handling and response formatting.

    Attributes:
        code: Machine-readable error code (e.g., "RATE_LIMITED")
        message: Human-readable error message
        status_code: HTTP status code to return
        details: Additional error details (optional)
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Override default message
            code: Override default error code
            details: Additional error details
        """
        if message:
            self.message = message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        """Convert exception to API error response format.

        Args:
            request_id: Request correlation ID

        Returns:
            Error response dictionary
        """
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if request_id:
            error["request_id"] = request_id
        if self.details:
            error["details"] = self.details
        return {"error": error}


class ConfigurationError(PhotoMirrorError):
    """Raised when the service is missing required configuration."""

    code: str = "CONFIGURATION_ERROR"
    message: str = "Server configuration error"


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(PhotoMirrorError):
    """Base class for resource not found errors."""

    status_code: int = 404


class ExifNotFoundError(NotFoundError):
    """Raised when EXIF metadata is unavailable for an image."""

    code: str = "EXIF_NOT_FOUND"
    message: str = "EXIF metadata not available"

    def __init__(self, image_key: str | None = None, message: str | None = None) -> None:
        """Initialize with optional image key."""
        details: dict[str, Any] = {}
        if image_key:
            details["image_key"] = image_key
            if not message:
                message = f"EXIF metadata not available for image {image_key}"

        super().__init__(message=message, details=details if details else None)


# =============================================================================
# Validation Errors (400, 403)
# =============================================================================


class ValidationError(PhotoMirrorError):
    """Raised when input validation fails."""

    code: str = "VALIDATION_ERROR"
    message: str = "Validation error"
    status_code: int = 400

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with optional field information."""
        if details is None:
            details = {}
        if field:
            details["field"] = field
        super().__init__(message=message, details=details if details else None)


class InvalidEndpointError(ValidationError):
    """Raised when a proxied endpoint fails the allow-list."""

    code: str = "INVALID_ENDPOINT"
    message: str = "Invalid endpoint"
    status_code: int = 403

    def __init__(self, reason: str, endpoint: str | None = None) -> None:
        details: dict[str, Any] = {"reason": reason}
        if endpoint:
            details["endpoint"] = endpoint
        super().__init__(message=f"Invalid endpoint: {reason}", details=details)


# =============================================================================
# Cancellation (499)
# =============================================================================


class CancellationError(PhotoMirrorError):
    """Raised when the caller's cancel signal or deadline fires.

    Kept outside ExternalServiceError so callers do not log it as an
    upstream failure.
    """

    code: str = "REQUEST_CANCELLED"
    message: str = "Request cancelled by caller"
    status_code: int = 499


# =============================================================================
# External Service Errors (502, 503)
# =============================================================================


class ExternalServiceError(PhotoMirrorError):
    """Base class for upstream photo-hosting API errors."""

    code: str = "EXTERNAL_SERVICE_ERROR"
    message: str = "External service error"
    status_code: int = 502

    def __init__(
        self,
        message: str | None = None,
        endpoint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if endpoint:
            details["endpoint"] = endpoint
        self.endpoint = endpoint
        super().__init__(message=message, details=details if details else None)


class AuthenticationError(ExternalServiceError):
    """Raised when the upstream rejects the OAuth signature (401/403).

    Terminal: a retry would re-enter the same signing context.
    """

    code: str = "UPSTREAM_AUTHENTICATION_FAILED"
    message: str = "Upstream rejected request authentication"

    def __init__(
        self,
        status: int,
        body: str = "",
        endpoint: str | None = None,
    ) -> None:
        self.upstream_status = status
        self.body = body[:BODY_EXCERPT_LENGTH]
        message = f"Auth error: {status}"
        if self.body:
            message = f"{message} - {self.body}"
        super().__init__(
            message=message,
            endpoint=endpoint,
            details={"upstream_status": status},
        )


class RateLimitedError(ExternalServiceError):
    """Raised when 429 responses outlast the retry budget."""

    code: str = "RATE_LIMITED"
    message: str = "Upstream rate limit exceeded"
    status_code: int = 503

    def __init__(self, attempts: int, endpoint: str | None = None) -> None:
        self.attempts = attempts
        super().__init__(
            message=f"Rate limited after {attempts} attempts",
            endpoint=endpoint,
            details={"attempts": attempts},
        )


class TransportError(ExternalServiceError):
    """Raised when network failures outlast the retry budget."""

    code: str = "TRANSPORT_ERROR"
    message: str = "Failed to reach upstream service"

    def __init__(
        self,
        message: str | None = None,
        endpoint: str | None = None,
        attempts: int | None = None,
        timeout: bool = False,
    ) -> None:
        self.attempts = attempts
        self.timeout = timeout
        details: dict[str, Any] = {"timeout": timeout}
        if attempts is not None:
            details["attempts"] = attempts
        super().__init__(message=message, endpoint=endpoint, details=details)


class UpstreamError(ExternalServiceError):
    """Raised for non-retryable upstream responses (other 4xx/5xx)."""

    code: str = "UPSTREAM_ERROR"
    message: str = "Upstream API error"

    def __init__(
        self,
        status: int,
        body: str = "",
        endpoint: str | None = None,
        reason: str = "",
    ) -> None:
        self.upstream_status = status
        self.body = body[:BODY_EXCERPT_LENGTH]
        message = f"SmugMug API error: {status}"
        if reason:
            message = f"{message} {reason}"
        if self.body:
            message = f"{message} - {self.body}"
        super().__init__(
            message=message,
            endpoint=endpoint,
            details={"upstream_status": status},
        )
