"""
SightEd Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions, one per failure class the API reports.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers in main.py turn them into JSON error bodies:
       {"error": ..., "message": ..., "details": ..., "request_id": ...}
Who:   Raised by services, storage and routes; caught by global handlers.

Exception Hierarchy:
    SightEdError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized (bad email/password)
    ├── UpstreamAuthError        → 401 Unauthorized (Google token rejected)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── QuotaExceededError       → 429 Too Many Requests (Vision/Gemini quota)
    ├── RateLimitExceededError   → 429 Too Many Requests (our own limiter)
    ├── UpstreamServiceError     → upstream status, 502 when unknown
    ├── LLMServiceError          → 500 Internal Server Error
    ├── VisionServiceError       → 500 Internal Server Error
    ├── StorageError             → 500 Internal Server Error
    └── CircuitBreakerOpenError  → 503 Service Unavailable
"""

from typing import Any, Dict, Optional


class SightEdError(Exception):
    """
    Base exception for all SightEd application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info, returned as "details"
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SightEdError):
    """
    Raised when client input fails validation.

    When:    Missing required fields, bad email format, non-image upload,
             oversize upload, missing Google access token.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(SightEdError):
    """
    Raised when email/password login fails.

    The same message is used for unknown email and wrong password so the
    response does not reveal which accounts exist.
    """

    def __init__(
        self,
        message: str = "Invalid email or password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamAuthError(SightEdError):
    """Google rejected the OAuth code or access token (expired, revoked, malformed)."""

    def __init__(
        self,
        message: str = "Unauthorized: Token is invalid or expired",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SightEdError):
    """
    Raised when a requested document does not exist.

    Stores return None for missing documents; services convert None into
    this exception so routes never check for it.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(SightEdError):
    """Raised when creating a document that must be unique (e.g. a user email)."""

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class QuotaExceededError(SightEdError):
    """
    Raised when Google Cloud Vision or Gemini reports an exhausted quota.

    HTTP:    429 Too Many Requests, with details "QUOTA_EXCEEDED"
    Retries: Never retried; quota errors do not clear within a request.
    """

    def __init__(
        self,
        message: str = "The quota has been exceeded",
        service: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if service:
            ctx["service"] = service
        super().__init__(message=message, context=ctx)
        self.service = service


class RateLimitExceededError(SightEdError):
    """Raised when a client exceeds the per-IP request rate limit."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class UpstreamServiceError(SightEdError):
    """
    Raised when Google Photos (or the token endpoint) answers with a non-2xx status.

    What:    The upstream status code is passed through to our client so a
             403 or 404 from Google stays a 403 or 404. Transport failures
             (DNS, timeout, connection reset) carry status 500.
    """

    def __init__(
        self,
        message: str = "Upstream service request failed",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["upstream_status"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class LLMServiceError(SightEdError):
    """
    Raised when the Gemini call fails after all retries.

    When:    After tenacity retries are exhausted, or Gemini returned text
             that could not be parsed into the expected structure.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "AI text generation failed",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class VisionServiceError(SightEdError):
    """Cloud Vision label/landmark detection failed for a non-quota reason."""

    def __init__(
        self,
        message: str = "Failed to analyze image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageError(SightEdError):
    """
    Raised when the document store cannot complete an operation.

    Security Note:
        The message returned to the client is always generic. Driver errors
        (SQL text, constraint names) are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(SightEdError):
    """
    Raised when the Gemini circuit breaker is OPEN.

    CLOSED → after cb_failure_threshold failures → OPEN (reject immediately)
    OPEN   → after cb_recovery_timeout seconds  → HALF_OPEN (one trial call)
    HALF_OPEN → success → CLOSED | failure → OPEN
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time
