"""Error kinds raised by the control plane"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes exposed to request handlers"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    ALREADY_RUNNING = "ALREADY_RUNNING"
    EXTERNAL_API_ERROR = "EXTERNAL_API_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorSeverity(str, Enum):
    """Severity levels"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.ALREADY_RUNNING: 409,
    ErrorCode.EXTERNAL_API_ERROR: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.RETRIES_EXHAUSTED: 503,
}


class NewsguardError(Exception):
    """Base error carrying a code, severity and context for handlers

    ``retryable`` is read by the retry executor's default classifier.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    retryable: bool = True
    default_user_message = "An unexpected error occurred. Please try again later."

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.user_message = user_message or self.default_user_message
        self.timestamp = datetime.now(UTC)

    @property
    def status_code(self) -> int:
        """HTTP status a request handler should render for this error"""
        return _STATUS_CODES.get(self.code, 500)

    def to_dict(self, include_context: bool = False) -> dict[str, Any]:
        """Serialize for an API error body"""
        body: dict[str, Any] = {
            "code": self.code.value,
            "message": self.user_message,
        }
        if include_context and self.context:
            body["details"] = self.context
        return body


class TransientUpstreamFailure(NewsguardError):
    """An upstream call failed in a way that may succeed on retry"""

    code = ErrorCode.EXTERNAL_API_ERROR
    default_user_message = (
        "External service is temporarily unavailable. Please try again later."
    )

    def __init__(self, service: str, message: str, **kwargs: Any):
        context = {**kwargs.pop("context", {}), "service": service}
        super().__init__(f"{service}: {message}", context=context, **kwargs)
        self.service = service


class MalformedRequestError(NewsguardError):
    """The request itself is invalid; retrying cannot help"""

    code = ErrorCode.INVALID_REQUEST
    severity = ErrorSeverity.LOW
    retryable = False
    default_user_message = "Please check your input and try again."


class AlreadyRunning(NewsguardError):
    """A collection run is already in progress"""

    code = ErrorCode.ALREADY_RUNNING
    severity = ErrorSeverity.LOW
    retryable = False
    default_user_message = "A collection is already in progress."

    def __init__(self, run_id: str | None = None):
        super().__init__(
            "Collection is already running",
            context={"run_id": run_id} if run_id else None,
        )
        self.run_id = run_id


class ServiceUnavailable(NewsguardError):
    """A circuit breaker is open for the named dependency"""

    code = ErrorCode.SERVICE_UNAVAILABLE
    severity = ErrorSeverity.HIGH
    default_user_message = (
        "Service is temporarily unavailable. Please try again in a few minutes."
    )

    def __init__(self, service: str, retry_after: float | None = None):
        super().__init__(
            f"{service} is temporarily unavailable due to repeated failures",
            context={"service": service, "retry_after": retry_after},
        )
        self.service = service
        self.retry_after = retry_after


class ExhaustedRetries(NewsguardError):
    """Every attempt failed; ``last_error`` is the final underlying failure"""

    code = ErrorCode.RETRIES_EXHAUSTED
    severity = ErrorSeverity.HIGH
    retryable = False

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(
            str(last_error) or type(last_error).__name__,
            context={"attempts": attempts, "error_type": type(last_error).__name__},
        )
        self.attempts = attempts
        self.last_error = last_error


def error_message(error: BaseException) -> str:
    """Human-readable message for any exception, never empty"""
    return str(error) or type(error).__name__
