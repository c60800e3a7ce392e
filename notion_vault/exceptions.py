"""
Exception hierarchy for the credential vault and the Notion API client.

Every error carries an ErrorCode, an HTTP-style status, optional structured
context and the exception that caused it, and logs itself once on creation.
Notion API failures are normalised into NotionApiError subclasses that keep
the upstream HTTP status and tell callers whether to retry or re-authenticate.

Messages and context never contain plaintext tokens.
"""

import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Stable error codes, grouped by the leading digit."""

    # System (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Input (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Lookup (3xxx)
    NOT_FOUND = "3000"

    # Secrets (4xxx)
    AUTHENTICATION_FAILED = "4005"
    DECRYPTION_FAILED = "4100"
    INTEGRITY_CHECK_FAILED = "4101"

    # Notion (5xxx)
    EXTERNAL_API_ERROR = "5002"
    INVALID_RESPONSE = "5005"
    RATE_LIMITED = "5006"


def set_correlation_id(correlation_id: str) -> None:
    """Tag errors raised on this thread with ``correlation_id``."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    _thread_local.__dict__.pop("correlation_id", None)


def _log(error: "BaseError") -> None:
    # Deferred: the logger reads config, which is importable only after this module
    from .utils.logger import get_logger

    logger = get_logger()
    extra = {
        "error_id": error.error_id,
        "error_code": error.error_code.value,
        "status_code": error.status_code,
        "context": error.context,
    }
    if error.correlation_id:
        extra["correlation_id"] = error.correlation_id
    if error.cause is not None:
        extra["cause"] = type(error.cause).__name__

    if error.status_code >= 500:
        logger.error(error.message, extra=extra)
    else:
        logger.warning(error.message, extra=extra)


class BaseError(Exception):
    """
    Root of every error raised by this package.

    Subclasses set ``error_code`` and ``status_code`` as class attributes;
    either can be overridden per instance. Keyword arguments not consumed by
    a subclass end up in ``context``.
    """

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.cause = cause
        self.context: Dict[str, Any] = context
        self.error_id = str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.correlation_id = get_correlation_id()
        _log(self)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Serializable form for API responses and structured logs.

        Args:
            include_cause: Add the type and message of the underlying exception
        """
        body: Dict[str, Any] = {
            "id": self.error_id,
            "code": self.error_code.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "context": dict(self.context),
        }
        if self.correlation_id:
            body["correlation_id"] = self.correlation_id
        if include_cause and self.cause is not None:
            body["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}
        return {"error": body}


class ConfigurationError(BaseError):
    """Required secret or setting missing at startup."""

    error_code = ErrorCode.CONFIGURATION_ERROR

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        if setting:
            kwargs["setting"] = setting
        super().__init__(message, **kwargs)


class StorageError(BaseError):
    """A credential table DDL or DML statement failed."""

    error_code = ErrorCode.DATABASE_ERROR

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        if operation:
            kwargs["operation"] = operation
        super().__init__(message, **kwargs)


class ValidationError(BaseError):
    error_code = ErrorCode.VALIDATION_FAILED
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        if field:
            kwargs["field"] = field
        super().__init__(message, **kwargs)


class NotFoundError(BaseError):
    error_code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(message, **kwargs)


class CredentialNotFoundError(NotFoundError):
    """No active credential for the app and workspace."""

    def __init__(self, message: str = "Credential not found", **kwargs):
        super().__init__(message, **kwargs)


class DecryptionError(BaseError):
    """Ciphertext is malformed, truncated or did not decrypt."""

    error_code = ErrorCode.DECRYPTION_FAILED

    def __init__(self, message: str = "Decryption failed", **kwargs):
        super().__init__(message, **kwargs)


class IntegrityError(DecryptionError):
    """The HMAC tag did not match: tampered blob or a different master key."""

    error_code = ErrorCode.INTEGRITY_CHECK_FAILED

    def __init__(self, message: str = "HMAC verification failed - data may be tampered", **kwargs):
        super().__init__(message, **kwargs)


class DecryptionFailure(BaseError):
    """A stored credential could not be decrypted with the current master secret."""

    error_code = ErrorCode.DECRYPTION_FAILED

    def __init__(self, message: str = "Failed to decrypt credentials", **kwargs):
        super().__init__(message, **kwargs)


class NotionApiError(BaseError):
    """Base class for failures talking to the Notion API."""

    error_code = ErrorCode.EXTERNAL_API_ERROR
    status_code = 502
    retryable = False
    generic_user_message = "An error occurred while communicating with Notion API."

    def __init__(self, message: str, http_status: int = 0, **kwargs):
        self.http_status = http_status
        kwargs["service_name"] = "notion"
        if http_status:
            kwargs["http_status"] = http_status
        super().__init__(message, **kwargs)

    @property
    def is_retryable(self) -> bool:
        """Whether the caller may retry with backoff."""
        return self.retryable

    @property
    def is_auth_error(self) -> bool:
        """Whether the credential needs replacing rather than the call retrying."""
        return self.http_status in (401, 403)

    @property
    def user_message(self) -> str:
        """Explanation suitable for end users."""
        return self.generic_user_message


class NetworkError(NotionApiError):
    """Timeout, DNS failure or connection reset."""

    status_code = 503
    retryable = True

    def __init__(self, message: str, timed_out: bool = False, **kwargs):
        kwargs.setdefault(
            "error_code", ErrorCode.TIMEOUT_ERROR if timed_out else ErrorCode.CONNECTION_ERROR
        )
        super().__init__(message, timed_out=timed_out, **kwargs)

    @property
    def user_message(self) -> str:
        return "Network error connecting to Notion API. Please check your connection."


class InvalidResponseError(NotionApiError):
    """The response body was not a JSON object."""

    error_code = ErrorCode.INVALID_RESPONSE
    retryable = True

    def __init__(self, message: str = "Invalid JSON response from Notion API", **kwargs):
        super().__init__(message, **kwargs)

    @property
    def user_message(self) -> str:
        return "Invalid response from Notion API."


class RemoteApiError(NotionApiError):
    """Notion answered with an HTTP status of 400 or above."""

    USER_MESSAGES = {
        400: "Invalid request to Notion API. Please check your request parameters.",
        401: "Notion API key is invalid or expired. Please update your credentials.",
        403: "You do not have permission to access this Notion resource.",
        404: "The requested Notion resource was not found.",
        409: "Conflict with existing data. The resource may have been modified.",
        429: "Notion API rate limit exceeded. Please try again in a few moments.",
    }

    def __init__(
        self,
        message: str,
        http_status: int,
        notion_code: Optional[str] = None,
        **kwargs,
    ):
        self.notion_code = notion_code
        self.retryable = http_status == 429 or http_status >= 500
        if notion_code:
            kwargs["notion_code"] = notion_code
        if http_status in (401, 403):
            kwargs.setdefault("error_code", ErrorCode.AUTHENTICATION_FAILED)
        elif http_status == 429:
            kwargs.setdefault("error_code", ErrorCode.RATE_LIMITED)
        kwargs.setdefault("status_code", http_status if 400 <= http_status < 500 else 502)
        super().__init__(message, http_status=http_status, **kwargs)

    @property
    def user_message(self) -> str:
        if self.http_status >= 500:
            return "Notion API server error. Please try again later."
        return self.USER_MESSAGES.get(self.http_status, self.generic_user_message)
