"""
Unified Exception Hierarchy for Evidence Search.

Exception Hierarchy:
    EvidenceSearchError (base)
    ├── APIError
    │   ├── NetworkError            (timeout, DNS, connection reset)
    │   ├── RateLimitError          (HTTP 429)
    │   ├── ServiceUnavailableError (HTTP 5xx)
    │   └── ClientRequestError      (HTTP 4xx other than 429)
    ├── ValidationError
    │   ├── InvalidQueryError
    │   └── InvalidParameterError
    ├── DataError
    │   ├── NotFoundError
    │   └── ParseError
    └── ConfigurationError

Every error carries a ``retryable`` flag so callers (and the retry policy)
can decide whether a repeat attempt makes sense.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

import httpx


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = auto()      # Recoverable, can continue
    ERROR = auto()        # Failed but can retry
    CRITICAL = auto()     # Cannot continue
    TRANSIENT = auto()    # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""
    API = "api"
    VALIDATION = "validation"
    DATA = "data"
    CONFIGURATION = "config"
    NETWORK = "network"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to an error."""
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class EvidenceSearchError(Exception):
    """
    Base exception for all Evidence Search errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    __slots__ = ('context', 'severity', 'category', 'retryable')

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.API,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# API Errors
# =============================================================================

class APIError(EvidenceSearchError):
    """Base class for errors raised while talking to an external service."""

    __slots__ = ('status_code', 'service')

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        service: str | None = None,
        context: ErrorContext | None = None,
        retryable: bool = True,
        category: ErrorCategory = ErrorCategory.API,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=category,
            retryable=retryable,
        )
        self.status_code = status_code
        self.service = service

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.service:
            result["service"] = self.service
        return result


class NetworkError(APIError):
    """Raised for timeouts and connectivity failures."""

    def __init__(
        self,
        message: str = "Network connection failed",
        *,
        service: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            service=service,
            context=context,
            retryable=True,
            category=ErrorCategory.NETWORK,
        )
        self.severity = ErrorSeverity.TRANSIENT


class RateLimitError(APIError):
    """Raised when a provider answers with HTTP 429."""

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        *,
        service: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        ctx = ErrorContext(
            suggestion="Wait a moment and retry the request",
            retry_after=retry_after,
        )
        super().__init__(message, status_code=429, service=service, context=ctx, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT


class ServiceUnavailableError(APIError):
    """Raised when the external service answers with a 5xx status."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        *,
        status_code: int | None = None,
        service: str | None = None,
    ) -> None:
        prefix = f"{service}: " if service else ""
        super().__init__(f"{prefix}{message}", status_code=status_code, service=service, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT


class ClientRequestError(APIError):
    """Raised for 4xx responses other than 429; the request itself is wrong."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        service: str | None = None,
    ) -> None:
        suggestion = "Please check your search terms"
        if status_code == 414:
            suggestion = "Search query is too long. Please use a shorter question"
        super().__init__(
            message,
            status_code=status_code,
            service=service,
            context=ErrorContext(suggestion=suggestion),
            retryable=False,
        )
        self.severity = ErrorSeverity.WARNING


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(EvidenceSearchError):
    """Base class for validation errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when a search query is unusable."""

    def __init__(self, query: str | None, reason: str = "Query cannot be empty") -> None:
        ctx = ErrorContext(
            input_value=query,
            suggestion="Provide a medical question or search terms",
        )
        super().__init__(f"Invalid query: {reason}", context=ctx)


class InvalidParameterError(ValidationError):
    """Raised when a parameter value is invalid."""

    def __init__(self, param_name: str, value: Any, expected: str) -> None:
        ctx = ErrorContext(input_value=value, suggestion=f"Expected {expected}")
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=ctx,
        )


# =============================================================================
# Data Errors
# =============================================================================

class DataError(EvidenceSearchError):
    """Base class for data-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class NotFoundError(DataError):
    """Raised when requested data is not found."""

    def __init__(self, resource: str, identifier: str | None = None) -> None:
        msg = f"{resource} not found"
        if identifier:
            msg = f"{resource} not found: {identifier}"
        super().__init__(msg, context=ErrorContext(input_value=identifier))


class ParseError(DataError):
    """Raised when a provider payload cannot be decoded."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        full_msg = f"Parse error: {message}"
        if source:
            full_msg = f"Parse error ({source}): {message}"
        super().__init__(full_msg)


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(EvidenceSearchError):
    """Raised for configuration-related errors."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


# =============================================================================
# Classification helpers
# =============================================================================

def get_status_code(error: BaseException) -> int | None:
    """Return the HTTP status carried by an error, if any."""
    if isinstance(error, APIError):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def is_client_error(error: BaseException) -> bool:
    """True for 4xx statuses other than 429 (never worth retrying)."""
    status = get_status_code(error)
    return status is not None and 400 <= status < 500 and status != 429


def is_retryable_error(error: BaseException) -> bool:
    """
    Retry classification shared by every network call.

    Client errors are final; everything else (timeouts, connection failures,
    429, 5xx, unexpected exceptions) is treated as transient.
    """
    if is_client_error(error):
        return False
    if isinstance(error, EvidenceSearchError) and get_status_code(error) is None:
        return error.retryable
    return True


def classify_http_error(error: Exception, service: str | None = None) -> EvidenceSearchError:
    """
    Translate an httpx exception into the Evidence Search taxonomy.

    Args:
        error: Exception raised by httpx (or already classified)
        service: Provider name for messages

    Returns:
        Classified EvidenceSearchError
    """
    if isinstance(error, EvidenceSearchError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status = response.status_code
        reason = response.reason_phrase or ""
        if status == 429:
            retry_after: float | None
            try:
                retry_after = float(response.headers.get("Retry-After", ""))
            except (TypeError, ValueError):
                retry_after = None
            return RateLimitError(f"{service or 'Provider'} rate limit exceeded", service=service, retry_after=retry_after)
        if status >= 500:
            return ServiceUnavailableError(f"HTTP {status}: {reason}", status_code=status, service=service)
        return ClientRequestError(f"HTTP {status}: {reason}", status_code=status, service=service)

    if isinstance(error, httpx.TimeoutException):
        return NetworkError(f"{service or 'Provider'} request timed out", service=service)
    if isinstance(error, httpx.RequestError):
        return NetworkError(f"Unable to connect to {service or 'provider'}: {error}", service=service)
    if isinstance(error, ValueError):
        return ParseError(str(error), source=service)

    return APIError(f"{service or 'Provider'} request failed: {error}", service=service)
