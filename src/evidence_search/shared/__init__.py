"""
Shared building blocks for Evidence Search.

Provides:
- Unified exception hierarchy
- Retry policy and async fan-out utilities

Python 3.12+ features:
- Type parameter syntax (PEP 695)
- asyncio.TaskGroup
"""

from .async_utils import (
    # Retry
    async_retry,
    build_retrying,
    retry_with_backoff,
    # Parallel execution
    batch_process,
    gather_all,
)
from .exceptions import (
    # API errors
    APIError,
    ClientRequestError,
    NetworkError,
    RateLimitError,
    ServiceUnavailableError,
    # Configuration errors
    ConfigurationError,
    # Data errors
    DataError,
    NotFoundError,
    ParseError,
    # Base
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    EvidenceSearchError,
    # Validation errors
    InvalidParameterError,
    InvalidQueryError,
    ValidationError,
    # Utilities
    classify_http_error,
    get_status_code,
    is_client_error,
    is_retryable_error,
)

__all__ = [
    # Exceptions
    "EvidenceSearchError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "APIError",
    "NetworkError",
    "RateLimitError",
    "ServiceUnavailableError",
    "ClientRequestError",
    "ValidationError",
    "InvalidQueryError",
    "InvalidParameterError",
    "DataError",
    "NotFoundError",
    "ParseError",
    "ConfigurationError",
    "classify_http_error",
    "get_status_code",
    "is_client_error",
    "is_retryable_error",
    # Async utilities
    "retry_with_backoff",
    "async_retry",
    "build_retrying",
    "gather_all",
    "batch_process",
]
