"""Error handling framework for the standup bot.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions raised by services and clients
- User-facing message formatting

Error categories:
- E-3xxx: Upstream API errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication and setup errors
"""

from standup.errors.domain import (
    CiphertextFormatError,
    DomainError,
    ExchangeFailedError,
    InvalidCiphertextError,
    InvalidStateError,
    NotConfiguredError,
    NotConnectedError,
    RefreshFailedError,
    ReportGenerationError,
    ResourceLookupFailedError,
    SlackApiError,
    TrackerRequestError,
    UpstreamError,
)
from standup.errors.formatter import describe_error, format_user_message
from standup.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Domain exceptions
    "DomainError",
    "NotConnectedError",
    "NotConfiguredError",
    "InvalidStateError",
    "InvalidCiphertextError",
    "CiphertextFormatError",
    "UpstreamError",
    "ExchangeFailedError",
    "RefreshFailedError",
    "ResourceLookupFailedError",
    "TrackerRequestError",
    "ReportGenerationError",
    "SlackApiError",
    # Formatter
    "describe_error",
    "format_user_message",
]
