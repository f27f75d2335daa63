"""Error code registry with E-XXXX format codes.

Categories:
- E-3xxx: Upstream API errors (Atlassian, Anthropic, Slack)
- E-4xxx: System/internal errors
- E-5xxx: Authentication and setup errors

Each error includes a code, title, message template, and remediation text.
Remediation strings may contain a {command} placeholder naming the slash
command the user should run again.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    UPSTREAM = "upstream"  # E-3xxx
    SYSTEM = "system"  # E-4xxx
    AUTH = "auth"  # E-5xxx


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action the user should take.
        is_retryable: Whether retrying the same command may succeed.
        needs_setup: Whether the fix is re-running setup rather than retrying.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False
    needs_setup: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Upstream errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.UPSTREAM,
        title="Authorization Exchange Failed",
        message_template="Jira rejected the authorization code: {detail}",
        remediation="Run `{command}` and connect your Jira account again.",
        needs_setup=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.UPSTREAM,
        title="Token Refresh Failed",
        message_template="Your Jira session could not be renewed: {detail}",
        remediation="Run `{command}` to reconnect your Jira account.",
        needs_setup=True,
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.UPSTREAM,
        title="Site Lookup Failed",
        message_template="Could not list your Jira sites: {detail}",
        remediation="Run `{command}` and try connecting again.",
        is_retryable=True,
        needs_setup=True,
    ),
    "E-3004": ErrorCode(
        code="E-3004",
        category=ErrorCategory.UPSTREAM,
        title="Jira Request Failed",
        message_template="{message}",
        remediation="Try running `{command}` again.",
        is_retryable=True,
    ),
    "E-3005": ErrorCode(
        code="E-3005",
        category=ErrorCategory.UPSTREAM,
        title="Report Generation Failed",
        message_template="The report could not be written: {detail}",
        remediation="Try running `{command}` again.",
        is_retryable=True,
    ),
    "E-3006": ErrorCode(
        code="E-3006",
        category=ErrorCategory.UPSTREAM,
        title="Slack Request Failed",
        message_template="Slack rejected the request: {detail}",
        remediation="Try running `{command}` again.",
        is_retryable=True,
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Stored Credential Unreadable",
        message_template="Your stored Jira credential could not be decrypted.",
        remediation="Run `{command}` to reconnect your Jira account.",
        needs_setup=True,
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="Unexpected Error",
        message_template="Something went wrong: {detail}",
        remediation="Try running `{command}` again.",
        is_retryable=True,
    ),
    # Auth / setup errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Jira Not Connected",
        message_template="Jira not connected.",
        remediation="Run `{command}` first to connect your account.",
        needs_setup=True,
    ),
    "E-5002": ErrorCode(
        code="E-5002",
        category=ErrorCategory.AUTH,
        title="Jira Not Configured",
        message_template="{message}",
        remediation="Run `{command}` to select your Jira board.",
        needs_setup=True,
    ),
    "E-5003": ErrorCode(
        code="E-5003",
        category=ErrorCategory.AUTH,
        title="Invalid Authorization State",
        message_template="{message}",
        remediation="Please try again by running `{command}` in Slack.",
        needs_setup=True,
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Look up an error code in the registry.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all error codes in a category."""
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
