"""Typed domain exceptions.

Each exception carries a registry code so callers can render a consistent
user-facing message without string matching.

Usage:
    # In service layer
    raise NotConnectedError("jira")

    # In a Slack handler
    except DomainError as e:
        await respond(format_user_message(e, "/weekly-standup", "/standup-setup"))
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    code = "E-4002"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotConnectedError(DomainError):
    """No credential stored for (user, provider). Recoverable by connecting."""

    code = "E-5001"

    def __init__(self, provider: str) -> None:
        super().__init__(f"No {provider} connection found for user")
        self.provider = provider


class NotConfiguredError(DomainError):
    """Jira site or board has not been selected yet."""

    code = "E-5002"


class InvalidStateError(DomainError):
    """OAuth callback parameters are missing or malformed."""

    code = "E-5003"


class InvalidCiphertextError(DomainError):
    """Stored ciphertext failed authentication or could not be decoded.

    Distinct from NotConnectedError: the record exists but is unusable.
    """

    code = "E-4001"


class CiphertextFormatError(InvalidCiphertextError):
    """Stored value is not a well-formed 'iv:tag:ciphertext' hex triple."""


class UpstreamError(DomainError):
    """An upstream service rejected a call.

    Attributes:
        detail: Upstream error text (sanitized before display).
        status_code: HTTP status, if a response was received.
    """

    def __init__(self, message: str, detail: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.detail = detail
        self.status_code = status_code


class ExchangeFailedError(UpstreamError):
    """Authorization code exchange was rejected."""

    code = "E-3001"

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(
            f"Failed to exchange code for tokens: {detail}", detail, status_code
        )


class RefreshFailedError(UpstreamError):
    """Refresh token grant was rejected."""

    code = "E-3002"

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(f"Failed to refresh token: {detail}", detail, status_code)


class ResourceLookupFailedError(UpstreamError):
    """Accessible-resources discovery was rejected."""

    code = "E-3003"

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(
            f"Failed to get accessible resources: {detail}", detail, status_code
        )


class TrackerRequestError(UpstreamError):
    """A Jira REST call (search, issue detail, boards) failed.

    Attributes:
        operation: 'search', 'detail', or 'boards'.
        ticket_key: Key of the failing ticket for detail fetches.
    """

    code = "E-3004"

    def __init__(
        self,
        operation: str,
        detail: str,
        ticket_key: str | None = None,
        status_code: int | None = None,
    ) -> None:
        if ticket_key:
            message = f"Failed to fetch ticket {ticket_key}: {detail}"
        elif operation == "boards":
            message = f"Failed to fetch boards: {detail}"
        else:
            message = f"Failed to fetch tickets: {detail}"
        super().__init__(message, detail, status_code)
        self.operation = operation
        self.ticket_key = ticket_key


class ReportGenerationError(UpstreamError):
    """The text-generation service failed or returned no text."""

    code = "E-3005"

    def __init__(self, detail: str) -> None:
        super().__init__(f"Failed to generate report: {detail}", detail)


class SlackApiError(UpstreamError):
    """A Slack Web API call returned ok=false or a non-success status.

    Attributes:
        method: Web API method (e.g. 'views.open').
    """

    code = "E-3006"

    def __init__(self, method: str, detail: str, status_code: int | None = None) -> None:
        super().__init__(f"Slack {method} failed: {detail}", detail, status_code)
        self.method = method
