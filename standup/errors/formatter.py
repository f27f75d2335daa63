"""Render exceptions as short user-facing messages.

Every failure shown to a Slack user is one human-readable line plus an
instruction naming the slash command to run next: the setup command for
connection and configuration problems, otherwise the command to retry.
"""

from standup.errors.domain import DomainError, UpstreamError
from standup.errors.registry import get_error
from standup.utils.redaction import sanitize_error_message

_FALLBACK_CODE = "E-4002"


def describe_error(
    exc: BaseException,
    command: str,
    setup_command: str | None = None,
) -> tuple[str, str]:
    """Resolve the message and remediation for an exception.

    Args:
        exc: Exception to describe. Non-domain exceptions map to E-4002.
        command: Slash command the user should retry.
        setup_command: Slash command named instead of `command` when the
            error is fixed by re-running setup.

    Returns:
        (message, remediation) tuple, both sanitized.
    """
    code = exc.code if isinstance(exc, DomainError) else _FALLBACK_CODE
    error_def = get_error(code) or get_error(_FALLBACK_CODE)

    raw_message = exc.message if isinstance(exc, DomainError) else str(exc)
    detail = exc.detail if isinstance(exc, UpstreamError) else raw_message
    context = {
        "message": sanitize_error_message(raw_message) or "",
        "detail": sanitize_error_message(detail or "Unknown error") or "",
        "command": setup_command if error_def.needs_setup and setup_command else command,
    }
    try:
        message = error_def.message_template.format(**context)
    except (KeyError, IndexError):
        message = context["message"]
    remediation = error_def.remediation.format(**context)
    return message, remediation


def format_user_message(
    exc: BaseException,
    command: str,
    setup_command: str | None = None,
) -> str:
    """Format an exception for an ephemeral Slack response.

    Args:
        exc: Exception raised by the pipeline or wizard.
        command: Slash command the user should retry.
        setup_command: Slash command for setup-class errors.

    Returns:
        Slack mrkdwn text, e.g. "❌ No board selected.\\n\\nRun `/standup-setup` ...".
    """
    message, remediation = describe_error(exc, command, setup_command)
    return f"❌ {message}\n\n{remediation}"
