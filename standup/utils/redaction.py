"""Secret redaction for logs and user-facing error text.

Upstream error bodies from Atlassian and Slack are echoed back to users and
written to logs. They can contain OAuth codes, tokens, or client secrets, so
every such string goes through sanitize_error_message first.
"""

import re

_DEFAULT_SENSITIVE_PATTERNS = frozenset({
    "secret", "token", "authorization", "password",
    "client_id", "client_secret", "code",
})

_REDACTED = "***REDACTED***"


def redact_for_logging(
    obj: dict,
    sensitive_patterns: frozenset[str] = _DEFAULT_SENSITIVE_PATTERNS,
) -> dict:
    """Return a copy of obj with sensitive values replaced.

    Args:
        obj: Dict to redact (not mutated).
        sensitive_patterns: Case-insensitive substrings matched against keys.

    Returns:
        New dict; nested dicts and lists of dicts are handled recursively.
    """
    result = {}
    for key, value in obj.items():
        key_lower = key.lower()
        if any(pattern in key_lower for pattern in sensitive_patterns):
            result[key] = _REDACTED
        elif isinstance(value, dict):
            result[key] = redact_for_logging(value, sensitive_patterns)
        elif isinstance(value, list):
            result[key] = [
                redact_for_logging(item, sensitive_patterns) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value
    return result


_SENSITIVE_KEYWORDS = (
    r"secret|token|password|client_id|client_secret|"
    r"access_token|refresh_token|authorization|code"
)
_SENSITIVE_VALUE_PATTERNS = re.compile(
    r"(?i)"
    r"(?:"
    # Authorization: Bearer <token>
    r"Authorization\s*:\s*Bearer\s+\S+"
    r"|"
    # Slack tokens (bot, user, app, refresh)
    r"\bxox[abprse]-[A-Za-z0-9-]+"
    r"|"
    # JSON-style "key": "value"
    r'"(?:' + _SENSITIVE_KEYWORDS + r')"\s*:\s*"[^"]*"'
    r"|"
    # key=value, unquoted
    r"\b(?:" + _SENSITIVE_KEYWORDS + r")\s*=\s*[^\s&]+"
    r")",
)


def sanitize_error_message(msg: str | None, max_length: int = 500) -> str | None:
    """Redact secrets from free text and truncate it.

    Args:
        msg: Message to sanitize (None passes through).
        max_length: Maximum length of the result.

    Returns:
        Sanitized, truncated message, or None.
    """
    if msg is None:
        return None
    sanitized = _SENSITIVE_VALUE_PATTERNS.sub(_REDACTED, msg)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."
    return sanitized
