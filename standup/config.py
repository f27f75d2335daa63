"""Environment-driven settings with pydantic validation.

Environment Variables:
    JIRA_CLIENT_ID / JIRA_CLIENT_SECRET: Atlassian OAuth 2.0 (3LO) app credentials.
    JIRA_REDIRECT_URI: Callback URL registered with the Atlassian app.
    SLACK_BOT_TOKEN: Bot token used for views.open / views.update / chat.postMessage.
    SLACK_SIGNING_SECRET: Request signing secret. Unset disables verification.
    ANTHROPIC_MODEL: Claude model for report generation.
        Defaults to "claude-sonnet-4-20250514".
    STANDUP_LOOKBACK_DAYS: Lookback window for "recent" activity (default 7).
    HTTP_TIMEOUT_SECONDS: Timeout for Jira and Slack HTTP calls (default 30).
    GENERATION_TIMEOUT_SECONDS: Timeout for the Claude request (default 120).
    STANDUP_SETUP_COMMAND / STANDUP_REPORT_COMMAND: Slash command names.

The token encryption key is loaded separately by
standup.services.token_encryption.load_encryption_key and is never part of
Settings, so it cannot leak through a settings dump.
"""

import logging
import os

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class Settings(BaseModel):
    """Process-wide configuration, built once at startup."""

    jira_client_id: str = ""
    jira_client_secret: str = ""
    jira_redirect_uri: str = ""
    slack_bot_token: str = ""
    slack_signing_secret: str = ""
    anthropic_model: str = DEFAULT_MODEL
    lookback_days: int = Field(default=7, ge=1, le=90)
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    generation_timeout_seconds: float = Field(default=120.0, gt=0)
    setup_command: str = "/standup-setup"
    report_command: str = "/weekly-standup"

    @field_validator("setup_command", "report_command")
    @classmethod
    def _slash_prefixed(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith("/"):
            value = f"/{value}"
        return value


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def load_settings() -> Settings:
    """Build Settings from environment variables.

    Missing OAuth or Slack credentials are logged as warnings rather than
    raised, so health checks and local development still start.

    Returns:
        Validated Settings.

    Raises:
        pydantic.ValidationError: If a numeric variable is out of range.
    """
    raw: dict[str, str] = {
        "jira_client_id": _env("JIRA_CLIENT_ID"),
        "jira_client_secret": _env("JIRA_CLIENT_SECRET"),
        "jira_redirect_uri": _env("JIRA_REDIRECT_URI"),
        "slack_bot_token": _env("SLACK_BOT_TOKEN"),
        "slack_signing_secret": _env("SLACK_SIGNING_SECRET"),
        "anthropic_model": _env("ANTHROPIC_MODEL", DEFAULT_MODEL) or DEFAULT_MODEL,
    }
    optional = {
        "lookback_days": _env("STANDUP_LOOKBACK_DAYS"),
        "http_timeout_seconds": _env("HTTP_TIMEOUT_SECONDS"),
        "generation_timeout_seconds": _env("GENERATION_TIMEOUT_SECONDS"),
        "setup_command": _env("STANDUP_SETUP_COMMAND"),
        "report_command": _env("STANDUP_REPORT_COMMAND"),
    }
    raw.update({k: v for k, v in optional.items() if v})

    settings = Settings.model_validate(raw)
    for field_name in ("jira_client_id", "jira_client_secret", "jira_redirect_uri", "slack_bot_token"):
        if not getattr(settings, field_name):
            logger.warning("%s is not configured", field_name.upper())
    return settings
