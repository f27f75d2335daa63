"""Application container: clients and configuration shared across requests.

Built once in the FastAPI lifespan and stored on app.state. Route handlers
and background tasks receive it through get_container(); nothing here is a
module-level singleton, so tests build their own container with fakes.
"""

import logging
from collections.abc import Generator
from dataclasses import dataclass, field
from functools import partial

import httpx
from anthropic import AsyncAnthropic
from fastapi import Depends, Request
from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.webhook.async_client import AsyncWebhookClient
from sqlalchemy.orm import Session, sessionmaker

from standup.config import Settings, load_settings
from standup.jira.client import JiraClient
from standup.jira.oauth import JiraOAuthClient
from standup.services.credential_vault import RefreshLocks
from standup.services.report_composer import ReportComposer
from standup.services.report_service import ReportService
from standup.services.token_encryption import load_encryption_key
from standup.services.user_service import UserService
from standup.slack.client import SlackClient
from standup.slack.setup_wizard import SetupWizard

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Process-wide dependencies.

    Attributes:
        settings: Validated settings.
        key: Token encryption key.
        http: Shared HTTP client for Jira calls.
        slack: Slack Web API client.
        oauth: Jira OAuth client.
        composer: Report composer.
        session_factory: Session factory for request and background work.
        locks: Refresh lock registry shared by every vault.
        anthropic: Claude client, closed with the container.
    """

    settings: Settings
    key: bytes
    http: httpx.AsyncClient
    slack: SlackClient
    oauth: JiraOAuthClient
    composer: ReportComposer
    session_factory: sessionmaker
    locks: RefreshLocks = field(default_factory=RefreshLocks)
    anthropic: AsyncAnthropic | None = None

    def jira_client(self, cloud_id: str, access_token: str) -> JiraClient:
        return JiraClient(self.http, cloud_id, access_token)

    def setup_wizard(self, db: Session) -> SetupWizard:
        return SetupWizard(
            db,
            self.key,
            self.locks,
            self.slack,
            self.oauth,
            self.jira_client,
            setup_command=self.settings.setup_command,
            report_command=self.settings.report_command,
        )

    def report_service(self, db: Session) -> ReportService:
        return ReportService(
            db,
            self.key,
            self.locks,
            self.oauth,
            self.jira_client,
            self.composer,
            lookback_days=self.settings.lookback_days,
        )

    def user_service(self, db: Session) -> UserService:
        return UserService(db)

    async def aclose(self) -> None:
        await self.http.aclose()
        if self.anthropic is not None:
            await self.anthropic.close()


def build_container(
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
) -> AppContainer:
    """Construct the container from environment configuration.

    Raises:
        ValueError: If the token encryption key is missing or malformed.
    """
    settings = settings or load_settings()
    key = load_encryption_key()
    if session_factory is None:
        from standup.db.connection import SessionLocal
        session_factory = SessionLocal

    http = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    slack_timeout = int(settings.http_timeout_seconds)
    anthropic = AsyncAnthropic(timeout=settings.generation_timeout_seconds)
    return AppContainer(
        settings=settings,
        key=key,
        http=http,
        slack=SlackClient(
            AsyncWebClient(token=settings.slack_bot_token, timeout=slack_timeout),
            partial(AsyncWebhookClient, timeout=slack_timeout),
        ),
        oauth=JiraOAuthClient(
            http,
            settings.jira_client_id,
            settings.jira_client_secret,
            settings.jira_redirect_uri,
        ),
        composer=ReportComposer(anthropic, settings.anthropic_model),
        session_factory=session_factory,
        anthropic=anthropic,
    )


def get_container(request: Request) -> AppContainer:
    """FastAPI dependency returning the app's container."""
    return request.app.state.container


def get_session(
    container: AppContainer = Depends(get_container),
) -> Generator[Session, None, None]:
    """Yield a request-scoped session from the container's factory."""
    db = container.session_factory()
    try:
        yield db
    finally:
        db.close()
