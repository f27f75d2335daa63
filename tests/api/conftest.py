"""API test fixtures: an app wired to mocked Jira and Slack upstreams."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.webhook import WebhookResponse

from standup.api.container import AppContainer
from standup.api.main import create_app
from standup.config import Settings
from standup.jira.oauth import JiraOAuthClient
from standup.slack.client import SlackClient


class Upstream:
    """Routes outbound Jira requests to canned responses and records them."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}

    def add(self, method: str, url: str, response: httpx.Response) -> None:
        self.routes[(method, url)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?")[0]
        response = self.routes.get((request.method, url))
        if response is not None:
            return response
        return httpx.Response(404, json={"error": "unrouted"})

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).split("?")[0] == url]

    def json_bodies(self, url: str) -> list[dict]:
        return [json.loads(r.content) for r in self.calls_to(url)]


class FakeSlackApi:
    """A mocked AsyncWebClient plus recorded response_url replies."""

    def __init__(self) -> None:
        self.web = AsyncMock(spec=AsyncWebClient)
        self.web.views_open.return_value = {"ok": True, "view": {"id": "V-opened"}}
        self.web.views_update.return_value = {"ok": True}
        self.web.chat_postMessage.return_value = {"ok": True}
        self.replies: list[tuple[str, dict]] = []

    def webhook(self, url: str):
        replies = self.replies

        class _Webhook:
            async def send(self, **kwargs) -> WebhookResponse:
                replies.append((url, kwargs))
                return WebhookResponse(url=url, status_code=200, body="ok", headers={})

        return _Webhook()

    def client(self) -> SlackClient:
        return SlackClient(self.web, self.webhook)

    def calls(self, method: str) -> list[dict]:
        """Keyword arguments of each awaited call to a Web API method."""
        return [c.kwargs for c in getattr(self.web, method).await_args_list]

    @property
    def untouched(self) -> bool:
        return not self.web.mock_calls and not self.replies


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def slack_api() -> FakeSlackApi:
    return FakeSlackApi()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jira_client_id="client-id",
        jira_client_secret="client-secret",
        jira_redirect_uri="https://bot.example.com/api/auth/jira/callback",
        slack_bot_token="xoxb-test",
        slack_signing_secret="",
    )


@pytest.fixture
def container(settings, upstream, slack_api, encryption_key, session_factory) -> AppContainer:
    http = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
    return AppContainer(
        settings=settings,
        key=encryption_key,
        http=http,
        slack=slack_api.client(),
        oauth=JiraOAuthClient(
            http,
            settings.jira_client_id,
            settings.jira_client_secret,
            settings.jira_redirect_uri,
        ),
        composer=MagicMock(),
        session_factory=session_factory,
    )


@pytest.fixture
def client(container) -> TestClient:
    return TestClient(create_app(container))
