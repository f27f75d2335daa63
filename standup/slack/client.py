"""Slack Web API access on top of slack_sdk.

Wraps the four calls the bot makes: views.open, views.update,
chat.postMessage, and posting to a slash command's response_url.
slack_sdk raises its own SlackApiError for ok=false answers; those and
transport failures are re-raised as the domain SlackApiError so callers
handle a single error type.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
from slack_sdk.errors import SlackApiError as SlackSdkApiError
from slack_sdk.errors import SlackClientError
from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.web.async_slack_response import AsyncSlackResponse
from slack_sdk.webhook.async_client import AsyncWebhookClient

from standup.errors.domain import SlackApiError

logger = logging.getLogger(__name__)

WebhookFactory = Callable[[str], AsyncWebhookClient]


class SlackClient:
    """Async Slack client used by the wizard and the report command.

    Args:
        web: slack_sdk Web API client holding the bot token.
        webhook_factory: Builds a webhook client for a response_url.

    Example:
        slack = SlackClient(AsyncWebClient(token=bot_token))
        await slack.open_view(trigger_id, view)
        await slack.post_message(slack_user_id, "hello")
    """

    def __init__(
        self,
        web: AsyncWebClient,
        webhook_factory: WebhookFactory = AsyncWebhookClient,
    ) -> None:
        self._web = web
        self._webhook_factory = webhook_factory

    async def _call(self, method: str, call: Awaitable[AsyncSlackResponse]) -> AsyncSlackResponse:
        try:
            return await call
        except SlackSdkApiError as e:
            error = e.response.get("error") or "unknown_error"
            logger.warning("Slack %s returned error: %s", method, error)
            raise SlackApiError(method, error, e.response.status_code) from e
        except (SlackClientError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SlackApiError(method, f"{type(e).__name__}: {e}") from e

    async def open_view(self, trigger_id: str, view: dict[str, Any]) -> AsyncSlackResponse:
        """Open a modal. trigger_id is only valid for 3 seconds."""
        return await self._call(
            "views.open", self._web.views_open(trigger_id=trigger_id, view=view)
        )

    async def update_view(self, view_id: str, view: dict[str, Any]) -> AsyncSlackResponse:
        """Replace the contents of an open modal."""
        return await self._call(
            "views.update", self._web.views_update(view_id=view_id, view=view)
        )

    async def post_message(self, channel: str, text: str) -> AsyncSlackResponse:
        """Post a message. A user id as channel delivers a direct message."""
        return await self._call(
            "chat.postMessage",
            self._web.chat_postMessage(channel=channel, text=text, mrkdwn=True),
        )

    async def respond(
        self,
        response_url: str,
        text: str,
        replace_original: bool = False,
    ) -> None:
        """Send an ephemeral reply through a slash command's response_url.

        Args:
            response_url: URL from the command payload.
            text: Message text (mrkdwn).
            replace_original: Replace the previous ephemeral reply.

        Raises:
            SlackApiError: If the response URL rejects the message.
        """
        webhook = self._webhook_factory(response_url)
        try:
            response = await webhook.send(
                text=text,
                response_type="ephemeral",
                replace_original=replace_original,
            )
        except (SlackClientError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SlackApiError("response_url", f"{type(e).__name__}: {e}") from e
        if response.status_code != 200:
            raise SlackApiError(
                "response_url", response.body or f"HTTP {response.status_code}",
                response.status_code,
            )
