"""Atlassian OAuth 2.0 (3LO) client.

Stateless HTTP exchange of authorization codes and refresh tokens, and
discovery of the Jira Cloud sites a token can reach. Holds no per-user
state: the shared httpx.AsyncClient is injected at construction.

State parameter contract:
    "<random hex>:<internal user id>" - colon-delimited, at least two parts.
    The random part makes the URL unguessable; the user id lets the
    callback bind tokens to the user who started the flow without any
    server-side session storage.
"""

import logging
import secrets
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from standup.errors.domain import (
    ExchangeFailedError,
    InvalidStateError,
    RefreshFailedError,
    ResourceLookupFailedError,
)
from standup.jira.models import AccessibleResource, TokenSet
from standup.utils.redaction import redact_for_logging, sanitize_error_message

logger = logging.getLogger(__name__)

JIRA_AUTH_URL = "https://auth.atlassian.com/authorize"
JIRA_TOKEN_URL = "https://auth.atlassian.com/oauth/token"
JIRA_ACCESSIBLE_RESOURCES_URL = "https://api.atlassian.com/oauth/token/accessible-resources"
JIRA_SCOPES = "read:jira-work read:jira-user offline_access"
PROVIDER = "jira"


def new_state(user_id: str) -> str:
    """Build a state value binding the redirect to user_id."""
    return f"{secrets.token_hex(16)}:{user_id}"


def parse_state(state: str | None) -> str:
    """Recover the internal user id from a callback state value.

    Args:
        state: Value returned on the OAuth redirect.

    Returns:
        Internal user id.

    Raises:
        InvalidStateError: If state is missing or has fewer than two
            colon-delimited parts, or the user id part is empty.
    """
    if not state:
        raise InvalidStateError("Missing required OAuth parameters")
    parts = state.split(":")
    if len(parts) < 2 or not parts[1]:
        raise InvalidStateError("Invalid state parameter")
    return parts[1]


def _error_text(response: httpx.Response) -> str:
    return sanitize_error_message(response.text or response.reason_phrase) or ""


class JiraOAuthClient:
    """Token exchange and site discovery against auth.atlassian.com.

    Example:
        oauth = JiraOAuthClient(http, client_id, client_secret, redirect_uri)
        url = oauth.build_authorization_url(new_state(user.id))
        tokens = await oauth.exchange_code(code)
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> None:
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri

    def build_authorization_url(self, state: str) -> str:
        """Build the consent URL the user opens in a browser.

        Args:
            state: Opaque state value, see new_state().

        Returns:
            Fully-qualified authorization URL.
        """
        params = {
            "audience": "api.atlassian.com",
            "client_id": self._client_id,
            "scope": JIRA_SCOPES,
            "redirect_uri": self._redirect_uri,
            "state": state,
            "response_type": "code",
            "prompt": "consent",
        }
        return f"{JIRA_AUTH_URL}?{urlencode(params)}"

    async def _token_request(self, body: dict, error_cls: type) -> TokenSet:
        payload = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            **body,
        }
        logger.debug("Token request: %s", redact_for_logging(payload))
        try:
            response = await self._http.post(JIRA_TOKEN_URL, json=payload)
        except httpx.RequestError as e:
            raise error_cls(f"{type(e).__name__}: {e}") from e

        if response.is_error:
            raise error_cls(_error_text(response), status_code=response.status_code)

        try:
            return TokenSet.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise error_cls(f"Malformed token response: {e}") from e

    async def exchange_code(self, code: str) -> TokenSet:
        """Exchange an authorization code for tokens.

        Raises:
            ExchangeFailedError: On any non-success status, with the
                provider's error body as detail.
        """
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
            },
            ExchangeFailedError,
        )

    async def refresh(self, refresh_token: str) -> TokenSet:
        """Exchange a refresh token for a new token set.

        Atlassian rotates refresh tokens: the returned refresh_token
        replaces the one passed in.

        Raises:
            RefreshFailedError: On any non-success status.
        """
        logger.info("Refreshing %s access token", PROVIDER)
        return await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            RefreshFailedError,
        )

    async def list_accessible_resources(self, access_token: str) -> list[AccessibleResource]:
        """List the Jira Cloud sites the token can access.

        An empty list is a valid result meaning "no usable site".

        Raises:
            ResourceLookupFailedError: On any non-success status.
        """
        try:
            response = await self._http.get(
                JIRA_ACCESSIBLE_RESOURCES_URL,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.RequestError as e:
            raise ResourceLookupFailedError(f"{type(e).__name__}: {e}") from e

        if response.is_error:
            raise ResourceLookupFailedError(
                _error_text(response), status_code=response.status_code
            )

        try:
            data = response.json()
            return [AccessibleResource.model_validate(item) for item in data or []]
        except (ValueError, TypeError, ValidationError) as e:
            raise ResourceLookupFailedError(f"Malformed resource list: {e}") from e
