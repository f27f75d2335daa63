"""Jira OAuth 2.0 callback.

Atlassian redirects the user's browser here after consent. The handler
binds the tokens to the user named in the state parameter, discovers the
user's Jira site and renders a small HTML page. Every outcome is a page,
never a JSON error: the reader is a person in a browser tab.
"""

import html
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from standup.api.container import AppContainer, get_container, get_session
from standup.errors.domain import DomainError, InvalidStateError
from standup.jira.oauth import parse_state
from standup.services.credential_vault import PROVIDER_JIRA, CredentialVault
from standup.services.jira_config_service import JiraConfigService
from standup.services.user_service import UserService
from standup.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/jira", tags=["auth"])

NO_SITES_MESSAGE = (
    "No Jira sites found. Make sure you have access to at least one Jira Cloud site."
)

_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      display: flex; justify-content: center; align-items: center;
      min-height: 100vh; margin: 0; background: {background};
    }}
    .card {{
      background: white; padding: 40px; border-radius: 12px;
      box-shadow: 0 10px 40px rgba(0,0,0,0.2); text-align: center; max-width: 400px;
    }}
    .icon {{ font-size: 48px; margin-bottom: 16px; }}
    h1 {{ color: #1a1a2e; margin: 0 0 8px 0; font-size: 24px; }}
    p {{ color: #666; margin: 0; line-height: 1.6; }}
    .detail {{ margin-top: 16px; }}
    code {{ background: #f5f5f5; padding: 2px 8px; border-radius: 4px; font-size: 13px; }}
  </style>
</head>
<body>
  <div class="card">
    <div class="icon">{icon}</div>
    <h1>{title}</h1>
    <p>{message}</p>
    <p class="detail">{instructions}</p>
  </div>
</body>
</html>
"""


def success_page(site_name: str, setup_command: str) -> HTMLResponse:
    content = _PAGE.format(
        title="Jira Connected!",
        background="linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
        icon="✅",
        message=f"Successfully connected to <strong>{html.escape(site_name)}</strong>",
        instructions=(
            f"Return to Slack and run <code>{html.escape(setup_command)}</code> "
            "again to select your board."
        ),
    )
    return HTMLResponse(content=content, status_code=200)


def failure_page(message: str, setup_command: str) -> HTMLResponse:
    content = _PAGE.format(
        title="Connection Failed",
        background="linear-gradient(135deg, #eb4034 0%, #c92a1f 100%)",
        icon="❌",
        message=html.escape(message),
        instructions=(
            f"Please try again by running <code>{html.escape(setup_command)}</code> in Slack."
        ),
    )
    return HTMLResponse(content=content, status_code=400)


@router.get("/callback", response_class=HTMLResponse)
async def jira_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    container: AppContainer = Depends(get_container),
    db: Session = Depends(get_session),
) -> HTMLResponse:
    """Complete the authorization code flow.

    The state is validated before any outbound call, so a malformed
    callback never reaches the token endpoint.
    """
    setup_command = container.settings.setup_command

    if error:
        reason = sanitize_error_message(error_description or error) or error
        logger.info("Jira authorization denied: %s", reason)
        return failure_page(f"Jira authorization failed: {reason}", setup_command)

    try:
        if not code or not state:
            raise InvalidStateError("Missing required OAuth parameters")
        user_id = parse_state(state)
        if UserService(db).get_by_id(user_id) is None:
            raise InvalidStateError("Invalid state parameter")

        tokens = await container.oauth.exchange_code(code)
        CredentialVault(db, container.key, locks=container.locks).store(
            user_id,
            PROVIDER_JIRA,
            tokens.access_token,
            tokens.refresh_token,
            tokens.expires_in,
            tokens.scopes,
        )

        resources = await container.oauth.list_accessible_resources(tokens.access_token)
        if not resources:
            logger.warning("User %s has no accessible Jira sites", user_id)
            return failure_page(NO_SITES_MESSAGE, setup_command)

        site = resources[0]
        if len(resources) > 1:
            logger.info(
                "User %s can access %d Jira sites; binding %s",
                user_id, len(resources), site.url,
            )
        JiraConfigService(db).upsert_instance(user_id, site.id, site.url)
    except InvalidStateError as e:
        logger.warning("Rejected Jira callback: %s", e.message)
        return failure_page(e.message, setup_command)
    except DomainError as e:
        logger.error("Jira OAuth error: [%s] %s", e.code, sanitize_error_message(e.message))
        return failure_page(
            f"Failed to complete Jira authorization: {sanitize_error_message(e.message)}",
            setup_command,
        )
    except Exception as e:
        logger.error(
            "Unexpected error during Jira callback: %s: %s",
            type(e).__name__, e,
            exc_info=True,
        )
        return failure_page(
            f"Failed to complete Jira authorization: {sanitize_error_message(str(e))}",
            setup_command,
        )

    logger.info("User %s connected Jira site %s", user_id, site.url)
    return success_page(site.name, setup_command)
