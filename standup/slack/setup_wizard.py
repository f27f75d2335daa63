"""Setup wizard: connect Jira, then pick a board, across stateless requests.

Wizard state is never stored. Every entry point re-derives it from two
persisted facts, whether a Jira credential exists and whether a board is
bound, so a stale modal button can never push the wizard into a state the
stored data does not support.

    UNCONNECTED         --OAuth callback-->   CONNECTED_NO_BOARD
    CONNECTED_NO_BOARD  --BoardSelected-->    CONFIGURED
    CONFIGURED          --ReconfigureClicked--> board list (board kept)
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, assert_never

from sqlalchemy.orm import Session

from standup.db.models import JiraConfig, User
from standup.errors.domain import DomainError, NotConfiguredError
from standup.errors.formatter import format_user_message
from standup.jira.client import JiraClient
from standup.jira.models import JiraBoard
from standup.jira.oauth import JiraOAuthClient, new_state
from standup.services.credential_vault import PROVIDER_JIRA, CredentialVault, RefreshLocks
from standup.services.jira_config_service import JiraConfigService
from standup.services.user_service import UserService
from standup.slack import views
from standup.slack.client import SlackClient
from standup.slack.interactions import (
    BoardSelected,
    ConnectClicked,
    Interaction,
    ReconfigureClicked,
    SetupCommand,
)

logger = logging.getLogger(__name__)

JiraClientFactory = Callable[[str, str], JiraClient]


class WizardState(str, Enum):
    """Derived setup state of a user."""

    UNCONNECTED = "unconnected"
    CONNECTED_NO_BOARD = "connected_no_board"
    CONFIGURED = "configured"


def derive_state(credential_present: bool, board_bound: bool) -> WizardState:
    """Map persisted facts to a wizard state.

    Without a credential the user is UNCONNECTED regardless of any board
    left over from an earlier connection.
    """
    if not credential_present:
        return WizardState.UNCONNECTED
    if not board_bound:
        return WizardState.CONNECTED_NO_BOARD
    return WizardState.CONFIGURED


class SetupWizard:
    """Handles one wizard interaction per call.

    Args:
        db: SQLAlchemy session for this request.
        key: Token encryption key.
        locks: Shared refresh lock registry.
        slack: Slack Web API client.
        oauth: Jira OAuth client (authorization URL and token refresh).
        jira_client_factory: Builds a JiraClient from (cloud_id, access_token).
        setup_command: Setup slash command name, for instructions.
        report_command: Report slash command name, for instructions.
    """

    def __init__(
        self,
        db: Session,
        key: bytes,
        locks: RefreshLocks,
        slack: SlackClient,
        oauth: JiraOAuthClient,
        jira_client_factory: JiraClientFactory,
        setup_command: str = "/standup-setup",
        report_command: str = "/weekly-standup",
    ) -> None:
        self._users = UserService(db)
        self._configs = JiraConfigService(db)
        self._vault = CredentialVault(db, key, locks=locks)
        self._slack = slack
        self._oauth = oauth
        self._jira_client_factory = jira_client_factory
        self._setup_command = setup_command
        self._report_command = report_command

    async def handle(self, interaction: Interaction) -> None:
        """Dispatch an interaction to its handler."""
        if isinstance(interaction, SetupCommand):
            await self._on_setup_command(interaction)
        elif isinstance(interaction, ConnectClicked):
            await self._on_connect_clicked(interaction)
        elif isinstance(interaction, BoardSelected):
            await self._on_board_selected(interaction)
        elif isinstance(interaction, ReconfigureClicked):
            await self._on_reconfigure_clicked(interaction)
        else:
            assert_never(interaction)

    def resolve(self, slack_user_id: str, team_id: str) -> tuple[User, JiraConfig | None, WizardState]:
        """Load the user and derive their current state from storage."""
        user = self._users.get_or_create_user(slack_user_id, team_id)
        config = self._configs.get(user.id)
        state = derive_state(
            credential_present=self._vault.has_valid(user.id, PROVIDER_JIRA),
            board_bound=config is not None and config.board_bound,
        )
        logger.debug("Wizard state for %s: %s", slack_user_id, state.value)
        return user, config, state

    async def _on_setup_command(self, command: SetupCommand) -> None:
        user, config, state = self.resolve(command.slack_user_id, command.team_id)

        if state is WizardState.UNCONNECTED:
            await self._slack.open_view(command.trigger_id, views.connect_prompt_view())
        elif state is WizardState.CONNECTED_NO_BOARD:
            # trigger_id expires within seconds; open first, fill in boards after.
            opened = await self._slack.open_view(
                command.trigger_id, self._loading_view()
            )
            view_id = (opened.get("view") or {}).get("id")
            if view_id:
                await self._slack.update_view(view_id, await self._board_view(user, config))
        else:
            await self._slack.open_view(
                command.trigger_id,
                views.current_config_view(config.board_name, config.project_key),
            )

    async def _on_connect_clicked(self, action: ConnectClicked) -> None:
        user, config, state = self.resolve(action.slack_user_id, action.team_id)

        if state is WizardState.UNCONNECTED:
            auth_url = self._oauth.build_authorization_url(new_state(user.id))
            view = views.authorize_link_view(auth_url, self._setup_command)
        elif state is WizardState.CONNECTED_NO_BOARD:
            view = await self._board_view(user, config)
        else:
            view = views.current_config_view(config.board_name, config.project_key)
        await self._slack.update_view(action.view_id, view)

    async def _on_board_selected(self, action: BoardSelected) -> None:
        user, _config, state = self.resolve(action.slack_user_id, action.team_id)

        if state is WizardState.UNCONNECTED:
            await self._slack.update_view(action.view_id, views.connect_prompt_view())
            return

        try:
            self._configs.update_board_selection(
                user.id, action.board_id, action.board_name, action.project_key
            )
        except NotConfiguredError as e:
            logger.warning("Board selected by %s without a bound site", user.id)
            await self._slack.update_view(
                action.view_id,
                views.error_view(
                    "Standup Setup",
                    format_user_message(e, self._setup_command, self._setup_command),
                ),
            )
            return

        await self._slack.update_view(
            action.view_id,
            views.setup_complete_view(
                action.board_name, action.project_key, self._report_command
            ),
        )

    async def _on_reconfigure_clicked(self, action: ReconfigureClicked) -> None:
        user, config, state = self.resolve(action.slack_user_id, action.team_id)

        if state is WizardState.UNCONNECTED:
            view = views.connect_prompt_view()
        else:
            view = await self._board_view(user, config)
        await self._slack.update_view(action.view_id, view)

    def _loading_view(self) -> dict[str, Any]:
        return views.error_view("Select Board", "⏳ Loading your Jira boards...")

    async def _board_view(self, user: User, config: JiraConfig | None) -> dict[str, Any]:
        """Live board list, or an error view if listing fails."""
        try:
            boards = await self.list_boards(user, config)
        except DomainError as e:
            logger.warning("Board listing failed for user %s: %s", user.id, e.message)
            return views.board_error_view(e.message, self._setup_command)
        return views.board_selection_view(boards, self._setup_command)

    async def list_boards(self, user: User, config: JiraConfig | None) -> list[JiraBoard]:
        """Fetch the user's boards with a valid (possibly refreshed) token.

        Raises:
            NotConfiguredError: If no Jira site is bound.
            DomainError: Any vault, refresh or Jira failure.
        """
        if config is None:
            raise NotConfiguredError(
                "No Jira site is linked to your account. Reconnect Jira and make sure "
                "you have access to at least one Jira Cloud site."
            )
        access_token = await self._vault.get_valid_access_token(
            user.id, PROVIDER_JIRA, self._oauth.refresh
        )
        client = self._jira_client_factory(config.jira_cloud_id, access_token)
        return await client.list_boards()
