"""Tests for the stateless setup wizard."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from standup.errors.domain import TrackerRequestError
from standup.jira.client import JiraClient
from standup.jira.models import JiraBoard
from standup.services.credential_vault import PROVIDER_JIRA, CredentialVault, RefreshLocks
from standup.services.jira_config_service import JiraConfigService
from standup.slack.interactions import (
    ACTION_CONNECT_JIRA,
    ACTION_RECONFIGURE,
    ACTION_SELECT_BOARD,
    BoardSelected,
    ConnectClicked,
    ReconfigureClicked,
    SetupCommand,
)
from standup.slack.setup_wizard import SetupWizard, WizardState, derive_state

SLACK_USER = "U024BE7LH"
AUTH_URL = "https://auth.atlassian.com/authorize?state=x"
BOARDS = [
    JiraBoard(id=1, name="Alpha Board", project_key="ALP"),
    JiraBoard(id=2, name="Beta Board", project_key="BET"),
]


class FakeSlack:
    """Records view calls."""

    def __init__(self) -> None:
        self.opened: list[tuple[str, dict]] = []
        self.updated: list[tuple[str, dict]] = []

    async def open_view(self, trigger_id: str, view: dict) -> dict:
        self.opened.append((trigger_id, view))
        return {"ok": True, "view": {"id": "V-opened"}}

    async def update_view(self, view_id: str, view: dict) -> dict:
        self.updated.append((view_id, view))
        return {"ok": True}


def _text(view: dict) -> str:
    """All mrkdwn text of a view, joined."""
    return "\n".join(
        block["text"]["text"] for block in view["blocks"] if "text" in block
    )


def _action_ids(view: dict) -> list[str]:
    ids = []
    for block in view["blocks"]:
        for element in block.get("elements", []):
            ids.append(element.get("action_id"))
        if "accessory" in block:
            ids.append(block["accessory"].get("action_id"))
    return ids


@pytest.fixture
def slack():
    return FakeSlack()


@pytest.fixture
def jira_client():
    client = MagicMock()
    client.list_boards = AsyncMock(return_value=BOARDS)
    return client


@pytest.fixture
def factory_calls():
    return []


@pytest.fixture
def wizard(db_session, encryption_key, slack, jira_client, factory_calls):
    oauth = MagicMock()
    oauth.build_authorization_url = MagicMock(return_value=AUTH_URL)
    oauth.refresh = AsyncMock()

    def factory(cloud_id: str, token: str):
        factory_calls.append((cloud_id, token))
        return jira_client

    return SetupWizard(
        db_session,
        encryption_key,
        RefreshLocks(),
        slack,
        oauth,
        factory,
        setup_command="/standup-setup",
        report_command="/weekly-standup",
    )


def _connect(db_session, encryption_key, user, board: bool = False) -> None:
    CredentialVault(db_session, encryption_key).store(
        user.id, PROVIDER_JIRA, "access-1", "refresh-1", 3600
    )
    configs = JiraConfigService(db_session)
    configs.upsert_instance(user.id, "cloud-1", "https://acme.atlassian.net")
    if board:
        configs.update_board_selection(user.id, 42, "Team Board", "ABC")


def _setup() -> SetupCommand:
    return SetupCommand(SLACK_USER, "T0001", "ada", "trigger-1")


class TestDeriveState:
    @pytest.mark.parametrize(
        "credential, board, expected",
        [
            (False, False, WizardState.UNCONNECTED),
            (False, True, WizardState.UNCONNECTED),
            (True, False, WizardState.CONNECTED_NO_BOARD),
            (True, True, WizardState.CONFIGURED),
        ],
    )
    def test_table(self, credential, board, expected):
        assert derive_state(credential, board) is expected


class TestSetupCommand:
    """The slash command opens a modal for the derived state."""

    @pytest.mark.asyncio
    async def test_unconnected_opens_connect_prompt(self, wizard, slack, user):
        await wizard.handle(_setup())

        trigger_id, view = slack.opened[0]
        assert trigger_id == "trigger-1"
        assert ACTION_CONNECT_JIRA in _action_ids(view)
        assert slack.updated == []

    @pytest.mark.asyncio
    async def test_unknown_user_is_created(self, wizard, slack, db_session):
        from standup.db.models import User

        await wizard.handle(SetupCommand("U-new", "T0001", "new", "trigger-1"))

        assert db_session.query(User).filter_by(slack_user_id="U-new").count() == 1
        assert len(slack.opened) == 1

    @pytest.mark.asyncio
    async def test_connected_opens_then_fills_board_list(
        self, wizard, slack, db_session, encryption_key, user, factory_calls
    ):
        _connect(db_session, encryption_key, user)

        await wizard.handle(_setup())

        assert len(slack.opened) == 1
        view_id, view = slack.updated[0]
        assert view_id == "V-opened"
        select = view["blocks"][1]["elements"][0]
        assert select["action_id"] == ACTION_SELECT_BOARD
        assert [o["value"] for o in select["options"]] == ["1:ALP", "2:BET"]
        assert select["options"][0]["text"]["text"] == "Alpha Board (ALP)"
        assert factory_calls == [("cloud-1", "access-1")]

    @pytest.mark.asyncio
    async def test_configured_shows_current_board(
        self, wizard, slack, db_session, encryption_key, user, jira_client
    ):
        _connect(db_session, encryption_key, user, board=True)

        await wizard.handle(_setup())

        _, view = slack.opened[0]
        assert "Team Board" in _text(view)
        assert "ABC" in _text(view)
        assert ACTION_RECONFIGURE in _action_ids(view)
        jira_client.list_boards.assert_not_called()

    @pytest.mark.asyncio
    async def test_board_listing_failure_shows_error_view(
        self, wizard, slack, db_session, encryption_key, user, jira_client
    ):
        _connect(db_session, encryption_key, user)
        jira_client.list_boards.side_effect = TrackerRequestError(
            "boards", "Unauthorized", status_code=401
        )

        await wizard.handle(_setup())

        _, view = slack.updated[0]
        text = _text(view)
        assert "Error fetching boards" in text
        assert "Failed to fetch boards: Unauthorized" in text
        assert "/standup-setup" in text

    @pytest.mark.asyncio
    async def test_malformed_board_list_shows_error_view(
        self, db_session, encryption_key, slack, user
    ):
        """A board without an id replaces the loading modal with a retry hint."""
        _connect(db_session, encryption_key, user)
        payload = {"values": [{"name": "No id", "location": {"projectKey": "ABC"}}]}
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
        )
        wizard = SetupWizard(
            db_session,
            encryption_key,
            RefreshLocks(),
            slack,
            MagicMock(),
            lambda cloud_id, token: JiraClient(http, cloud_id, token),
        )

        async with http:
            await wizard.handle(_setup())

        assert len(slack.opened) == 1
        view_id, view = slack.updated[0]
        assert view_id == "V-opened"
        text = _text(view)
        assert "Malformed board list" in text
        assert "/standup-setup" in text

    @pytest.mark.asyncio
    async def test_no_boards_view(self, wizard, slack, db_session, encryption_key, user, jira_client):
        _connect(db_session, encryption_key, user)
        jira_client.list_boards.return_value = []

        await wizard.handle(_setup())

        _, view = slack.updated[0]
        assert "No boards found" in _text(view)


class TestConnectClicked:
    @pytest.mark.asyncio
    async def test_unconnected_shows_authorization_link(self, wizard, slack, user):
        await wizard.handle(ConnectClicked(SLACK_USER, "T0001", "ada", "V1"))

        view_id, view = slack.updated[0]
        assert view_id == "V1"
        assert AUTH_URL in _text(view)
        state = wizard._oauth.build_authorization_url.call_args.args[0]
        assert state.endswith(f":{user.id}")

    @pytest.mark.asyncio
    async def test_stale_button_after_connecting_shows_boards(
        self, wizard, slack, db_session, encryption_key, user
    ):
        _connect(db_session, encryption_key, user)

        await wizard.handle(ConnectClicked(SLACK_USER, "T0001", "ada", "V1"))

        _, view = slack.updated[0]
        assert ACTION_SELECT_BOARD in _action_ids(view)
        wizard._oauth.build_authorization_url.assert_not_called()


class TestBoardSelected:
    def _selected(self) -> BoardSelected:
        return BoardSelected(SLACK_USER, "T0001", "ada", "V1", 2, "BET", "Beta Board")

    @pytest.mark.asyncio
    async def test_persists_selection(self, wizard, slack, db_session, encryption_key, user):
        _connect(db_session, encryption_key, user)

        await wizard.handle(self._selected())

        config = JiraConfigService(db_session).get(user.id)
        assert (config.board_id, config.board_name, config.project_key) == (2, "Beta Board", "BET")
        _, view = slack.updated[0]
        assert "You're all set" in _text(view)
        assert "/weekly-standup" in _text(view)

    @pytest.mark.asyncio
    async def test_unconnected_selection_is_ignored(self, wizard, slack, db_session, user):
        """A stale select from a disconnected user re-prompts to connect."""
        await wizard.handle(self._selected())

        assert JiraConfigService(db_session).get(user.id) is None
        _, view = slack.updated[0]
        assert ACTION_CONNECT_JIRA in _action_ids(view)

    @pytest.mark.asyncio
    async def test_selection_without_site_shows_error(
        self, wizard, slack, db_session, encryption_key, user
    ):
        CredentialVault(db_session, encryption_key).store(
            user.id, PROVIDER_JIRA, "access-1", "refresh-1", 3600
        )

        await wizard.handle(self._selected())

        _, view = slack.updated[0]
        assert "No Jira site is linked" in _text(view)


class TestReconfigureClicked:
    @pytest.mark.asyncio
    async def test_shows_boards_and_keeps_selection(
        self, wizard, slack, db_session, encryption_key, user
    ):
        _connect(db_session, encryption_key, user, board=True)

        await wizard.handle(ReconfigureClicked(SLACK_USER, "T0001", "ada", "V1"))

        _, view = slack.updated[0]
        assert ACTION_SELECT_BOARD in _action_ids(view)
        assert JiraConfigService(db_session).get(user.id).board_id == 42

    @pytest.mark.asyncio
    async def test_unconnected_reprompts(self, wizard, slack, user):
        await wizard.handle(ReconfigureClicked(SLACK_USER, "T0001", "ada", "V1"))

        _, view = slack.updated[0]
        assert ACTION_CONNECT_JIRA in _action_ids(view)
