"""Typed Slack interactions and payload parsing.

The setup wizard accepts exactly four interaction kinds. Each is a frozen
dataclass; the Interaction union is closed so dispatch can be exhaustive.

Payload shapes:
    Slash command: application/x-www-form-urlencoded fields
        user_id, user_name, team_id, trigger_id, response_url, command.
    Block action: form field 'payload' holding JSON with type
        'block_actions', user, team, view and actions[0].action_id.
"""

import logging
from dataclasses import dataclass
from typing import Any, Union

logger = logging.getLogger(__name__)

ACTION_CONNECT_JIRA = "connect_jira"
ACTION_SELECT_BOARD = "select_board"
ACTION_RECONFIGURE = "reconfigure"


@dataclass(frozen=True)
class SetupCommand:
    """The setup slash command. Opens a new modal via trigger_id."""

    slack_user_id: str
    team_id: str
    user_name: str
    trigger_id: str


@dataclass(frozen=True)
class ConnectClicked:
    """'Connect Jira Account' button pressed inside the modal."""

    slack_user_id: str
    team_id: str
    user_name: str
    view_id: str


@dataclass(frozen=True)
class BoardSelected:
    """A board picked from the board select menu."""

    slack_user_id: str
    team_id: str
    user_name: str
    view_id: str
    board_id: int
    project_key: str
    board_name: str


@dataclass(frozen=True)
class ReconfigureClicked:
    """'Change Board' button pressed on the configured view."""

    slack_user_id: str
    team_id: str
    user_name: str
    view_id: str


Interaction = Union[SetupCommand, ConnectClicked, BoardSelected, ReconfigureClicked]


@dataclass(frozen=True)
class ReportCommand:
    """The report slash command. Replies go through response_url."""

    slack_user_id: str
    team_id: str
    user_name: str
    response_url: str


def parse_board_option(value: str, label: str | None) -> tuple[int, str, str]:
    """Decode a board option.

    Args:
        value: Option value, '<board id>:<project key>'.
        label: Option label, '<board name> (<project key>)'.

    Returns:
        (board_id, project_key, board_name).

    Raises:
        ValueError: If the value is not '<int>:<key>'.
    """
    board_id_raw, sep, project_key = value.partition(":")
    if not sep or not project_key:
        raise ValueError(f"Invalid board option value: {value!r}")
    board_id = int(board_id_raw)

    board_name = (label or "").strip()
    suffix = f" ({project_key})"
    if board_name.endswith(suffix):
        board_name = board_name[: -len(suffix)]
    return board_id, project_key, board_name or "Unknown Board"


def parse_setup_command(form: dict[str, str]) -> SetupCommand:
    return SetupCommand(
        slack_user_id=form["user_id"],
        team_id=form.get("team_id") or "unknown",
        user_name=form.get("user_name") or "unknown",
        trigger_id=form.get("trigger_id", ""),
    )


def parse_report_command(form: dict[str, str]) -> ReportCommand:
    return ReportCommand(
        slack_user_id=form["user_id"],
        team_id=form.get("team_id") or "unknown",
        user_name=form.get("user_name") or "unknown",
        response_url=form.get("response_url", ""),
    )


def parse_block_action(payload: dict[str, Any]) -> Interaction | None:
    """Convert a block_actions payload into an Interaction.

    Args:
        payload: Decoded JSON of the 'payload' form field.

    Returns:
        The matching Interaction, or None for payloads the wizard does not
        handle (other payload types, unknown action ids, no view, or a
        malformed board option).
    """
    if payload.get("type") != "block_actions":
        return None
    actions = payload.get("actions") or []
    user = payload.get("user") or {}
    view = payload.get("view") or {}
    if not actions or not user.get("id") or not view.get("id"):
        return None

    action = actions[0]
    action_id = action.get("action_id")
    common = {
        "slack_user_id": user["id"],
        "team_id": (payload.get("team") or {}).get("id") or user.get("team_id") or "unknown",
        "user_name": user.get("name") or user.get("username") or "unknown",
        "view_id": view["id"],
    }

    if action_id == ACTION_CONNECT_JIRA:
        return ConnectClicked(**common)
    if action_id == ACTION_RECONFIGURE:
        return ReconfigureClicked(**common)
    if action_id == ACTION_SELECT_BOARD:
        option = action.get("selected_option") or {}
        value = option.get("value")
        if not value:
            return None
        label = (option.get("text") or {}).get("text")
        try:
            board_id, project_key, board_name = parse_board_option(value, label)
        except ValueError:
            logger.warning("Ignoring malformed board selection %r", value)
            return None
        return BoardSelected(
            **common,
            board_id=board_id,
            project_key=project_key,
            board_name=board_name,
        )

    logger.debug("Ignoring unhandled action %r", action_id)
    return None
