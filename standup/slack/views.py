"""Block Kit modal views for the setup wizard.

Pure builders: each returns a view dict ready for views.open/views.update.
"""

from typing import Any

from standup.jira.models import JiraBoard
from standup.slack.interactions import (
    ACTION_CONNECT_JIRA,
    ACTION_RECONFIGURE,
    ACTION_SELECT_BOARD,
)

# Slack limits static_select menus to 100 options.
MAX_SELECT_OPTIONS = 100


def escape_mrkdwn(text: str) -> str:
    """Escape the three control characters of Slack mrkdwn."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _plain(text: str) -> dict[str, Any]:
    return {"type": "plain_text", "text": text}


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _modal(
    title: str,
    blocks: list[dict[str, Any]],
    close: str = "Cancel",
    callback_id: str = "setup_modal",
) -> dict[str, Any]:
    return {
        "type": "modal",
        "callback_id": callback_id,
        "title": _plain(title),
        "close": _plain(close),
        "blocks": blocks,
    }


def connect_prompt_view() -> dict[str, Any]:
    return _modal(
        "Standup Setup",
        [
            _section(
                "*Welcome to Weekly Standup!*\n\n"
                "First, let's connect your Jira account so we can fetch your tickets."
            ),
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": _plain("🔗 Connect Jira Account"),
                        "action_id": ACTION_CONNECT_JIRA,
                        "style": "primary",
                    }
                ],
            },
        ],
    )


def authorize_link_view(auth_url: str, setup_command: str) -> dict[str, Any]:
    return _modal(
        "Connect Jira",
        [
            _section(
                "Click the link below to authorize Jira access:\n\n"
                f"<{auth_url}|🔗 Connect Jira Account>\n\n"
                "This will open in your browser. After authorizing, return here "
                f"and run `{setup_command}` again."
            )
        ],
    )


def board_selection_view(boards: list[JiraBoard], setup_command: str) -> dict[str, Any]:
    """Board picker; an informational view when there is nothing to pick."""
    if not boards:
        return _modal(
            "Select Board",
            [
                _section(
                    "*No boards found*\n\n"
                    "Your Jira account has no scrum or kanban boards you can access. "
                    f"Create one in Jira, then run `{setup_command}` again."
                )
            ],
            callback_id="board_selection_modal",
        )

    options = [
        {"text": _plain(board.option_label), "value": board.option_value}
        for board in boards[:MAX_SELECT_OPTIONS]
    ]
    return _modal(
        "Select Board",
        [
            _section(
                "*Select your Jira board*\n\n"
                "Choose the board you want to track for your weekly standups."
            ),
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "static_select",
                        "action_id": ACTION_SELECT_BOARD,
                        "placeholder": _plain("Choose a board..."),
                        "options": options,
                    }
                ],
            },
        ],
        callback_id="board_selection_modal",
    )


def board_error_view(message: str, setup_command: str) -> dict[str, Any]:
    return _modal(
        "Select Board",
        [
            _section(
                "❌ *Error fetching boards*\n\n"
                f"{escape_mrkdwn(message)}\n\n"
                f"Try running `{setup_command}` again."
            )
        ],
        callback_id="board_selection_modal",
    )


def current_config_view(board_name: str | None, project_key: str | None) -> dict[str, Any]:
    return _modal(
        "Standup Setup",
        [
            _section(
                "✅ *You're already set up!*\n\n"
                f"Board: *{escape_mrkdwn(board_name or 'Unknown')}*\n"
                f"Project: *{escape_mrkdwn(project_key or 'Unknown')}*"
            ),
            {"type": "divider"},
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": "Want to use a different board?"},
                "accessory": {
                    "type": "button",
                    "text": _plain("Change Board"),
                    "action_id": ACTION_RECONFIGURE,
                },
            },
        ],
        close="Done",
        callback_id="current_config_modal",
    )


def setup_complete_view(board_name: str, project_key: str, report_command: str) -> dict[str, Any]:
    return _modal(
        "Setup Complete!",
        [
            _section(
                "✅ *You're all set!*\n\n"
                f"Board: *{escape_mrkdwn(board_name)}*\n"
                f"Project: *{escape_mrkdwn(project_key)}*\n\n"
                f"Run `{report_command}` anytime to generate your report."
            )
        ],
        close="Done",
    )


def error_view(title: str, message: str) -> dict[str, Any]:
    """Generic failure view for wizard errors other than board listing."""
    return _modal(title[:24], [_section(escape_mrkdwn(message))], close="Close")
