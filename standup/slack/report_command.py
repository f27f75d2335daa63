"""Slack delivery of the weekly report.

Runs after the slash command has been acknowledged. Progress and failures
go to the invoking user as ephemeral replies through response_url; the
report itself is sent as a direct message.
"""

import logging

from standup.errors.domain import DomainError
from standup.errors.formatter import format_user_message
from standup.services.report_service import ReportService
from standup.services.user_service import UserService
from standup.slack.client import SlackClient
from standup.slack.formatting import format_report_for_slack
from standup.slack.interactions import ReportCommand

logger = logging.getLogger(__name__)

GENERATING_MESSAGE = "⏳ Generating your weekly standup report..."
NO_TICKETS_MESSAGE = "📭 No tickets found with recent activity. Nothing to report!"
SENT_MESSAGE = "✅ Your weekly standup has been sent to your DMs!"


async def run_report_command(
    command: ReportCommand,
    users: UserService,
    reports: ReportService,
    slack: SlackClient,
    report_command: str = "/weekly-standup",
    setup_command: str = "/standup-setup",
) -> None:
    """Generate the report for the invoking user and deliver it.

    Never raises: every failure is reported back to the user.
    """
    try:
        await slack.respond(command.response_url, GENERATING_MESSAGE)
        user = users.get_or_create_user(command.slack_user_id, command.team_id)
        result = await reports.generate(user.id)

        if result.report is None:
            await slack.respond(command.response_url, NO_TICKETS_MESSAGE, replace_original=True)
            return

        await slack.post_message(command.slack_user_id, format_report_for_slack(result.report))
        await slack.respond(command.response_url, SENT_MESSAGE, replace_original=True)
        logger.info(
            "Delivered report (%d tickets) to %s", result.ticket_count, command.slack_user_id
        )
    except Exception as e:
        if isinstance(e, DomainError):
            logger.warning("Report failed for %s: [%s] %s", command.slack_user_id, e.code, e.message)
        else:
            logger.exception("Unexpected error generating report for %s", command.slack_user_id)
        text = format_user_message(e, report_command, setup_command)
        try:
            await slack.respond(command.response_url, text, replace_original=True)
        except DomainError as respond_error:
            logger.error("Could not deliver error reply: %s", respond_error.message)
