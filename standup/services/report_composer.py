"""Standup report generation with Claude.

Request contract: ticket JSON (with a relative due-date hint per ticket),
the Jira base URL for links, today's date, and the user's existing ticket
names. Response contract: a markdown report starting at "## Last Week",
optionally followed by a fenced ```json block mapping ticket keys to short
names. The block is parsed, merged over the existing names and stripped
from the delivered report.
"""

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta

from anthropic import APIError, AsyncAnthropic

from standup.config import DEFAULT_MODEL
from standup.errors.domain import ReportGenerationError
from standup.jira.models import JiraTicket

logger = logging.getLogger(__name__)

MAX_TOKENS = 2000

SYSTEM_PROMPT = """You are a helpful assistant that generates weekly standup reports from Jira ticket data.

Format requirements:
- Start directly with "## Last Week" (no title header)
- Ticket format: [PROJ-123](https://jira.example.com/browse/PROJ-123) - Concise Name
- Each ticket gets 1-3 bullet points describing work done or planned
- Organize into three sections:

## Last Week
Tickets with activity in the past 7 days. Focus on what was accomplished.

## This Week
"In Progress" and "To Do" tickets. Focus on planned actions.

## Blockers
Dependencies or items you're waiting on. If none, just say "None"

Additional formatting:
- Keep ticket names to 3-5 words that capture the essence
- Use relative due dates: "Due tomorrow", "Due Friday", "Due next Tuesday", "Due 02/01"
- Be concise - 1-3 bullet points per ticket
- If a ticket has recent comments, incorporate relevant context"""

_NAMES_BLOCK_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_ANY_NAMES_BLOCK_RE = re.compile(r"```json[\s\S]*?```")


@dataclass(frozen=True)
class ComposedReport:
    """Generated report text and the merged ticket names."""

    report: str
    names: dict[str, str] = field(default_factory=dict)


def format_relative_due_date(due_date: str | None, today: date) -> str | None:
    """Describe a due date relative to today.

    Weeks end on Sunday. Returns, in order of precedence: "Overdue",
    "Due today", "Due tomorrow", "Due <Weekday>" (this week),
    "Due next <Weekday>" (next week), else "Due MM/DD".

    Args:
        due_date: Jira 'YYYY-MM-DD' due date, or None.
        today: Reference date.

    Returns:
        Hint text, or None when there is no parseable due date.
    """
    if not due_date:
        return None
    try:
        due = date.fromisoformat(due_date[:10])
    except ValueError:
        return None

    diff_days = (due - today).days
    if diff_days < 0:
        return "Overdue"
    if diff_days == 0:
        return "Due today"
    if diff_days == 1:
        return "Due tomorrow"

    days_since_sunday = (today.weekday() + 1) % 7
    end_of_week = today + timedelta(days=7 - days_since_sunday)
    weekday = due.strftime("%A")
    if due <= end_of_week:
        return f"Due {weekday}"
    if due <= end_of_week + timedelta(days=7):
        return f"Due next {weekday}"
    return f"Due {due.strftime('%m/%d')}"


def extract_ticket_names(response: str, existing: dict[str, str]) -> dict[str, str]:
    """Merge the names block of a response over the existing names.

    A missing or unparseable block leaves the existing names unchanged.
    Non-string entries in the block are ignored.
    """
    merged = dict(existing)
    match = _NAMES_BLOCK_RE.search(response)
    if not match:
        return merged

    try:
        parsed = json.loads(match.group(1))
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed ticket names block")
        return merged
    if not isinstance(parsed, dict):
        return merged

    for key, name in parsed.items():
        if isinstance(key, str) and isinstance(name, str) and name.strip():
            merged[key] = name.strip()
    return merged


def strip_names_block(response: str) -> str:
    """Remove every ```json block and surrounding whitespace."""
    return _ANY_NAMES_BLOCK_RE.sub("", response).strip()


def build_user_prompt(
    tickets: list[JiraTicket],
    jira_base_url: str,
    existing_names: dict[str, str],
    today: date,
) -> str:
    payload = []
    for ticket in tickets:
        item = ticket.model_dump(mode="json")
        item["due_relative"] = format_relative_due_date(ticket.due_date, today)
        payload.append(item)

    return (
        "Generate a weekly standup report from this Jira data.\n\n"
        f"Jira base URL for links: {jira_base_url}\n"
        f"Today's date: {today.strftime('%A, %B %d, %Y')}\n\n"
        "Existing ticket names (use these for consistency if the ticket appears):\n"
        f"{json.dumps(existing_names, indent=2)}\n\n"
        "Ticket data:\n"
        f"{json.dumps(payload, indent=2)}\n\n"
        "After generating the report, also output a JSON block with any NEW ticket "
        "names you created, in this format:\n"
        "```json\n"
        '{"PROJ-123": "Short ticket name", "PROJ-456": "Another name"}\n'
        "```"
    )


class ReportComposer:
    """Turns an enriched ticket set into report text via Claude.

    Args:
        client: Shared AsyncAnthropic client.
        model: Model id.
        today: Returns the reference date for due-date hints.
    """

    def __init__(
        self,
        client: AsyncAnthropic,
        model: str = DEFAULT_MODEL,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._today = today or date.today

    async def compose(
        self,
        tickets: list[JiraTicket],
        jira_base_url: str,
        existing_names: dict[str, str],
    ) -> ComposedReport:
        """Generate the report and merged ticket names.

        Raises:
            ReportGenerationError: If the API call fails or returns no text.
        """
        prompt = build_user_prompt(tickets, jira_base_url, existing_names, self._today())
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=MAX_TOKENS,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as e:
            raise ReportGenerationError(f"{type(e).__name__}: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise ReportGenerationError("Empty response from model")

        report = strip_names_block(text)
        if not report:
            raise ReportGenerationError("Response contained no report text")

        logger.info("Generated report for %d tickets", len(tickets))
        return ComposedReport(report=report, names=extract_ticket_names(text, existing_names))
