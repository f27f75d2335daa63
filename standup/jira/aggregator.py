"""Three-phase ticket aggregation: search, filter, enrich.

Phase 1 runs one lightweight JQL search scoped to the configured project.
Phase 2 re-evaluates relevance locally (recent OR active), de-duplicates
and caps the candidate set. Phase 3 fetches full detail for each survivor
concurrently, bounded by a semaphore, and keeps only recent comments.

A failure in any phase aborts the whole run: the report is either built
from the complete ticket set or not at all.

Example:
    aggregator = TicketAggregator(jira_client, lookback_days=7)
    tickets = await aggregator.collect("PROJ")
"""

import asyncio
import logging
import re
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from standup.errors.domain import TrackerRequestError
from standup.jira.client import JiraClient
from standup.jira.models import IssueSummary, JiraComment, JiraTicket

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"In Progress", "To Do"})

# "+0000" -> "+00:00"
_OFFSET_RE = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_jira_datetime(value: str) -> datetime:
    """Parse a Jira timestamp ('2024-01-15T10:30:00.000+0000') as aware UTC.

    Raises:
        ValueError: If the value is not a recognisable timestamp.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _OFFSET_RE.sub(r"\1:\2", text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def extract_text_from_adf(node: Any) -> str:
    """Flatten an Atlassian Document Format node to plain text.

    Text leaves are concatenated in document order. Strings pass through
    unchanged; any other leaf (mentions, media, hard breaks) yields "".
    """
    if not node:
        return ""
    if isinstance(node, str):
        return node
    if not isinstance(node, dict):
        return ""
    if node.get("type") == "text":
        return node.get("text") or ""
    content = node.get("content")
    if isinstance(content, list):
        return "".join(extract_text_from_adf(child) for child in content)
    return ""


def build_search_jql(project_key: str, cutoff: datetime) -> str:
    """Project-scoped JQL: assigned to the caller or updated since cutoff."""
    escaped = project_key.replace("\\", "\\\\").replace('"', '\\"')
    return (
        f'project = "{escaped}" AND '
        f'(assignee = currentUser() OR updatedDate >= "{cutoff.strftime("%Y-%m-%d")}")'
    )


def parse_issue_summary(raw: dict[str, Any]) -> IssueSummary:
    """Normalise a search result into an IssueSummary."""
    fields = raw.get("fields") or {}
    status = (fields.get("status") or {}).get("name") or "Unknown"
    assignee = (fields.get("assignee") or {}).get("displayName")
    return IssueSummary(
        key=raw["key"],
        summary=fields.get("summary") or "",
        status=status,
        assignee=assignee,
        due_date=fields.get("duedate"),
        updated=parse_jira_datetime(fields["updated"]),
    )


def is_relevant(issue: IssueSummary, cutoff: datetime) -> bool:
    """True when the ticket was updated since cutoff or is still active."""
    return issue.updated >= cutoff or issue.status in ACTIVE_STATUSES


def select_relevant(
    issues: Iterable[IssueSummary],
    cutoff: datetime,
    max_tickets: int,
) -> list[IssueSummary]:
    """Filter, de-duplicate by key (first wins) and cap the candidate set."""
    seen: set[str] = set()
    selected: list[IssueSummary] = []
    for issue in issues:
        if issue.key in seen or not is_relevant(issue, cutoff):
            continue
        seen.add(issue.key)
        selected.append(issue)
        if len(selected) >= max_tickets:
            break
    return selected


def filter_recent_comments(
    raw_comments: Iterable[dict[str, Any]],
    cutoff: datetime,
    max_comments: int,
) -> list[JiraComment]:
    """Keep comments created at or after cutoff, newest max_comments of them.

    Returned in chronological order.
    """
    kept: list[JiraComment] = []
    for raw in raw_comments:
        created_raw = raw.get("created")
        if not created_raw:
            continue
        created = parse_jira_datetime(created_raw)
        if created < cutoff:
            continue
        kept.append(
            JiraComment(
                author=(raw.get("author") or {}).get("displayName") or "Unknown",
                body=extract_text_from_adf(raw.get("body")),
                created=created,
            )
        )
    kept.sort(key=lambda c: c.created)
    return kept[-max_comments:] if max_comments > 0 else []


def parse_ticket_detail(
    raw: dict[str, Any],
    cutoff: datetime,
    max_comments: int,
) -> JiraTicket:
    """Normalise an issue detail payload into a JiraTicket."""
    fields = raw.get("fields") or {}
    rendered = raw.get("renderedFields") or {}
    comment_block = fields.get("comment") or {}
    return JiraTicket(
        key=raw["key"],
        summary=fields.get("summary") or "",
        status=(fields.get("status") or {}).get("name") or "Unknown",
        assignee=(fields.get("assignee") or {}).get("displayName"),
        description=rendered.get("description") or None,
        due_date=fields.get("duedate"),
        updated=parse_jira_datetime(fields["updated"]),
        comments=filter_recent_comments(
            comment_block.get("comments") or [], cutoff, max_comments
        ),
    )


class TicketAggregator:
    """Collects the ticket set for one report.

    Attributes:
        lookback_days: Size of the "recent" window.
        max_tickets: Upper bound on enriched tickets.
        max_comments: Upper bound on comments kept per ticket.
        max_concurrent: Upper bound on in-flight detail requests.
    """

    def __init__(
        self,
        client: JiraClient,
        lookback_days: int = 7,
        max_tickets: int = 50,
        max_comments: int = 20,
        max_concurrent: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self.lookback_days = lookback_days
        self.max_tickets = max_tickets
        self.max_comments = max_comments
        self.max_concurrent = max_concurrent
        self._clock = clock or (lambda: datetime.now(UTC))

    def cutoff(self) -> datetime:
        return self._clock() - timedelta(days=self.lookback_days)

    async def collect(self, project_key: str) -> list[JiraTicket]:
        """Run search, filter and enrich for a project.

        Args:
            project_key: Key of the configured board's project.

        Returns:
            Enriched tickets in search order. Empty when nothing is relevant.

        Raises:
            TrackerRequestError: If the search or any detail fetch fails.
        """
        cutoff = self.cutoff()

        raw_issues = await self._client.search_issues(build_search_jql(project_key, cutoff))
        try:
            summaries = [parse_issue_summary(raw) for raw in raw_issues]
        except (KeyError, ValueError, TypeError) as e:
            raise TrackerRequestError("search", f"Malformed search result: {e}") from e

        candidates = select_relevant(summaries, cutoff, self.max_tickets)
        logger.info(
            "Ticket search for %s: %d results, %d selected for enrichment",
            project_key, len(summaries), len(candidates),
        )
        if not candidates:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def enrich(issue: IssueSummary) -> JiraTicket:
            async with semaphore:
                raw = await self._client.get_issue(issue.key)
            try:
                return parse_ticket_detail(raw, cutoff, self.max_comments)
            except (KeyError, ValueError, TypeError) as e:
                raise TrackerRequestError(
                    "detail", f"Malformed issue payload: {e}", ticket_key=issue.key
                ) from e

        return list(await asyncio.gather(*(enrich(issue) for issue in candidates)))
