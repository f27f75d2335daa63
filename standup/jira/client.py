"""Jira Cloud REST client bound to one site and one access token.

All requests go through the Atlassian API gateway:
    https://api.atlassian.com/ex/jira/{cloud_id}/rest/...

Any non-success status or transport failure raises TrackerRequestError
naming the operation (and the ticket key, for detail fetches).
"""

import logging
from typing import Any

import httpx

from standup.errors.domain import TrackerRequestError
from standup.jira.models import JiraBoard
from standup.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

JIRA_API_BASE = "https://api.atlassian.com/ex/jira"
SEARCH_FIELDS = "summary,status,assignee,duedate,updated"
DETAIL_FIELDS = "summary,status,assignee,description,duedate,updated,comment"
BOARD_TYPES = ("scrum", "kanban")
MAX_BOARDS = 100
_BOARD_PAGE_SIZE = 50


class JiraClient:
    """Thin async wrapper over the Jira REST and Agile APIs.

    Attributes:
        cloud_id: Atlassian cloud id of the site.
    """

    def __init__(self, http: httpx.AsyncClient, cloud_id: str, access_token: str) -> None:
        self._http = http
        self.cloud_id = cloud_id
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    @property
    def base_url(self) -> str:
        return f"{JIRA_API_BASE}/{self.cloud_id}"

    async def _get(
        self,
        path: str,
        params: Any,
        operation: str,
        ticket_key: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.get(url, params=params, headers=self._headers)
        except httpx.RequestError as e:
            raise TrackerRequestError(
                operation, f"{type(e).__name__}: {e}", ticket_key=ticket_key
            ) from e

        if response.is_error:
            detail = sanitize_error_message(response.text or response.reason_phrase) or ""
            logger.warning(
                "Jira %s request failed (status=%d, ticket=%s)",
                operation, response.status_code, ticket_key,
            )
            raise TrackerRequestError(
                operation, detail, ticket_key=ticket_key, status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise TrackerRequestError(
                operation, f"Malformed response: {e}", ticket_key=ticket_key
            ) from e

    async def search_issues(self, jql: str, max_results: int = 100) -> list[dict[str, Any]]:
        """Run a JQL search and return raw issue payloads.

        Args:
            jql: JQL query string.
            max_results: Page size; only the first page is read.

        Returns:
            List of issue dicts with the search fields populated.

        Raises:
            TrackerRequestError: On any failure.
        """
        data = await self._get(
            "/rest/api/3/search/jql",
            {"jql": jql, "fields": SEARCH_FIELDS, "maxResults": max_results},
            "search",
        )
        return data.get("issues") or []

    async def get_issue(self, key: str) -> dict[str, Any]:
        """Fetch one issue with rendered description and comments.

        Raises:
            TrackerRequestError: On any failure, carrying the ticket key.
        """
        return await self._get(
            f"/rest/api/3/issue/{key}",
            {"expand": "renderedFields", "fields": DETAIL_FIELDS},
            "detail",
            ticket_key=key,
        )

    async def list_boards(self) -> list[JiraBoard]:
        """List scrum and kanban boards visible to the user.

        Paginates until the API reports the last page or MAX_BOARDS is
        reached. Boards without a project location are skipped.

        Raises:
            TrackerRequestError: On any failure, including a malformed page.
        """
        boards: list[JiraBoard] = []
        start_at = 0
        while len(boards) < MAX_BOARDS:
            params = [("type", board_type) for board_type in BOARD_TYPES]
            params += [("startAt", str(start_at)), ("maxResults", str(_BOARD_PAGE_SIZE))]
            data = await self._get("/rest/agile/1.0/board", params, "boards")

            try:
                values = data.get("values") or []
                boards.extend(_parse_board_page(values))
                is_last = data.get("isLast", True)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise TrackerRequestError("boards", f"Malformed board list: {e}") from e

            if is_last or not values:
                break
            start_at += len(values)

        return boards[:MAX_BOARDS]


def _parse_board_page(values: list[dict[str, Any]]) -> list[JiraBoard]:
    boards = []
    for raw in values:
        location = raw.get("location") or {}
        project_key = location.get("projectKey")
        if not project_key:
            continue
        boards.append(
            JiraBoard(
                id=raw["id"],
                name=raw.get("name") or f"Board {raw['id']}",
                project_key=project_key,
                project_name=location.get("projectName"),
            )
        )
    return boards
