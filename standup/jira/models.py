"""Pydantic models for Atlassian OAuth and Jira REST payloads.

Response parsing is lenient (extra fields ignored) and normalises the nested
Jira shapes (fields.status.name, fields.assignee.displayName, ...) into flat
read models used by the aggregator and report composer.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Slack caps plain_text option labels at 75 characters.
OPTION_LABEL_LIMIT = 75


class TokenSet(BaseModel):
    """Token endpoint response for code exchange or refresh."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_in: int = Field(..., ge=0, description="Lifetime in seconds")
    scope: str | None = Field(None, description="Space-delimited granted scopes")

    @property
    def scopes(self) -> list[str] | None:
        """Granted scopes as a list, or None when the response carried none."""
        if not self.scope:
            return None
        return self.scope.split()


class AccessibleResource(BaseModel):
    """A Jira Cloud site the token can access."""

    model_config = ConfigDict(extra="ignore")

    id: str
    url: str
    name: str
    scopes: list[str] = Field(default_factory=list)
    avatar_url: str | None = Field(None, alias="avatarUrl")


class JiraBoard(BaseModel):
    """An agile board together with the project it is located in."""

    id: int
    name: str
    project_key: str
    project_name: str | None = None

    @property
    def option_value(self) -> str:
        """Selection value encoding: '<board_id>:<project_key>'."""
        return f"{self.id}:{self.project_key}"

    @property
    def option_label(self) -> str:
        """Selection label '<name> (<project_key>)', name shortened to fit."""
        suffix = f" ({self.project_key})"
        room = max(OPTION_LABEL_LIMIT - len(suffix), 1)
        name = self.name if len(self.name) <= room else self.name[: room - 1] + "…"
        return f"{name}{suffix}"


class IssueSummary(BaseModel):
    """Lightweight search result: no description, no comments."""

    key: str
    summary: str = ""
    status: str = "Unknown"
    assignee: str | None = None
    due_date: str | None = None
    updated: datetime


class JiraComment(BaseModel):
    """A comment flattened to plain text."""

    author: str
    body: str
    created: datetime


class JiraTicket(BaseModel):
    """Fully enriched ticket for one report generation. Never persisted."""

    key: str
    summary: str
    status: str
    assignee: str | None = None
    description: str | None = None
    due_date: str | None = None
    updated: datetime
    comments: list[JiraComment] = Field(default_factory=list)
