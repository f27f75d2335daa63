"""SQLAlchemy ORM models for the standup bot state database.

Defines users, encrypted OAuth tokens, per-user Jira selection, and the
ticket naming cache. Uses SQLAlchemy 2.0 style with Mapped and mapped_column.
Timestamps are ISO8601 UTC text, service-managed (no ORM onupdate).
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Mapping from a Slack user to an internal user id.

    Created lazily on first interaction and never deleted. The Slack user id
    is unique and immutable once an internal id has been assigned.

    Attributes:
        id: UUID4 text primary key (the internal user id).
        slack_user_id: Slack member id (e.g. 'U024BE7LH').
        slack_team_id: Slack workspace id or, for older rows, the user name.
        email: Optional email address.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    slack_user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    slack_team_id: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, slack_user_id={self.slack_user_id!r})>"


class OAuthToken(Base):
    """Encrypted OAuth credential for one (user, provider) pair.

    Both tokens are stored as 'iv:tag:ciphertext' hex strings produced by
    standup.services.token_encryption. Rows are replaced wholesale on every
    refresh; expires_at doubles as the compare-and-swap version for refresh.

    Attributes:
        user_id: Owning user.
        provider: Provider identifier (e.g. 'jira').
        access_token_encrypted: Encrypted access token.
        refresh_token_encrypted: Encrypted refresh token.
        expires_at: Absolute expiry, ISO8601 UTC.
        scopes_json: JSON list of granted scopes, or NULL.
    """

    __tablename__ = "oauth_tokens"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[str] = mapped_column(Text, nullable=False)
    scopes_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_oauth_tokens_user_provider"),
    )

    def __repr__(self) -> str:
        return (
            f"<OAuthToken(user_id={self.user_id!r}, provider={self.provider!r}, "
            f"expires_at={self.expires_at!r})>"
        )


class JiraConfig(Base):
    """Per-user Jira site and board selection.

    Instance fields (cloud id, base URL) are bound by the OAuth callback.
    Board fields stay NULL until the setup wizard records a selection.

    Attributes:
        user_id: Owning user (one config per user).
        jira_cloud_id: Atlassian cloud id of the bound site.
        jira_base_url: Browser base URL of the site, used for ticket links.
        board_id: Selected agile board id, or NULL.
        board_name: Selected board display name, or NULL.
        project_key: Project key of the selected board, or NULL.
    """

    __tablename__ = "jira_configs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    jira_cloud_id: Mapped[str] = mapped_column(String(64), nullable=False)
    jira_base_url: Mapped[str] = mapped_column(String(500), nullable=False)
    board_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    board_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    @property
    def board_bound(self) -> bool:
        """True once a board has been selected."""
        return self.board_id is not None

    def __repr__(self) -> str:
        return (
            f"<JiraConfig(user_id={self.user_id!r}, cloud_id={self.jira_cloud_id!r}, "
            f"board_id={self.board_id!r})>"
        )


class TicketName(Base):
    """Short human-readable label for a ticket, stable across reports."""

    __tablename__ = "ticket_names"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    ticket_key: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    __table_args__ = (
        UniqueConstraint("user_id", "ticket_key", name="uq_ticket_names_user_key"),
        Index("idx_ticket_names_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<TicketName(key={self.ticket_key!r}, name={self.name!r})>"
