"""Database module for standup bot persistence."""

from standup.db.connection import (
    SessionLocal,
    engine,
    get_db_context,
    init_db,
)
from standup.db.models import (
    Base,
    JiraConfig,
    OAuthToken,
    TicketName,
    User,
)

__all__ = [
    # Models
    "Base",
    "User",
    "OAuthToken",
    "JiraConfig",
    "TicketName",
    # Connection
    "engine",
    "SessionLocal",
    "get_db_context",
    "init_db",
]
