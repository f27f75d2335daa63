"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- In-memory SQLite engine and session (StaticPool, so every connection
  sees the same database)
- A fixed token encryption key
- A persisted user
- A fixed clock
"""

import os
from collections.abc import Generator
from datetime import UTC, datetime

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from standup.db.connection import build_engine
from standup.db.models import Base, User

FIXED_NOW = datetime(2024, 1, 17, 12, 0, 0, tzinfo=UTC)  # a Wednesday


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Create in-memory SQLite engine with StaticPool."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(bind=db_engine, autoflush=False)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide an in-memory SQLAlchemy session with all tables."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def encryption_key() -> bytes:
    """A fixed 32-byte AES-256 key."""
    return bytes(range(32))


@pytest.fixture
def user(db_session) -> User:
    """A persisted user."""
    row = User(slack_user_id="U024BE7LH", slack_team_id="T0001")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def clock():
    """A controllable clock starting at FIXED_NOW."""

    class Clock:
        def __init__(self) -> None:
            self.now = FIXED_NOW

        def __call__(self) -> datetime:
            return self.now

    return Clock()


@pytest.fixture(autouse=True)
def _no_encryption_key_env(monkeypatch):
    """Keep tests independent of any key configured in the shell."""
    if os.environ.get("TOKEN_ENCRYPTION_KEY") or os.environ.get("TOKEN_ENCRYPTION_KEY_FILE"):
        monkeypatch.delenv("TOKEN_ENCRYPTION_KEY", raising=False)
        monkeypatch.delenv("TOKEN_ENCRYPTION_KEY_FILE", raising=False)
