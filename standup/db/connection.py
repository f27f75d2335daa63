"""Database connection management for the standup bot.

Provides synchronous SQLAlchemy sessions. SQLite is the default for local
development; any SQLAlchemy URL (e.g. PostgreSQL) works via DATABASE_URL.

Usage:
    from standup.db.connection import get_db_context, init_db

    init_db()  # Create tables
    with get_db_context() as db:
        ...
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from standup.db.models import Base


# Configuration
def get_database_url() -> str:
    """Get database URL from environment or use default SQLite.

    Precedence:
    1. DATABASE_URL (canonical)
    2. STANDUP_DB_PATH (converted to sqlite URL)
    3. sqlite:///<platform data dir>/standup.db
    """
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if database_url:
        return database_url

    db_path = os.environ.get("STANDUP_DB_PATH", "").strip()
    if db_path:
        if db_path.startswith("sqlite:"):
            return db_path
        return f"sqlite:///{db_path}"

    from standup.utils.paths import get_default_db_path
    return f"sqlite:///{get_default_db_path()}"


def build_engine(url: str, **kwargs: Any) -> Engine:
    """Create an engine with SQLite pragmas applied on connect.

    SQLite connections take over transaction control from pysqlite so
    that SAVEPOINTs (Session.begin_nested) behave.

    Args:
        url: SQLAlchemy database URL.
        **kwargs: Extra create_engine arguments (e.g. poolclass in tests).

    Returns:
        Configured Engine.
    """
    is_sqlite = url.startswith("sqlite")
    new_engine = create_engine(
        url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
        echo=os.environ.get("SQL_ECHO", "").lower() == "true",
        **kwargs,
    )

    if is_sqlite:
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
            """Enable referential integrity (disabled by default in SQLite)."""
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(new_engine, "begin")
        def do_begin(conn: Any) -> None:
            conn.exec_driver_sql("BEGIN")

    return new_engine


DATABASE_URL = get_database_url()
engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


@contextmanager
def get_db_context(
    session_factory: sessionmaker = SessionLocal,
) -> Generator[Session, None, None]:
    """Context manager for sessions outside of request scope.

    Commits on success, rolls back on error.

    Usage:
        with get_db_context() as db:
            user = db.query(User).first()
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all database tables.

    Safe to call multiple times - existing tables are left untouched.
    Creates the parent directory of a file-based SQLite database.

    Args:
        bind: Engine to initialise (defaults to the module engine).
    """
    target = bind or engine
    database = target.url.database
    if target.url.get_backend_name() == "sqlite" and database and database != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(database)), exist_ok=True)
    Base.metadata.create_all(bind=target)
