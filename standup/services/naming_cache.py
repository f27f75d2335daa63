"""Persisted ticket-key to short-label mapping.

Labels keep ticket names stable across weekly reports. The cache is a
best-effort enhancement: read failures yield an empty mapping and write
failures are logged, so naming can never fail a report.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from standup.db.models import TicketName, utc_now_iso

logger = logging.getLogger(__name__)


class NamingCache:
    """Per-user ticket name store.

    Args:
        db: SQLAlchemy session.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, user_id: str) -> dict[str, str]:
        """Return every stored name for the user ({} on storage failure)."""
        try:
            rows = self._db.query(TicketName).filter_by(user_id=user_id).all()
        except SQLAlchemyError:
            logger.exception("Failed to read ticket names for user %s", user_id)
            self._db.rollback()
            return {}
        return {row.ticket_key: row.name for row in rows}

    def merge(self, user_id: str, names: dict[str, str]) -> None:
        """Upsert each (ticket key, name) pair independently.

        A failing pair is rolled back to its own savepoint and skipped.
        Merging the same mapping twice leaves storage unchanged.
        """
        if not names:
            return

        for ticket_key, name in names.items():
            if not isinstance(ticket_key, str) or not isinstance(name, str) or not name.strip():
                logger.warning("Skipping invalid ticket name entry for %r", ticket_key)
                continue
            try:
                with self._db.begin_nested():
                    row = (
                        self._db.query(TicketName)
                        .filter_by(user_id=user_id, ticket_key=ticket_key)
                        .first()
                    )
                    if row is None:
                        self._db.add(
                            TicketName(user_id=user_id, ticket_key=ticket_key, name=name)
                        )
                    elif row.name != name:
                        row.name = name
                        row.updated_at = utc_now_iso()
            except SQLAlchemyError:
                logger.exception("Failed to save ticket name for %s", ticket_key)

        try:
            self._db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to commit ticket names for user %s", user_id)
            self._db.rollback()
