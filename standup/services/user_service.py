"""Slack user to internal user mapping."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from standup.db.models import User

logger = logging.getLogger(__name__)


class UserService:
    """Lazily creates and looks up users keyed by Slack user id.

    Args:
        db: SQLAlchemy session.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_by_id(self, user_id: str) -> User | None:
        return self._db.query(User).filter_by(id=user_id).first()

    def get_by_slack_id(self, slack_user_id: str) -> User | None:
        return self._db.query(User).filter_by(slack_user_id=slack_user_id).first()

    def get_or_create_user(self, slack_user_id: str, slack_team_id: str) -> User:
        """Return the user for a Slack id, creating it on first contact.

        The internal id is assigned once and never changes. Two concurrent
        first contacts race on the unique slack_user_id; the loser re-reads
        the winner's row.

        Args:
            slack_user_id: Slack member id.
            slack_team_id: Slack workspace id.

        Returns:
            The persisted User.
        """
        existing = self.get_by_slack_id(slack_user_id)
        if existing is not None:
            return existing

        user = User(slack_user_id=slack_user_id, slack_team_id=slack_team_id)
        self._db.add(user)
        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            winner = self.get_by_slack_id(slack_user_id)
            if winner is None:
                raise
            return winner

        logger.info("Created user %s for Slack user %s", user.id, slack_user_id)
        return user
