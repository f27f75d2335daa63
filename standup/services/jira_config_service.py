"""Per-user Jira site and board selection persistence."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from standup.db.models import JiraConfig, utc_now_iso
from standup.errors.domain import NotConfiguredError

logger = logging.getLogger(__name__)


class JiraConfigService:
    """Reads and writes the JiraConfig row of a user.

    Instance fields are written by the OAuth callback; board fields by the
    setup wizard. The two never overwrite each other, except that binding a
    different site clears a board that belonged to the previous one.

    Args:
        db: SQLAlchemy session.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, user_id: str) -> JiraConfig | None:
        return self._db.query(JiraConfig).filter_by(user_id=user_id).first()

    def upsert_instance(self, user_id: str, cloud_id: str, base_url: str) -> JiraConfig:
        """Bind the user to a Jira Cloud site.

        Re-binding the same site keeps the board selection. Binding a
        different site resets it, since board ids are per-site.

        Args:
            user_id: Internal user id.
            cloud_id: Atlassian cloud id.
            base_url: Browser base URL of the site.

        Returns:
            The persisted JiraConfig.
        """
        now = utc_now_iso()
        config = self.get(user_id)
        if config is None:
            config = JiraConfig(
                user_id=user_id,
                jira_cloud_id=cloud_id,
                jira_base_url=base_url,
                created_at=now,
                updated_at=now,
            )
            self._db.add(config)
        else:
            if config.jira_cloud_id != cloud_id and config.board_bound:
                logger.info(
                    "User %s switched Jira site; clearing board %s",
                    user_id, config.board_id,
                )
                config.board_id = None
                config.board_name = None
                config.project_key = None
            config.jira_cloud_id = cloud_id
            config.jira_base_url = base_url
            config.updated_at = now

        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            raise
        return config

    def update_board_selection(
        self,
        user_id: str,
        board_id: int,
        board_name: str,
        project_key: str,
    ) -> JiraConfig:
        """Record the selected board in one update.

        Raises:
            NotConfiguredError: If the user has no bound Jira site.
        """
        config = self.get(user_id)
        if config is None:
            raise NotConfiguredError("No Jira site is linked to your account.")

        config.board_id = board_id
        config.board_name = board_name
        config.project_key = project_key
        config.updated_at = utc_now_iso()
        self._db.commit()

        logger.info("User %s selected board %s (%s)", user_id, board_id, project_key)
        return config
