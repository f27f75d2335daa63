"""Report pipeline: credential, tickets, names, composed report.

Chat-agnostic. The Slack command handler decides how each outcome is
delivered; this service only decides what the outcome is.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from standup.errors.domain import NotConfiguredError, NotConnectedError
from standup.jira.aggregator import TicketAggregator
from standup.jira.client import JiraClient
from standup.jira.oauth import JiraOAuthClient
from standup.services.credential_vault import PROVIDER_JIRA, CredentialVault, RefreshLocks
from standup.services.jira_config_service import JiraConfigService
from standup.services.naming_cache import NamingCache
from standup.services.report_composer import ReportComposer

logger = logging.getLogger(__name__)


@dataclass
class ReportResult:
    """Outcome of one report run.

    Attributes:
        report: Generated markdown, or None when no ticket was relevant.
        ticket_count: Number of enriched tickets.
        names: Ticket names after merging.
    """

    report: str | None
    ticket_count: int = 0
    names: dict[str, str] = field(default_factory=dict)


class ReportService:
    """Runs the weekly report pipeline for one user.

    Args:
        db: SQLAlchemy session.
        key: Token encryption key.
        locks: Shared refresh lock registry.
        oauth: Jira OAuth client, used for token refresh.
        jira_client_factory: Builds a JiraClient from (cloud_id, access_token).
        composer: Report composer.
        lookback_days: Size of the "recent" window.
    """

    def __init__(
        self,
        db: Session,
        key: bytes,
        locks: RefreshLocks,
        oauth: JiraOAuthClient,
        jira_client_factory: Callable[[str, str], JiraClient],
        composer: ReportComposer,
        lookback_days: int = 7,
    ) -> None:
        self._vault = CredentialVault(db, key, locks=locks)
        self._configs = JiraConfigService(db)
        self._names = NamingCache(db)
        self._oauth = oauth
        self._jira_client_factory = jira_client_factory
        self._composer = composer
        self._lookback_days = lookback_days

    async def generate(self, user_id: str) -> ReportResult:
        """Produce the report for a user.

        Args:
            user_id: Internal user id.

        Returns:
            ReportResult; report is None when there is nothing to report.

        Raises:
            NotConnectedError: If no Jira credential is stored.
            NotConfiguredError: If no board is selected.
            TrackerRequestError: If any Jira call fails.
            ReportGenerationError: If the model call fails.
        """
        if not self._vault.has_valid(user_id, PROVIDER_JIRA):
            raise NotConnectedError(PROVIDER_JIRA)

        config = self._configs.get(user_id)
        if config is None or not config.board_bound or not config.project_key:
            raise NotConfiguredError("No board selected.")

        access_token = await self._vault.get_valid_access_token(
            user_id, PROVIDER_JIRA, self._oauth.refresh
        )
        aggregator = TicketAggregator(
            self._jira_client_factory(config.jira_cloud_id, access_token),
            lookback_days=self._lookback_days,
        )
        tickets = await aggregator.collect(config.project_key)
        if not tickets:
            logger.info("No relevant tickets for user %s", user_id)
            return ReportResult(report=None)

        existing = self._names.get(user_id)
        composed = await self._composer.compose(tickets, config.jira_base_url, existing)
        self._names.merge(user_id, composed.names)

        return ReportResult(
            report=composed.report,
            ticket_count=len(tickets),
            names=composed.names,
        )
