"""CredentialVault: encrypted per-(user, provider) OAuth token storage.

Tokens are encrypted independently with AES-256-GCM. The AAD binds each
ciphertext to its row and role ('jira:<user id>:access'), so a value copied
into another row or swapped between the access and refresh columns fails
authentication instead of decrypting.

Refresh protocol:
    get_valid_access_token() refreshes when fewer than REFRESH_BUFFER remain.
    Within a process, a per-(user, provider) asyncio.Lock serialises the
    check-refresh-store sequence. Across processes, the new token set is
    written with a compare-and-swap on expires_at; the loser discards its
    result and returns the winner's token.
"""

import asyncio
import json
import logging
import weakref
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from standup.db.models import OAuthToken, utc_now_iso
from standup.errors.domain import NotConnectedError
from standup.jira.models import TokenSet
from standup.services.token_encryption import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

PROVIDER_JIRA = "jira"
REFRESH_BUFFER = timedelta(minutes=5)

RefreshFn = Callable[[str], Awaitable[TokenSet]]


class RefreshLocks:
    """Registry of per-(user, provider) asyncio locks.

    One instance is shared by every vault in the process (held on the app
    container), since vaults themselves are request-scoped. Entries are weak:
    a lock lives only while some caller holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, user_id: str, provider: str) -> asyncio.Lock:
        key = (user_id, provider)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


def _aad(provider: str, user_id: str, role: str) -> str:
    return f"{provider}:{user_id}:{role}"


def _parse_expiry(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class CredentialVault:
    """Stores, reads and transparently refreshes OAuth credentials.

    Args:
        db: SQLAlchemy session.
        key: 32-byte AES-256 key.
        locks: Shared refresh lock registry. A private one is created when
            omitted, which only serialises refreshes through this instance.
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        db: Session,
        key: bytes,
        locks: RefreshLocks | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db = db
        self._key = key
        self._locks = locks if locks is not None else RefreshLocks()
        self._clock = clock or (lambda: datetime.now(UTC))

    def _query(self, user_id: str, provider: str):
        return self._db.query(OAuthToken).filter_by(user_id=user_id, provider=provider)

    def _encrypted_fields(
        self,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        scopes: list[str] | None,
    ) -> dict:
        now = self._clock()
        return {
            "access_token_encrypted": encrypt_token(
                access_token, self._key, aad=_aad(provider, user_id, "access")
            ),
            "refresh_token_encrypted": encrypt_token(
                refresh_token, self._key, aad=_aad(provider, user_id, "refresh")
            ),
            "expires_at": (now + timedelta(seconds=expires_in)).isoformat(),
            "scopes_json": json.dumps(scopes) if scopes is not None else None,
            "updated_at": now.isoformat(),
        }

    def store(
        self,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        scopes: list[str] | None = None,
    ) -> OAuthToken:
        """Encrypt and upsert a credential, replacing every token field.

        Args:
            user_id: Internal user id.
            provider: Provider identifier.
            access_token: Plaintext access token.
            refresh_token: Plaintext refresh token.
            expires_in: Access token lifetime in seconds from now.
            scopes: Granted scopes, or None.

        Returns:
            The persisted OAuthToken row.
        """
        fields = self._encrypted_fields(
            user_id, provider, access_token, refresh_token, expires_in, scopes
        )
        row = self._query(user_id, provider).first()
        if row is None:
            row = OAuthToken(
                user_id=user_id,
                provider=provider,
                created_at=utc_now_iso(),
                **fields,
            )
            self._db.add(row)
        else:
            for name, value in fields.items():
                setattr(row, name, value)

        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            raise

        logger.info("Stored %s credential for user %s", provider, user_id)
        return row

    def get(self, user_id: str, provider: str) -> OAuthToken | None:
        """Return the stored (still encrypted) record, or None."""
        return self._query(user_id, provider).first()

    def has_valid(self, user_id: str, provider: str) -> bool:
        """True when a record exists. Expiry is not considered."""
        return self.get(user_id, provider) is not None

    def delete(self, user_id: str, provider: str) -> None:
        """Remove the credential. Removing an absent one is a no-op."""
        deleted = self._query(user_id, provider).delete(synchronize_session="fetch")
        self._db.commit()
        if deleted:
            logger.info("Deleted %s credential for user %s", provider, user_id)

    def decrypt_access_token(self, record: OAuthToken) -> str:
        """Decrypt the access token of a record.

        Raises:
            InvalidCiphertextError: If authentication fails.
        """
        return decrypt_token(
            record.access_token_encrypted,
            self._key,
            aad=_aad(record.provider, record.user_id, "access"),
        )

    def decrypt_refresh_token(self, record: OAuthToken) -> str:
        return decrypt_token(
            record.refresh_token_encrypted,
            self._key,
            aad=_aad(record.provider, record.user_id, "refresh"),
        )

    def scopes(self, record: OAuthToken) -> list[str] | None:
        if not record.scopes_json:
            return None
        try:
            value = json.loads(record.scopes_json)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Corrupt scopes_json for %s credential", record.provider)
            return None
        return value if isinstance(value, list) else None

    def needs_refresh(self, record: OAuthToken) -> bool:
        """True when the access token expires within REFRESH_BUFFER."""
        return _parse_expiry(record.expires_at) - self._clock() < REFRESH_BUFFER

    async def get_valid_access_token(
        self,
        user_id: str,
        provider: str,
        refresh: RefreshFn,
    ) -> str:
        """Return a usable access token, refreshing it first if needed.

        Args:
            user_id: Internal user id.
            provider: Provider identifier.
            refresh: Provider refresh callback taking the plaintext refresh
                token and returning the new TokenSet.

        Returns:
            Plaintext access token.

        Raises:
            NotConnectedError: If no credential is stored.
            InvalidCiphertextError: If the stored ciphertext is unusable.
            RefreshFailedError: Propagated from the refresh callback.
        """
        record = self.get(user_id, provider)
        if record is None:
            raise NotConnectedError(provider)
        if not self.needs_refresh(record):
            return self.decrypt_access_token(record)

        async with self._locks.lock_for(user_id, provider):
            # Another task may have refreshed while we waited for the lock.
            record = self._query(user_id, provider).populate_existing().first()
            if record is None:
                raise NotConnectedError(provider)
            if not self.needs_refresh(record):
                return self.decrypt_access_token(record)

            observed_expiry = record.expires_at
            prior_scopes = self.scopes(record)
            tokens = await refresh(self.decrypt_refresh_token(record))

            if self._swap(user_id, provider, observed_expiry, tokens, prior_scopes):
                logger.info("Refreshed %s credential for user %s", provider, user_id)
                return tokens.access_token

            logger.info(
                "Concurrent %s refresh won for user %s; using stored token",
                provider, user_id,
            )
            winner = self._query(user_id, provider).populate_existing().first()
            if winner is None:
                raise NotConnectedError(provider)
            return self.decrypt_access_token(winner)

    def _swap(
        self,
        user_id: str,
        provider: str,
        observed_expiry: str,
        tokens: TokenSet,
        prior_scopes: list[str] | None,
    ) -> bool:
        """Persist a refreshed token set only if the row is unchanged.

        Returns:
            True if this call's token set was written.
        """
        fields = self._encrypted_fields(
            user_id,
            provider,
            tokens.access_token,
            tokens.refresh_token,
            tokens.expires_in,
            tokens.scopes or prior_scopes,
        )
        result = self._db.execute(
            update(OAuthToken)
            .where(
                OAuthToken.user_id == user_id,
                OAuthToken.provider == provider,
                OAuthToken.expires_at == observed_expiry,
            )
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        self._db.commit()
        return result.rowcount == 1
