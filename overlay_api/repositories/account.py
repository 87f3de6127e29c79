"""Repository for the auth layer's ``account`` table.

The table belongs to the session/auth service; this module only reads the
Twitch link of a user and writes back rotated token pairs.
"""

from __future__ import annotations

import logging
from typing import Protocol

import asyncpg

from overlay_api.cache import AsyncTTLCache, cached
from overlay_api.core.errors import AccountStoreError
from overlay_api.models.credentials import LinkedAccount, UserCredential

logger = logging.getLogger(__name__)

PROVIDER_ID = "twitch"

# Connection loss, timeouts and server-side failures
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError)

# Short TTL: linking happens outside this service and is not signalled here
_linked_account_cache = AsyncTTLCache(maxsize=512, ttl=60)


class AccountStore(Protocol):
    """What the user token refresh protocol needs from account storage."""

    async def find_credential(self, account_id: str) -> UserCredential | None: ...

    async def update_credential(self, credential: UserCredential) -> None: ...


class AccountRepository:
    """Pure SQL operations on linked Twitch accounts."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @cached(
        cache=_linked_account_cache,
        key_func=lambda self, user_id: f"linked:{user_id}",
    )
    async def find_linked_account(self, user_id: str) -> LinkedAccount | None:
        """Get the Twitch account linked to an internal user id."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                'SELECT "userId", "accountId", "accessToken" '
                'FROM account WHERE "userId" = $1 AND "providerId" = $2 LIMIT 1',
                user_id,
                PROVIDER_ID,
            )
            if not row:
                return None
            return LinkedAccount(
                user_id=row["userId"],
                account_id=row["accountId"],
                access_token=row["accessToken"],
            )

    async def find_credential(self, account_id: str) -> UserCredential | None:
        """Get the stored token pair for a Twitch account id.

        Never cached: a refresh must use the newest stored refresh token.
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    'SELECT "userId", "accessToken", "refreshToken", "accessTokenExpiresAt" '
                    'FROM account WHERE "accountId" = $1 AND "providerId" = $2 LIMIT 1',
                    account_id,
                    PROVIDER_ID,
                )
        except STORE_ERRORS as e:
            logger.error(f"Failed to read credential for Twitch account {account_id}: {e}")
            raise AccountStoreError() from e

        if not row:
            return None
        return UserCredential(
            account_id=account_id,
            access_token=row["accessToken"] or "",
            refresh_token=row["refreshToken"],
            expires_at=row["accessTokenExpiresAt"],
        )

    async def update_credential(self, credential: UserCredential) -> None:
        """Replace the access/refresh pair and expiry in one statement."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    UPDATE account SET
                        "accessToken"          = $1,
                        "refreshToken"         = $2,
                        "accessTokenExpiresAt" = $3,
                        "updatedAt"            = NOW()
                    WHERE "accountId" = $4 AND "providerId" = $5
                    RETURNING "userId"
                    """,
                    credential.access_token,
                    credential.refresh_token,
                    credential.expires_at,
                    credential.account_id,
                    PROVIDER_ID,
                )
        except STORE_ERRORS as e:
            logger.error(
                f"Failed to store refreshed tokens for Twitch account {credential.account_id}: {e}"
            )
            raise AccountStoreError() from e

        if not rows:
            logger.warning(f"No account row updated for Twitch account {credential.account_id}")
        for row in rows:
            _linked_account_cache.invalidate(f"linked:{row['userId']}")
        logger.debug(f"Stored refreshed token pair for Twitch account {credential.account_id}")
