"""Refresh-and-retry protocol for calls made with a user's access token."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Generic, TypeVar

from overlay_api.core.errors import (
    AuthorizationError,
    MissingRefreshToken,
    UpstreamError,
)
from overlay_api.repositories.account import AccountStore
from overlay_api.services.twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

# One call with the stored token, one with the refreshed token
MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class RefreshedCall(Generic[T]):
    """Result of a user-token call plus the access token that succeeded."""

    value: T
    access_token: str
    refreshed: bool = False


class UserTokenRefresher:
    """Run a user-token operation, refreshing the token once on a 401."""

    def __init__(
        self,
        twitch_api: TwitchAPIClient,
        accounts: AccountStore,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self._twitch_api = twitch_api
        self._accounts = accounts
        self._clock = clock

    async def call_with_refresh(
        self,
        account_id: str,
        access_token: str,
        operation: Callable[[str], Awaitable[T]],
    ) -> RefreshedCall[T]:
        """Call ``operation(access_token)``; on AuthorizationError refresh and retry once.

        Raises:
            MissingRefreshToken: no refresh token stored for the account.
            InvalidRefreshToken: Twitch refused the stored refresh token.
            AccountStoreError: the stored pair could not be read or written.
            UpstreamError: any other failure, including a second 401.
        """
        token = access_token
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                value = await operation(token)
            except AuthorizationError as e:
                if attempt == MAX_ATTEMPTS:
                    logger.error(
                        f"Twitch account {account_id} still unauthorized after token refresh"
                    )
                    raise UpstreamError(
                        "Access token rejected after refresh", status=401
                    ) from e
                logger.info(f"Access token rejected for Twitch account {account_id}, refreshing")
                token = await self._refresh(account_id)
                continue
            return RefreshedCall(value=value, access_token=token, refreshed=attempt > 1)

        raise AssertionError("unreachable")

    async def _refresh(self, account_id: str) -> str:
        """Exchange the stored refresh token and persist the new pair."""
        stored = await self._accounts.find_credential(account_id)
        if stored is None or not stored.refresh_token:
            logger.warning(f"No refresh token stored for Twitch account {account_id}")
            raise MissingRefreshToken()

        # InvalidRefreshToken and UpstreamError propagate unchanged
        grant = await self._twitch_api.refresh_user_token(stored.refresh_token)

        credential = stored.refreshed(grant, now=self._clock())
        await self._accounts.update_credential(credential)
        logger.info(f"Token refreshed for Twitch account {account_id}")
        return credential.access_token
