"""Process-wide cache for the Twitch app access token."""

import asyncio
import logging
import time
from collections.abc import Callable

from overlay_api.core.errors import UpstreamError
from overlay_api.models.credentials import AppCredential
from overlay_api.services.twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

EXPIRY_BUFFER = 60  # seconds
MAX_CACHE_DURATION = 24 * 60 * 60  # seconds


class AppTokenCache:
    """Lazily refreshed app credential with single-flight refresh.

    A credential is handed out only while more than ``expiry_buffer``
    seconds of validity remain.  Concurrent callers that find the cache
    empty or expiring share one in-flight token request; if it fails they
    all receive the same error and the next call starts a fresh request.
    """

    def __init__(
        self,
        twitch_api: TwitchAPIClient,
        *,
        expiry_buffer: float = EXPIRY_BUFFER,
        max_ttl: float = MAX_CACHE_DURATION,
        clock: Callable[[], float] = time.time,
    ):
        self._twitch_api = twitch_api
        self._expiry_buffer = expiry_buffer
        self._max_ttl = max_ttl
        self._clock = clock

        self._credential: AppCredential | None = None
        self._refresh_task: asyncio.Task[AppCredential] | None = None

    @property
    def credential(self) -> AppCredential | None:
        return self._credential

    async def get_app_token(self) -> AppCredential:
        """Return a valid app credential, fetching one if needed."""
        credential = self._credential
        if credential is not None and credential.is_usable(self._clock(), self._expiry_buffer):
            return credential

        # No await between the check and the assignment, so exactly one
        # caller creates the task and everyone else joins it.
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._refresh())

        # shield: one cancelled caller must not cancel the shared request
        return await asyncio.shield(self._refresh_task)

    def invalidate(self, credential: AppCredential | None = None) -> None:
        """Forget the cached credential, e.g. after Twitch rejected it.

        With *credential*, only that exact credential is dropped, so a
        request holding an old token cannot evict a newer one.
        """
        if self._credential is None:
            return
        if credential is not None and credential is not self._credential:
            return
        logger.info("App access token invalidated")
        self._credential = None

    async def _refresh(self) -> AppCredential:
        grant = await self._twitch_api.request_app_token()
        ttl = min(float(grant.expires_in), self._max_ttl)
        if ttl <= self._expiry_buffer:
            # Already inside the expiry buffer
            logger.error(f"App token issued with expires_in={grant.expires_in}s, not caching it")
            raise UpstreamError(
                f"Twitch issued an app token that expires in {grant.expires_in}s"
            )
        credential = AppCredential(
            access_token=grant.access_token,
            token_type=grant.token_type,
            issued_at=self._clock(),
            ttl_seconds=ttl,
        )
        self._credential = credential
        logger.info(f"App access token refreshed (cached for {int(ttl)}s)")
        return credential
