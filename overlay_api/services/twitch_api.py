"""Twitch API client service.

Token types:
- App Access Token: for public endpoints (users, streams, channels, search).
  Fetched through ``request_app_token`` and cached by ``AppTokenCache``.
- User Access Token: for ``streams/followed``. Issued by the auth layer,
  stored in the account store, refreshed by ``UserTokenRefresher``.

Every call performs exactly one HTTP request. Non-success responses raise
typed errors; nothing is retried here.
"""

import logging
from typing import Any

import httpx

from overlay_api.core.errors import (
    AuthorizationError,
    InvalidRefreshToken,
    UpstreamError,
)
from overlay_api.models.credentials import TokenGrant
from overlay_api.models.twitch import (
    TwitchChannel,
    TwitchFollowedStream,
    TwitchSearchResult,
    TwitchStream,
    TwitchUser,
)

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"

SEARCH_LIMIT = 10


class TwitchAPIClient:
    """Client for the Helix read endpoints and the OAuth token endpoint.

    Manages a shared httpx client for connection reuse.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret

        # Shared HTTP client, reuses TCP connections across requests
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    async def _helix_get(self, path: str, params: dict[str, Any], token: str) -> list[dict]:
        """GET a Helix resource and return its ``data`` array."""
        try:
            response = await self._http.get(
                f"{HELIX_BASE}/{path}",
                params=params,
                headers=self._headers(token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Helix GET /{path} transport error: {type(e).__name__}: {e}")
            raise UpstreamError(f"Failed to reach Twitch ({path})") from e

        if response.status_code == 401:
            logger.warning(f"Helix GET /{path} rejected the access token (401)")
            raise AuthorizationError(f"Twitch rejected the access token ({path})")

        if not response.is_success:
            logger.error(f"Helix GET /{path} failed: {response.status_code}")
            raise UpstreamError(
                f"Failed to fetch {path}: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Helix GET /{path} returned a malformed body")
            raise UpstreamError(f"Malformed response from Twitch ({path})") from e

        if not isinstance(body, dict) or not isinstance(body.get("data") or [], list):
            logger.error(f"Helix GET /{path} returned an unexpected body shape")
            raise UpstreamError(f"Malformed response from Twitch ({path})")
        return list(body.get("data") or [])

    @staticmethod
    def _parse_grant(response: httpx.Response) -> TokenGrant:
        try:
            return TokenGrant.from_payload(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Token endpoint returned a response without an access_token")
            raise UpstreamError("Malformed token response from Twitch") from e

    async def _post_token(self, data: dict[str, str]) -> httpx.Response:
        try:
            return await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    **data,
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Token request transport error: {type(e).__name__}: {e}")
            raise UpstreamError("Failed to reach the Twitch token endpoint") from e

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def request_app_token(self) -> TokenGrant:
        """Fetch an app access token with the client-credentials grant."""
        response = await self._post_token({"grant_type": "client_credentials"})
        if not response.is_success:
            logger.error(f"Failed to get app token: {response.status_code}")
            raise UpstreamError(
                f"Failed to fetch Twitch token: {response.reason_phrase}",
                status=response.status_code,
            )
        return self._parse_grant(response)

    async def refresh_user_token(self, refresh_token: str) -> TokenGrant:
        """Exchange a user's refresh token for a new token pair.

        Twitch may rotate the refresh token; the caller stores both halves
        of the returned grant together.
        """
        response = await self._post_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

        if response.status_code == 400:
            logger.warning("Token refresh rejected: refresh token is invalid")
            raise InvalidRefreshToken()

        if not response.is_success:
            logger.error(f"Token refresh failed: {response.status_code}")
            raise UpstreamError(
                f"Failed to refresh Access Token: {response.status_code} "
                f"{response.reason_phrase}",
                status=response.status_code,
            )

        logger.debug("Successfully refreshed user access token")
        return self._parse_grant(response)

    # ------------------------------------------------------------------
    # Users, streams, channels
    # ------------------------------------------------------------------

    async def fetch_user(self, login_name: str, token: str) -> TwitchUser | None:
        """Look up a Twitch user by login name."""
        users = await self._helix_get("users", {"login": login_name}, token)
        if not users:
            logger.debug(f"No user found for login: {login_name}")
            return None
        return TwitchUser.from_payload(users[0])

    async def fetch_stream(self, user_id: str, token: str) -> TwitchStream | None:
        """Get the active stream of a user, or None when offline."""
        streams = await self._helix_get("streams", {"user_id": user_id}, token)
        return TwitchStream.from_payload(streams[0]) if streams else None

    async def fetch_channel(self, user_id: str, token: str) -> TwitchChannel | None:
        """Get channel metadata (title, last game), available while offline."""
        channels = await self._helix_get("channels", {"broadcaster_id": user_id}, token)
        return TwitchChannel.from_payload(channels[0]) if channels else None

    async def search_channels(self, query: str, token: str) -> list[TwitchSearchResult]:
        """Search live channels matching *query*."""
        results = await self._helix_get(
            "search/channels",
            {"query": query, "live_only": "true", "first": SEARCH_LIMIT},
            token,
        )
        return [TwitchSearchResult.from_payload(r) for r in results[:SEARCH_LIMIT]]

    async def fetch_followed_streams(
        self, account_id: str, token: str
    ) -> list[TwitchFollowedStream]:
        """Get live streams followed by *account_id* (requires that user's token).

        Raises AuthorizationError on 401 so the caller can refresh the token.
        """
        streams = await self._helix_get("streams/followed", {"user_id": account_id}, token)
        return [TwitchFollowedStream.from_payload(s) for s in streams]
