"""Streamer aggregation over the Twitch read endpoints.

Combines users, streams, channel metadata, search results and followed
streams into the single ``Streamer`` shape the overlay client renders.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from overlay_api.core.errors import AuthorizationError, NotFound, UpstreamError
from overlay_api.models.streamer import Streamer
from overlay_api.models.twitch import (
    TwitchFollowedStream,
    TwitchSearchResult,
    TwitchStream,
)
from overlay_api.services.app_token import AppTokenCache
from overlay_api.services.twitch_api import TwitchAPIClient
from overlay_api.services.user_tokens import UserTokenRefresher

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StreamerAggregator:
    """Builds Streamer records from one or more Twitch calls."""

    def __init__(
        self,
        twitch_api: TwitchAPIClient,
        app_tokens: AppTokenCache,
        refresher: UserTokenRefresher | None = None,
    ):
        self.twitch_api = twitch_api
        self.app_tokens = app_tokens
        self.refresher = refresher

    # ==================== Channel ====================

    async def get_channel(self, login_name: str, app_token: str) -> Streamer:
        """Resolve one channel by login name.

        Live stream data wins over channel metadata: it is the only source
        of the viewer count.
        """
        user = await self.twitch_api.fetch_user(login_name, app_token)
        if user is None:
            raise NotFound("Channel not found")

        stream = await self.twitch_api.fetch_stream(user.id, app_token)
        if stream is not None:
            return Streamer(
                channel_id=user.id,
                display_name=user.display_name,
                login_name=user.login,
                profile_image_url=user.profile_image_url,
                title=stream.title,
                game_name=stream.game_name,
                viewers=stream.viewer_count,
                is_live=stream.is_live,
            )

        channel = await self.twitch_api.fetch_channel(user.id, app_token)
        if channel is None:
            raise NotFound("Channel not found")

        return Streamer(
            channel_id=user.id,
            display_name=user.display_name,
            login_name=user.login,
            profile_image_url=user.profile_image_url,
            title=channel.title,
            game_name=channel.game_name,
            viewers=0,
            is_live=False,
        )

    # ==================== Search ====================

    async def search_channels(self, query: str, app_token: str) -> list[Streamer]:
        """Search live channels, most-watched first."""
        results = await self.twitch_api.search_channels(query, app_token)
        if not results:
            return []

        streams = await asyncio.gather(
            *(self.twitch_api.fetch_stream(r.id, app_token) for r in results)
        )

        streamers = [
            self._search_streamer(result, stream)
            for result, stream in zip(results, streams, strict=True)
        ]
        streamers.sort(key=lambda s: s.viewers, reverse=True)
        logger.debug(f"Search '{query}' returned {len(streamers)} channels")
        return streamers

    @staticmethod
    def _search_streamer(result: TwitchSearchResult, stream: TwitchStream | None) -> Streamer:
        # live_only=true should always yield a stream, but Twitch does not
        # guarantee it; keep the result with zero viewers instead of dropping it
        return Streamer(
            channel_id=result.id,
            display_name=result.display_name,
            login_name=result.broadcaster_login,
            profile_image_url=result.thumbnail_url,
            title=stream.title if stream else "",
            game_name=result.game_name,
            viewers=stream.viewer_count if stream else 0,
            is_live=result.is_live,
        )

    # ==================== Followed streams ====================

    async def get_followed_streams(self, account_id: str, user_token: str) -> list[Streamer]:
        """Live channels followed by the user, with avatars.

        The followed-streams call goes through the refresh protocol; the
        profile lookups reuse whichever access token succeeded.
        """
        if self.refresher is None:
            raise RuntimeError("Followed streams need an aggregator with a UserTokenRefresher")
        call = await self.refresher.call_with_refresh(
            account_id,
            user_token,
            lambda token: self.twitch_api.fetch_followed_streams(account_id, token),
        )
        followed = call.value
        if not followed:
            return []

        try:
            users = await asyncio.gather(
                *(self.twitch_api.fetch_user(s.user_login, call.access_token) for s in followed)
            )
        except AuthorizationError as e:
            raise UpstreamError("Profile lookup rejected the user token", status=401) from e

        return [
            self._followed_streamer(stream, user.profile_image_url if user else "")
            for stream, user in zip(followed, users, strict=True)
        ]

    @staticmethod
    def _followed_streamer(stream: TwitchFollowedStream, profile_image_url: str) -> Streamer:
        return Streamer(
            channel_id=stream.user_id,
            display_name=stream.user_name,
            login_name=stream.user_login,
            profile_image_url=profile_image_url,
            title=stream.title,
            game_name=stream.game_name,
            viewers=stream.viewer_count,
            is_live=True,
        )

    # ==================== App-token entry points ====================

    async def get_channel_for_app(self, login_name: str) -> Streamer:
        """get_channel with the cached app token."""
        return await self._with_app_token(lambda token: self.get_channel(login_name, token))

    async def search_channels_for_app(self, query: str) -> list[Streamer]:
        """search_channels with the cached app token."""
        return await self._with_app_token(lambda token: self.search_channels(query, token))

    async def _with_app_token(self, operation: Callable[[str], Awaitable[T]]) -> T:
        credential = await self.app_tokens.get_app_token()
        try:
            return await operation(credential.access_token)
        except AuthorizationError:
            # Revoked before its expiry; fetch a new app token once
            logger.warning("App access token rejected by Twitch, fetching a new one")
            self.app_tokens.invalidate(credential)

        credential = await self.app_tokens.get_app_token()
        try:
            return await operation(credential.access_token)
        except AuthorizationError as e:
            raise UpstreamError("App access token rejected after refresh", status=401) from e
