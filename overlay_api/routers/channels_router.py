"""Channel, search and followed-stream API routes"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from overlay_api.core.dependencies import (
    get_account_repository,
    get_aggregator,
    get_current_user_id,
    get_user_aggregator,
)
from overlay_api.models import Streamer
from overlay_api.repositories import AccountRepository
from overlay_api.services import StreamerAggregator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["channels"])


# ============================================
# Response Models
# ============================================


class StreamerInfo(BaseModel):
    """Streamer as the overlay client expects it (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    channel_id: str
    display_name: str
    login_name: str
    profile_image_url: str
    title: str
    game_name: str
    viewers: int = 0
    is_live: bool = False

    @classmethod
    def from_streamer(cls, streamer: Streamer) -> "StreamerInfo":
        return cls(**asdict(streamer))


class ChannelResponse(BaseModel):
    streamer: StreamerInfo


class SearchResponse(BaseModel):
    streamers: list[StreamerInfo]


class FollowedStreamsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    followed_streams: list[StreamerInfo]


# ============================================
# Endpoints
# ============================================


@router.get("/channels/followed", response_model=FollowedStreamsResponse)
async def get_followed_channels(
    user_id: str = Depends(get_current_user_id),
    accounts: AccountRepository = Depends(get_account_repository),
    aggregator: StreamerAggregator = Depends(get_user_aggregator),
) -> FollowedStreamsResponse:
    """Live channels the signed-in user follows on Twitch.

    The stored user token is refreshed transparently if Twitch rejects it.
    """
    account = await accounts.find_linked_account(user_id)
    if account is None or not account.access_token or not account.account_id:
        logger.warning(f"No linked Twitch account for user {user_id}")
        raise HTTPException(status_code=404, detail="User Twitch account not found")

    streamers = await aggregator.get_followed_streams(account.account_id, account.access_token)
    logger.debug(f"Returning {len(streamers)} followed streams for user {user_id}")
    return FollowedStreamsResponse(
        followed_streams=[StreamerInfo.from_streamer(s) for s in streamers]
    )


@router.get("/channels/{name}", response_model=ChannelResponse)
async def get_channel(
    name: str,
    aggregator: StreamerAggregator = Depends(get_aggregator),
) -> ChannelResponse:
    """A single channel by login name, live or offline"""
    streamer = await aggregator.get_channel_for_app(name)
    return ChannelResponse(streamer=StreamerInfo.from_streamer(streamer))


@router.get("/streams/{name}", response_model=SearchResponse)
async def search_streams(
    name: str,
    aggregator: StreamerAggregator = Depends(get_aggregator),
) -> SearchResponse:
    """Live channels matching *name*, most-watched first"""
    streamers = await aggregator.search_channels_for_app(name)
    return SearchResponse(streamers=[StreamerInfo.from_streamer(s) for s in streamers])
