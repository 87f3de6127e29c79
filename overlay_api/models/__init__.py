"""Data records shared by the services and routers."""

from .credentials import AppCredential, LinkedAccount, TokenGrant, UserCredential
from .streamer import Streamer
from .twitch import (
    TwitchChannel,
    TwitchFollowedStream,
    TwitchSearchResult,
    TwitchStream,
    TwitchUser,
)

__all__ = [
    "AppCredential",
    "LinkedAccount",
    "Streamer",
    "TokenGrant",
    "TwitchChannel",
    "TwitchFollowedStream",
    "TwitchSearchResult",
    "TwitchStream",
    "TwitchUser",
    "UserCredential",
]
