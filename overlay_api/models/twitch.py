"""Typed views of the Helix payloads the relay consumes.

Each record keeps only the fields the aggregator reads.  Parsing happens
once, in the API client, so optional or missing remote keys never travel
further than ``from_payload``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


@dataclass(frozen=True)
class TwitchUser:
    id: str
    login: str
    display_name: str
    profile_image_url: str

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> TwitchUser:
        return cls(
            id=_str(data, "id"),
            login=_str(data, "login"),
            display_name=_str(data, "display_name"),
            profile_image_url=_str(data, "profile_image_url"),
        )


@dataclass(frozen=True)
class TwitchStream:
    """An active broadcast. ``type`` is ``"live"`` or empty on error."""

    user_id: str
    game_name: str
    title: str
    type: str
    viewer_count: int

    @property
    def is_live(self) -> bool:
        return self.type == "live"

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> TwitchStream:
        return cls(
            user_id=_str(data, "user_id"),
            game_name=_str(data, "game_name"),
            title=_str(data, "title"),
            type=_str(data, "type"),
            viewer_count=int(data.get("viewer_count") or 0),
        )


@dataclass(frozen=True)
class TwitchChannel:
    """Channel metadata, kept by Twitch while the channel is offline."""

    broadcaster_id: str
    game_name: str
    title: str

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> TwitchChannel:
        return cls(
            broadcaster_id=_str(data, "broadcaster_id"),
            game_name=_str(data, "game_name"),
            title=_str(data, "title"),
        )


@dataclass(frozen=True)
class TwitchSearchResult:
    id: str
    broadcaster_login: str
    display_name: str
    game_name: str
    thumbnail_url: str
    is_live: bool

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> TwitchSearchResult:
        return cls(
            id=_str(data, "id"),
            broadcaster_login=_str(data, "broadcaster_login"),
            display_name=_str(data, "display_name"),
            game_name=_str(data, "game_name"),
            thumbnail_url=_str(data, "thumbnail_url"),
            is_live=bool(data.get("is_live", False)),
        )


@dataclass(frozen=True)
class TwitchFollowedStream:
    user_id: str
    user_login: str
    user_name: str
    game_name: str
    title: str
    viewer_count: int

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> TwitchFollowedStream:
        return cls(
            user_id=_str(data, "user_id"),
            user_login=_str(data, "user_login"),
            user_name=_str(data, "user_name"),
            game_name=_str(data, "game_name"),
            title=_str(data, "title"),
            viewer_count=int(data.get("viewer_count") or 0),
        )
