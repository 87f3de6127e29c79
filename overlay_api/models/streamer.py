"""Unified channel record returned to the overlay client."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Streamer:
    """A channel's identity plus its current or last-known live status.

    ``viewers=0`` and ``is_live=False`` describe a channel with no active
    stream.
    """

    channel_id: str
    display_name: str
    login_name: str
    profile_image_url: str
    title: str
    game_name: str
    viewers: int = 0
    is_live: bool = False
