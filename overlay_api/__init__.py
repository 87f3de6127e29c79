"""Backend relay for the Twitch overlay app."""

__version__ = "1.0.0"
