"""Services layer - Twitch access, token handling and aggregation

Services are initialized with their dependencies and accessed through
dependency injection (see ``overlay_api.core.dependencies``).
"""

from .aggregator import StreamerAggregator
from .app_token import AppTokenCache
from .auth_service import AuthService
from .twitch_api import TwitchAPIClient
from .user_tokens import RefreshedCall, UserTokenRefresher

__all__ = [
    "AppTokenCache",
    "AuthService",
    "RefreshedCall",
    "StreamerAggregator",
    "TwitchAPIClient",
    "UserTokenRefresher",
]
