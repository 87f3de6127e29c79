"""Dependency injection utilities for FastAPI"""

import logging

import asyncpg
from fastapi import Cookie, Depends, Header, HTTPException

from overlay_api.core.config import get_settings
from overlay_api.core.database import get_database_manager
from overlay_api.repositories import AccountRepository
from overlay_api.services import (
    AppTokenCache,
    AuthService,
    StreamerAggregator,
    TwitchAPIClient,
    UserTokenRefresher,
)

logger = logging.getLogger(__name__)


# ============================================
# Process-wide singletons
# ============================================

_twitch_api: TwitchAPIClient | None = None
_app_tokens: AppTokenCache | None = None


def get_twitch_api() -> TwitchAPIClient:
    """Get shared TwitchAPIClient singleton (connection reuse)."""
    global _twitch_api
    if _twitch_api is None:
        settings = get_settings()
        _twitch_api = TwitchAPIClient(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            timeout=settings.http_timeout,
        )
    return _twitch_api


def get_app_token_cache() -> AppTokenCache:
    """Get the process-wide app token cache."""
    global _app_tokens
    if _app_tokens is None:
        settings = get_settings()
        _app_tokens = AppTokenCache(
            get_twitch_api(),
            expiry_buffer=settings.app_token_expiry_buffer,
            max_ttl=settings.app_token_max_ttl,
        )
    return _app_tokens


async def close_twitch_api() -> None:
    """Close the shared TwitchAPIClient. Call on app shutdown."""
    global _twitch_api, _app_tokens
    if _twitch_api is not None:
        await _twitch_api.close()
        _twitch_api = None
    _app_tokens = None


# ============================================
# Service Dependencies
# ============================================


def get_auth_service() -> AuthService:
    """Get AuthService instance (dependency injection)"""
    settings = get_settings()
    return AuthService(secret_key=settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def get_db_pool() -> asyncpg.Pool:
    try:
        db_manager = get_database_manager()
    except RuntimeError:
        raise HTTPException(status_code=503, detail="Database not ready") from None
    if not db_manager.is_connected:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager.pool


def get_account_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> AccountRepository:
    """Get AccountRepository instance (dependency injection)"""
    return AccountRepository(pool)


def get_aggregator() -> StreamerAggregator:
    """Aggregator for app-token endpoints (no account store needed)."""
    twitch_api = get_twitch_api()
    return StreamerAggregator(twitch_api, get_app_token_cache(), refresher=None)


def get_user_aggregator(
    accounts: AccountRepository = Depends(get_account_repository),
) -> StreamerAggregator:
    """Aggregator wired to the account store for user-token endpoints."""
    twitch_api = get_twitch_api()
    return StreamerAggregator(
        twitch_api,
        get_app_token_cache(),
        UserTokenRefresher(twitch_api, accounts),
    )


# ============================================
# Authentication Dependencies
# ============================================


def _extract_session_token(authorization: str | None, auth_token: str | None) -> str | None:
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials.strip()
    return auth_token


async def get_current_user_id(
    authorization: str | None = Header(None),
    auth_token: str | None = Cookie(None),
) -> str:
    """Return the signed-in user's internal id (session token ``sub``)"""
    token = _extract_session_token(authorization, auth_token)
    if not token:
        logger.warning("No session token provided")
        raise HTTPException(status_code=401, detail="Not logged in")

    payload = get_auth_service().verify_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return str(payload["sub"])
