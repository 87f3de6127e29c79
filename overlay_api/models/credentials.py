"""Credential records for the app token and linked user accounts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any


@dataclass(frozen=True)
class TokenGrant:
    """Parsed response of the Twitch token endpoint."""

    access_token: str
    expires_in: int
    token_type: str = "bearer"
    refresh_token: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> TokenGrant:
        return cls(
            access_token=data["access_token"],
            expires_in=int(data.get("expires_in") or 0),
            token_type=data.get("token_type") or "bearer",
            refresh_token=data.get("refresh_token") or None,
        )


@dataclass(frozen=True)
class AppCredential:
    """Application access token, replaced wholesale on refresh.

    ``issued_at`` is a clock reading in seconds and ``ttl_seconds`` is the
    already-capped lifetime the cache honours.
    """

    access_token: str
    token_type: str
    issued_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.ttl_seconds

    def is_usable(self, now: float, buffer: float) -> bool:
        """True while more than *buffer* seconds of validity remain."""
        return now < self.expires_at - buffer


@dataclass(frozen=True)
class UserCredential:
    """A user's Twitch token pair as held by the account store."""

    account_id: str
    access_token: str
    refresh_token: str | None
    expires_at: datetime | None = None

    def refreshed(self, grant: TokenGrant, now: datetime | None = None) -> UserCredential:
        """Build the replacement pair from a refresh grant.

        Twitch may omit ``refresh_token`` when it does not rotate it; the
        current one stays valid in that case.
        """
        now = now or datetime.now(UTC)
        return UserCredential(
            account_id=self.account_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token or self.refresh_token,
            expires_at=now + timedelta(seconds=grant.expires_in),
        )


@dataclass(frozen=True)
class LinkedAccount:
    """Twitch account linked to a signed-in user."""

    user_id: str
    account_id: str
    access_token: str | None
