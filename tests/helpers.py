"""Test doubles and payload helpers shared across test modules."""

from collections.abc import Callable

import httpx

from overlay_api.models import UserCredential


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TwitchRecorder:
    """Mock Twitch upstream: routes requests to per-path handlers and records them."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def on(self, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[path] = handler

    def on_json(self, path: str, payload: dict, status: int = 200) -> None:
        self.routes[path] = lambda request: httpx.Response(status, json=payload)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"message": "no route in test"})
        return handler(request)


class InMemoryAccountStore:
    """Account store double keyed by Twitch account id."""

    def __init__(self, *credentials: UserCredential):
        self.credentials = {c.account_id: c for c in credentials}
        self.updates: list[UserCredential] = []
        self.events: list[str] = []

    async def find_credential(self, account_id: str) -> UserCredential | None:
        self.events.append(f"find:{account_id}")
        return self.credentials.get(account_id)

    async def update_credential(self, credential: UserCredential) -> None:
        self.events.append(f"update:{credential.account_id}")
        self.updates.append(credential)
        self.credentials[credential.account_id] = credential


def data(*records: dict) -> dict:
    """Helix ``{"data": [...]}`` envelope."""
    return {"data": list(records)}


def form(request: httpx.Request) -> dict[str, str]:
    """Decode a url-encoded request body."""
    return dict(httpx.QueryParams(request.content.decode()))


def user_payload(user_id: str, login: str, avatar: str = "") -> dict:
    return {
        "id": user_id,
        "login": login,
        "display_name": login.capitalize(),
        "profile_image_url": avatar or f"https://cdn.example/{login}.png",
        "broadcaster_type": "",
    }


def stream_payload(user_id: str, viewers: int, title: str = "", game: str = "Chess") -> dict:
    return {
        "id": f"s{user_id}",
        "user_id": user_id,
        "user_login": f"user{user_id}",
        "game_name": game,
        "type": "live",
        "title": title or f"stream of {user_id}",
        "viewer_count": viewers,
    }
