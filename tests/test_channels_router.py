"""Tests for the HTTP surface: routing, status mapping and response shape."""

import jwt
import pytest
from fastapi.testclient import TestClient

from overlay_api.app import create_app
from overlay_api.core.dependencies import (
    get_account_repository,
    get_aggregator,
    get_user_aggregator,
)
from overlay_api.core.errors import (
    AccountStoreError,
    AuthorizationError,
    InvalidRefreshToken,
    MissingRefreshToken,
    NotFound,
    UpstreamError,
)
from overlay_api.models import LinkedAccount, Streamer

SESSION_SECRET = "test-secret-key-for-testing-only"

ALICE = Streamer(
    channel_id="42",
    display_name="Alice",
    login_name="alice",
    profile_image_url="https://cdn.example/alice.png",
    title="Live title",
    game_name="Chess",
    viewers=120,
    is_live=True,
)


class FakeAggregator:
    """Stands in for StreamerAggregator; raises *error* when set."""

    def __init__(self, streamers=(ALICE,), error: Exception | None = None):
        self.streamers = list(streamers)
        self.error = error
        self.calls: list[tuple] = []

    def _result(self, name, *args):
        self.calls.append((name, *args))
        if self.error is not None:
            raise self.error
        return self.streamers

    async def get_channel_for_app(self, login_name):
        return self._result("channel", login_name)[0]

    async def search_channels_for_app(self, query):
        return self._result("search", query)

    async def get_followed_streams(self, account_id, access_token):
        return self._result("followed", account_id, access_token)


class FakeAccounts:
    def __init__(self, account: LinkedAccount | None):
        self.account = account

    async def find_linked_account(self, user_id):
        if self.account is None or self.account.user_id != user_id:
            return None
        return self.account


LINKED = LinkedAccount(user_id="user-1", account_id="99", access_token="access-1")


def session_token(sub: str = "user-1") -> str:
    return jwt.encode({"sub": sub}, SESSION_SECRET, algorithm="HS256")


@pytest.fixture
def app():
    app = create_app()
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    # No context manager: lifespan (database connect) is not run
    return TestClient(app, raise_server_exceptions=False)


def use(app, aggregator: FakeAggregator, account: LinkedAccount | None = LINKED):
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    app.dependency_overrides[get_user_aggregator] = lambda: aggregator
    app.dependency_overrides[get_account_repository] = lambda: FakeAccounts(account)


class TestChannel:
    def test_camel_case_body(self, app, client):
        use(app, FakeAggregator())

        response = client.get("/channels/alice")

        assert response.status_code == 200
        assert response.json() == {
            "streamer": {
                "channelId": "42",
                "displayName": "Alice",
                "loginName": "alice",
                "profileImageUrl": "https://cdn.example/alice.png",
                "title": "Live title",
                "gameName": "Chess",
                "viewers": 120,
                "isLive": True,
            }
        }

    def test_not_found(self, app, client):
        use(app, FakeAggregator(error=NotFound()))

        response = client.get("/channels/ghost")

        assert response.status_code == 404
        assert response.json() == {"message": "Channel not found"}

    def test_upstream_failure_is_500(self, app, client):
        use(app, FakeAggregator(error=UpstreamError("Twitch request failed", status=503)))

        response = client.get("/channels/alice")

        assert response.status_code == 500
        assert response.json() == {"message": "Twitch request failed"}

    def test_escaped_authorization_error_is_500(self, app, client):
        use(app, FakeAggregator(error=AuthorizationError()))

        assert client.get("/channels/alice").status_code == 500

    def test_unexpected_error_is_500(self, app, client):
        use(app, FakeAggregator(error=KeyError("boom")))

        response = client.get("/channels/alice")

        assert response.status_code == 500
        assert response.json() == {"message": "An unexpected error occurred"}


class TestSearch:
    def test_streamers_list(self, app, client):
        aggregator = FakeAggregator()
        use(app, aggregator)

        response = client.get("/streams/chess")

        assert response.status_code == 200
        body = response.json()
        assert [s["loginName"] for s in body["streamers"]] == ["alice"]
        assert aggregator.calls == [("search", "chess")]

    def test_empty(self, app, client):
        use(app, FakeAggregator(streamers=()))
        assert client.get("/streams/nothing").json() == {"streamers": []}


class TestFollowed:
    def test_requires_session(self, app, client):
        use(app, FakeAggregator())

        response = client.get("/channels/followed")

        assert response.status_code == 401
        assert response.json() == {"message": "Not logged in"}

    def test_rejects_bad_session(self, app, client):
        use(app, FakeAggregator())

        response = client.get(
            "/channels/followed", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401

    def test_bearer_session(self, app, client):
        aggregator = FakeAggregator()
        use(app, aggregator)

        response = client.get(
            "/channels/followed", headers={"Authorization": f"Bearer {session_token()}"}
        )

        assert response.status_code == 200
        assert [s["channelId"] for s in response.json()["followedStreams"]] == ["42"]
        assert aggregator.calls == [("followed", "99", "access-1")]

    def test_cookie_session(self, app, client):
        use(app, FakeAggregator())
        client.cookies.set("auth_token", session_token())

        assert client.get("/channels/followed").status_code == 200

    def test_unlinked_account(self, app, client):
        use(app, FakeAggregator(), account=None)

        response = client.get(
            "/channels/followed", headers={"Authorization": f"Bearer {session_token()}"}
        )

        assert response.status_code == 404
        assert response.json() == {"message": "User Twitch account not found"}

    def test_account_store_failure_is_500(self, app, client):
        use(app, FakeAggregator(error=AccountStoreError()))

        response = client.get(
            "/channels/followed", headers={"Authorization": f"Bearer {session_token()}"}
        )

        assert response.status_code == 500
        assert response.json() == {"message": "Account store unavailable"}

    @pytest.mark.parametrize("error", [InvalidRefreshToken(), MissingRefreshToken()])
    def test_reauthorization_needed(self, app, client, error):
        use(app, FakeAggregator(error=error))

        response = client.get(
            "/channels/followed", headers={"Authorization": f"Bearer {session_token()}"}
        )

        assert response.status_code == 400
        assert response.json() == {"message": "INVALID_TOKEN"}


class TestServiceRoutes:
    def test_unknown_route(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "Route Not Found"}

    def test_ping(self, client):
        assert client.get("/ping").text == "pong"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_cors_preflight_for_overlay_origin(self, client):
        response = client.options(
            "/channels/alice",
            headers={
                "Origin": "overwolf-extension://abcdef",
                "Access-Control-Request-Method": "GET",
            },
        )

        assert response.headers["access-control-allow-origin"] == "overwolf-extension://abcdef"
