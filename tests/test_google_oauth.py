from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from chatline.api.v1.auth import get_google_oauth_client
from chatline.core.database import SessionLocal
from chatline.core.security import decode_identity
from chatline.models import User
from chatline.services.google_oauth import (
    GOOGLE_TOKEN_URL,
    GOOGLE_USERINFO_URL,
    GoogleOAuthClient,
    GoogleOAuthError,
    GoogleProfile,
)


class FakeGoogleClient:
    def __init__(self, profile=None, error=None):
        self.profile = profile
        self.error = error
        self.codes = []

    def authorization_url(self, state=None):
        return "https://accounts.google.com/o/oauth2/v2/auth?client_id=test"

    async def profile_from_code(self, code):
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        return self.profile


@pytest.fixture
def use_google(client):
    from main import app

    def _use_google(fake: FakeGoogleClient) -> FakeGoogleClient:
        app.dependency_overrides[get_google_oauth_client] = lambda: fake
        return fake

    return _use_google


def _callback(client, code="auth-code"):
    params = {"code": code} if code is not None else {}
    return client.get("/api/v1/auth/google/callback", params=params, follow_redirects=False)


def _redirect_query(response):
    location = urlparse(response.headers["location"])
    return location.path, {key: values[0] for key, values in parse_qs(location.query).items()}


def test_google_not_configured(client):
    response = client.get("/api/v1/auth/google")

    assert response.status_code == 503
    assert response.json()["detail"] == "Google sign-in is not configured"


def test_google_auth_url(client, use_google):
    use_google(FakeGoogleClient())

    response = client.get("/api/v1/auth/google")

    assert response.status_code == 200
    assert response.json()["url"].startswith("https://accounts.google.com/")


def test_callback_creates_google_user(client, use_google):
    fake = use_google(
        FakeGoogleClient(
            GoogleProfile(
                google_id="g-123",
                email="erin@example.com",
                name="Erin Gray",
                picture="https://lh3.example.com/erin.png",
            )
        )
    )

    response = _callback(client)

    assert response.status_code == 302
    path, params = _redirect_query(response)
    assert path == "/auth/callback"
    assert fake.codes == ["auth-code"]
    user_id, email = decode_identity(params["accessToken"])
    assert email == "erin@example.com"
    assert params["refreshToken"]

    with SessionLocal() as db:
        user = db.get(User, user_id)
        assert user.google_id == "g-123"
        assert user.auth_provider == "GOOGLE"
        assert user.username == "erin"
        assert user.display_name == "Erin Gray"
        assert user.password_hash is None
        assert user.status == "ONLINE"


def test_callback_links_existing_account(client, use_google, alice):
    use_google(FakeGoogleClient(GoogleProfile(google_id="g-alice", email=alice.email)))

    response = _callback(client)

    path, params = _redirect_query(response)
    assert path == "/auth/callback"
    user_id, _ = decode_identity(params["accessToken"])
    assert user_id == alice.id
    with SessionLocal() as db:
        assert db.query(User).count() == 1
        linked = db.get(User, alice.id)
        assert linked.google_id == "g-alice"
        assert linked.auth_provider == "GOOGLE"


def test_callback_refresh_token_works(client, use_google):
    use_google(FakeGoogleClient(GoogleProfile(google_id="g-9", email="finn@example.com")))

    _, params = _redirect_query(_callback(client))
    response = client.post("/api/v1/auth/refresh", json={"refreshToken": params["refreshToken"]})

    assert response.status_code == 200


def test_callback_without_code(client, use_google):
    use_google(FakeGoogleClient())

    path, params = _redirect_query(_callback(client, code=None))

    assert path == "/login"
    assert params == {"error": "missing_code"}


def test_callback_without_email(client, use_google):
    use_google(FakeGoogleClient(GoogleProfile(google_id="g-1", email=None)))

    path, params = _redirect_query(_callback(client))

    assert path == "/login"
    assert params == {"error": "no_email"}
    with SessionLocal() as db:
        assert db.query(User).count() == 0


def test_callback_exchange_failure(client, use_google):
    use_google(FakeGoogleClient(error=GoogleOAuthError("bad code")))

    path, params = _redirect_query(_callback(client))

    assert path == "/login"
    assert params == {"error": "oauth_failed"}


def _google_transport(token_status=200, userinfo=None):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if str(request.url) == GOOGLE_TOKEN_URL:
            if token_status != 200:
                return httpx.Response(token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "google-access", "token_type": "Bearer"})
        if str(request.url).startswith(GOOGLE_USERINFO_URL):
            return httpx.Response(200, json=userinfo or {})
        return httpx.Response(404)

    return httpx.MockTransport(handler), requests


def _oauth_client(transport):
    return GoogleOAuthClient(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:8000/api/v1/auth/google/callback",
        transport=transport,
    )


@pytest.mark.asyncio
async def test_client_exchanges_code_for_profile():
    transport, requests = _google_transport(
        userinfo={"id": "42", "email": "gia@example.com", "name": "Gia", "picture": "https://p/g.png"}
    )

    profile = await _oauth_client(transport).profile_from_code("the-code")

    assert profile == GoogleProfile(
        google_id="42", email="gia@example.com", name="Gia", picture="https://p/g.png"
    )
    token_request, userinfo_request = requests
    form = parse_qs(token_request.content.decode())
    assert form["code"] == ["the-code"]
    assert form["grant_type"] == ["authorization_code"]
    assert userinfo_request.headers["authorization"] == "Bearer google-access"


@pytest.mark.asyncio
async def test_client_rejected_code():
    transport, requests = _google_transport(token_status=400)

    with pytest.raises(GoogleOAuthError):
        await _oauth_client(transport).profile_from_code("expired")

    assert len(requests) == 1


def test_authorization_url_carries_client_and_scopes():
    url = _oauth_client(None).authorization_url(state="xyz")

    params = parse_qs(urlparse(url).query)
    assert params["client_id"] == ["client-id"]
    assert params["response_type"] == ["code"]
    assert params["state"] == ["xyz"]
    assert "https://www.googleapis.com/auth/userinfo.email" in params["scope"][0]
