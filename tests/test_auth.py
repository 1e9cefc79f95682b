"""Unit tests for the auth client and stored sessions."""

import json

import httpx
import pytest

from pagenote.backend.auth import AuthClient
from pagenote.backend.models import AuthSession, User
from pagenote.errors import AuthenticationError, BackendUnreachableError

TOKEN_PAYLOAD = {
    "access_token": "access",
    "refresh_token": "refresh",
    "expires_at": 1714560000,
    "user": {"id": "u1", "email": "ada@example.com"},
}


def build_client(handler):
    return AuthClient(
        base_url="https://project.example.co",
        anon_key="anon",
        transport=httpx.MockTransport(handler),
    )


class TestAuthClient:
    def test_sign_in_uses_password_grant(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=TOKEN_PAYLOAD)

        with build_client(handler) as client:
            session = client.sign_in("ada@example.com", "secret")

        request = seen["request"]
        assert request.url.path == "/auth/v1/token"
        assert request.url.params["grant_type"] == "password"
        assert request.headers["apikey"] == "anon"
        assert json.loads(request.content) == {"email": "ada@example.com", "password": "secret"}
        assert session.user == User(id="u1", email="ada@example.com")
        assert session.access_token == "access"

    def test_sign_in_rejected(self):
        def handler(request):
            return httpx.Response(400, json={"error_description": "Invalid login credentials"})

        with build_client(handler) as client:
            with pytest.raises(AuthenticationError, match="Invalid login credentials"):
                client.sign_in("ada@example.com", "wrong")

    def test_sign_in_unreachable(self):
        def handler(request):
            raise httpx.ConnectTimeout("timeout", request=request)

        with build_client(handler) as client:
            with pytest.raises(BackendUnreachableError):
                client.sign_in("ada@example.com", "secret")

    def test_sign_up_pending_confirmation(self):
        def handler(request):
            return httpx.Response(200, json={"id": "u1", "email": "ada@example.com"})

        with build_client(handler) as client:
            assert client.sign_up("ada@example.com", "secret") is None

    def test_sign_up_with_session(self):
        with build_client(lambda request: httpx.Response(200, json=TOKEN_PAYLOAD)) as client:
            session = client.sign_up("ada@example.com", "secret")

        assert session.user.id == "u1"

    def test_sign_out_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(204)

        session = AuthSession.from_payload(TOKEN_PAYLOAD)
        with build_client(handler) as client:
            client.sign_out(session)

        assert seen["request"].url.path == "/auth/v1/logout"
        assert seen["request"].headers["authorization"] == "Bearer access"

    def test_sign_out_tolerates_expired_token(self, caplog):
        session = AuthSession.from_payload(TOKEN_PAYLOAD)
        with build_client(lambda request: httpx.Response(401)) as client:
            with caplog.at_level("WARNING", logger="pagenote"):
                client.sign_out(session)

        assert "HTTP 401" in caplog.text


class TestAuthSession:
    def test_payload_round_trip(self):
        session = AuthSession.from_payload(TOKEN_PAYLOAD)

        assert AuthSession.from_payload(session.to_payload()) == session
