"""Client for the hosted auth provider (GoTrue dialect)."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from pagenote.errors import AuthenticationError, BackendUnreachableError

from .models import AuthSession

logger = logging.getLogger(__name__)


class AuthClient:
    """Password sign-in, sign-up and sign-out against the auth endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        api_root = base_url.rstrip("/") + "/auth/v1/"
        self._anon_key = anon_key
        self._client = httpx.Client(
            base_url=api_root,
            timeout=timeout,
            transport=transport,
            headers={"apikey": anon_key},
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AuthClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _post(self, operation: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self._client.post(url, **kwargs)
        except httpx.TransportError as exc:
            raise BackendUnreachableError(operation, str(self._client.base_url)) from exc

    def sign_in(self, email: str, password: str) -> AuthSession:
        response = self._post(
            "sign_in",
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.is_error:
            raise AuthenticationError(_error_message(response, "Invalid email or password"))
        session = AuthSession.from_payload(response.json())
        logger.info("Signed in as %s", session.user.email)
        return session

    def sign_up(self, email: str, password: str) -> Optional[AuthSession]:
        """Register a new account.

        Returns ``None`` when the provider requires email confirmation before
        issuing a session.
        """

        response = self._post("sign_up", "signup", json={"email": email, "password": password})
        if response.is_error:
            raise AuthenticationError(_error_message(response, "Sign-up was rejected"))
        data = response.json()
        if "access_token" not in data:
            logger.info("Sign-up for %s awaits email confirmation", email)
            return None
        return AuthSession.from_payload(data)

    def sign_out(self, session: AuthSession) -> None:
        response = self._post(
            "sign_out",
            "logout",
            headers={"Authorization": f"Bearer {session.access_token}"},
        )
        if response.is_error:
            # The token may already be expired; the local session is dropped anyway.
            logger.warning("Sign-out returned HTTP %s", response.status_code)


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return fallback
    if not isinstance(data, dict):
        return fallback
    return data.get("error_description") or data.get("msg") or data.get("message") or fallback
