"""Typed models for pages and sessions exchanged with the hosted backend."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True, slots=True)
class Page:
    """A titled Markdown page, optionally nested under another page."""

    id: str
    user_id: str
    title: str
    content: Optional[str]
    parent_id: Optional[str]
    created_at: datetime

    @property
    def text(self) -> str:
        """Content with ``None`` normalised to an empty string."""

        return self.content or ""

    def with_updates(self, **changes: Any) -> "Page":
        return replace(self, **changes)

    @classmethod
    def from_row(cls, data: dict) -> "Page":
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            title=data["title"],
            content=data.get("content"),
            parent_id=_as_optional_str(data.get("parent_id")),
            created_at=_parse_timestamp(data["created_at"]),
        )


@dataclass(frozen=True, slots=True)
class User:
    """Signed-in user identity."""

    id: str
    email: str


@dataclass(frozen=True, slots=True)
class AuthSession:
    """Tokens issued by the auth provider for a signed-in user."""

    access_token: str
    user: User
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_payload(cls, data: dict) -> "AuthSession":
        user = data.get("user") or {}
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=data.get("expires_at"),
            user=User(id=str(user["id"]), email=user.get("email", "")),
        )

    def to_payload(self) -> dict[str, object]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user": {"id": self.user.id, "email": self.user.email},
        }
