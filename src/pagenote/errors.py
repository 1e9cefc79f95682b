"""Typed exception hierarchy for pagenote.

Persistence failures share a single base class so callers can treat every
backend problem uniformly: log it, tell the user, and move on.
"""

from __future__ import annotations

from typing import Optional


class PagenoteError(Exception):
    """Base exception for all pagenote errors."""


class ConfigurationError(PagenoteError):
    """Raised when configuration cannot be resolved or is invalid."""


class PersistenceError(PagenoteError):
    """Raised when a call to the hosted page store fails."""

    def __init__(self, operation: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"{operation} failed")
        self.operation = operation


class BackendUnreachableError(PersistenceError):
    """Raised on transport failures and timeouts."""

    def __init__(self, operation: str, endpoint: str) -> None:
        super().__init__(operation, f"{operation} failed: backend is not reachable at {endpoint}")
        self.endpoint = endpoint


class AuthorizationError(PersistenceError):
    """Raised when the backend rejects the session (401/403)."""

    def __init__(self, operation: str, status_code: int) -> None:
        super().__init__(operation, f"{operation} failed: not authorized (HTTP {status_code})")
        self.status_code = status_code


class PageNotFoundError(PersistenceError):
    """Raised when a requested page does not exist."""

    def __init__(self, page_id: str, operation: str = "get_page") -> None:
        super().__init__(operation, f"Page {page_id} not found")
        self.page_id = page_id


class AuthenticationError(PagenoteError):
    """Raised when sign-in or sign-up is rejected."""


class NotSignedInError(PagenoteError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self) -> None:
        super().__init__("Not signed in")


class InvalidParentError(PagenoteError):
    """Raised when a page would be attached to a parent that does not exist."""

    def __init__(self, parent_id: str) -> None:
        super().__init__(f"Parent page {parent_id} does not exist")
        self.parent_id = parent_id


class PageCycleError(PagenoteError):
    """Raised when reparenting would place a page under itself or a descendant."""

    def __init__(self, page_id: str, parent_id: str) -> None:
        super().__init__(f"Cannot move page {page_id} under {parent_id}: it would create a cycle")
        self.page_id = page_id
        self.parent_id = parent_id
