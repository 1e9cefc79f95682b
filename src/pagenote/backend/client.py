"""HTTP client wrapper for the hosted page store (PostgREST dialect)."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from pagenote.errors import (
    AuthorizationError,
    BackendUnreachableError,
    PageNotFoundError,
    PersistenceError,
)

from .models import Page

logger = logging.getLogger(__name__)

PAGES_TABLE = "pages"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"


class PagesClient:
    """CRUD operations over the ``pages`` table of a single user."""

    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        access_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        api_root = base_url.rstrip("/") + "/rest/v1/"
        self._client = httpx.Client(
            base_url=api_root,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": anon_key,
                "Authorization": f"Bearer {access_token}",
            },
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PagesClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------
    def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        page_id: Optional[str] = None,
        **kwargs,
    ) -> object:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise _translate_status(operation, exc, page_id) from exc
        except httpx.TransportError as exc:
            raise BackendUnreachableError(operation, str(self._client.base_url)) from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PersistenceError(operation, f"{operation} failed: response is not valid JSON") from exc

    def _single_row(self, operation: str, page_id: str, data: object) -> Page:
        rows = data if isinstance(data, list) else [data]
        if not rows or rows[0] is None:
            raise PageNotFoundError(page_id, operation=operation)
        return _parse_row(operation, rows[0])

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list_pages(self, owner_id: str) -> list[Page]:
        params = {
            "select": "*",
            "user_id": f"eq.{owner_id}",
            "order": "created_at.desc",
        }
        data = self._request("list_pages", "GET", PAGES_TABLE, params=params) or []
        if not isinstance(data, list):
            raise PersistenceError("list_pages", "list_pages failed: expected a list of rows")
        pages = [_parse_row("list_pages", row) for row in data]
        logger.debug("Fetched %d pages for user %s", len(pages), owner_id)
        return pages

    def get_page(self, page_id: str) -> Page:
        params = {"select": "*", "id": f"eq.{page_id}"}
        data = self._request("get_page", "GET", PAGES_TABLE, params=params, page_id=page_id)
        return self._single_row("get_page", page_id, data)

    def create_page(
        self,
        *,
        owner_id: str,
        title: str,
        content: str = "",
        parent_id: Optional[str] = None,
    ) -> Page:
        payload = {
            "user_id": owner_id,
            "title": title,
            "content": content,
            "parent_id": parent_id,
        }
        data = self._request(
            "create_page",
            "POST",
            PAGES_TABLE,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        rows = data if isinstance(data, list) else [data]
        if not rows or rows[0] is None:
            raise PersistenceError("create_page", "create_page failed: backend returned no row")
        return _parse_row("create_page", rows[0])

    def update_page(
        self,
        page_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Page:
        payload: dict[str, object] = {}
        if title is not None:
            payload["title"] = title
        if content is not None:
            payload["content"] = content
        return self._patch("update_page", page_id, payload)

    def move_page(self, page_id: str, parent_id: Optional[str]) -> Page:
        return self._patch("move_page", page_id, {"parent_id": parent_id})

    def delete_page(self, page_id: str) -> None:
        self._request("delete_page", "DELETE", PAGES_TABLE, params={"id": f"eq.{page_id}"}, page_id=page_id)

    def _patch(self, operation: str, page_id: str, payload: dict[str, object]) -> Page:
        data = self._request(
            operation,
            "PATCH",
            PAGES_TABLE,
            params={"id": f"eq.{page_id}"},
            json=payload,
            page_id=page_id,
            headers={"Prefer": "return=representation"},
        )
        return self._single_row(operation, page_id, data)


def _parse_row(operation: str, row: object) -> Page:
    try:
        return Page.from_row(row)  # type: ignore[arg-type]
    except (KeyError, TypeError, ValueError) as exc:
        raise PersistenceError(operation, f"{operation} failed: malformed page row ({exc!r})") from exc


def _translate_status(
    operation: str,
    exc: httpx.HTTPStatusError,
    page_id: Optional[str] = None,
) -> PersistenceError:
    status = exc.response.status_code
    if status in (401, 403):
        return AuthorizationError(operation, status)
    if status == 404 and page_id is not None:
        return PageNotFoundError(page_id, operation=operation)
    return PersistenceError(operation, f"{operation} failed with HTTP {status}")
