"""
Async Notion API client.

One instance is created per run and passed explicitly to every collaborator
that talks to Notion. Paginated endpoints are followed until exhausted.
Rate-limit responses surface as RateLimitedError so the scheduler can requeue
the affected items; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import NotionConfig
from ..core.errors import NotionAPIError, RateLimitedError


class NotionClient:
    """Thin async wrapper over the Notion REST endpoints used by the export.

    Attributes:
        base_url: API base URL without trailing slash
        page_size: Page size sent with paginated requests
    """

    def __init__(
        self,
        secret: str,
        cfg: NotionConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ):
        cfg = cfg or NotionConfig()
        self.base_url = cfg.api_base_url.rstrip("/")
        self.page_size = min(max(1, cfg.page_size), 100)
        self._headers = {
            "Authorization": f"Bearer {secret}",
            "Notion-Version": cfg.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(cfg.timeout_seconds, connect=10.0),
            trust_env=True,
        )
        self._logger = logger or logging.getLogger("curriculum_export")

    async def __aenter__(self) -> NotionClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def query_database(
        self,
        database_id: str,
        sort_property: str | None = "Unit",
    ) -> list[dict[str, Any]]:
        """Return every page in a database, sorted ascending by ``sort_property``."""
        body: dict[str, Any] = {"page_size": self.page_size}
        if sort_property:
            body["sorts"] = [{"property": sort_property, "direction": "ascending"}]

        results: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            payload = dict(body)
            if cursor:
                payload["start_cursor"] = cursor
            data = await self._request("POST", f"/databases/{database_id}/query", json=payload)
            results.extend(data.get("results", []))
            cursor = data.get("next_cursor") if data.get("has_more") else None
            if not cursor:
                return results

    async def list_block_children(self, block_id: str) -> list[dict[str, Any]]:
        """Return all direct children of a block or page."""
        results: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": self.page_size}
            if cursor:
                params["start_cursor"] = cursor
            data = await self._request("GET", f"/blocks/{block_id}/children", params=params)
            results.extend(data.get("results", []))
            cursor = data.get("next_cursor") if data.get("has_more") else None
            if not cursor:
                return results

    async def list_child_pages(self, page_id: str) -> list[dict[str, Any]]:
        """Return the sub-pages directly under a page, in document order."""
        children = await self.list_block_children(page_id)
        return [block for block in children if block.get("type") == "child_page"]

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        resp = await self._http.request(
            method,
            f"{self.base_url}{path}",
            json=json,
            params=params,
            headers=self._headers,
        )
        if resp.is_success:
            return resp.json()

        code, message = _error_details(resp)
        if resp.status_code == 429 or code == "rate_limited":
            raise RateLimitedError(
                message or "Rate limited",
                retry_after=resp.headers.get("retry-after"),
            )
        raise NotionAPIError(resp.status_code, code, message or resp.reason_phrase)


def _error_details(resp: httpx.Response) -> tuple[str | None, str]:
    try:
        data = resp.json()
    except ValueError:
        return None, resp.text[:200]
    if not isinstance(data, dict):
        return None, resp.text[:200]
    return data.get("code"), data.get("message", "")
