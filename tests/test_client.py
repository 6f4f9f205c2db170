"""Tests for the Notion client against a mocked transport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from curriculum_export.config import NotionConfig
from curriculum_export.core.errors import NotionAPIError, RateLimitedError
from curriculum_export.fetch.client import NotionClient


def _client(handler) -> NotionClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NotionClient("secret-token", NotionConfig(page_size=2), http_client=http)


async def _call(client: NotionClient, coro_factory):
    try:
        return await coro_factory(client)
    finally:
        await client._http.aclose()  # noqa: SLF001


def test_query_database_follows_pagination_and_sends_sort():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/v1/databases/db-1/query"
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.headers["Notion-Version"] == "2022-06-28"
        body = json.loads(request.content)
        bodies.append(body)
        if "start_cursor" not in body:
            return httpx.Response(
                200, json={"results": [{"id": "a"}, {"id": "b"}], "has_more": True, "next_cursor": "c1"}
            )
        return httpx.Response(200, json={"results": [{"id": "c"}], "has_more": False, "next_cursor": None})

    pages = asyncio.run(_call(_client(handler), lambda c: c.query_database("db-1")))

    assert [p["id"] for p in pages] == ["a", "b", "c"]
    assert bodies[0]["sorts"] == [{"property": "Unit", "direction": "ascending"}]
    assert bodies[0]["page_size"] == 2
    assert bodies[1]["start_cursor"] == "c1"


def test_list_block_children_paginates_with_query_params():
    seen_cursors: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/v1/blocks/page-1/children"
        cursor = request.url.params.get("start_cursor")
        seen_cursors.append(cursor)
        if cursor is None:
            return httpx.Response(200, json={"results": [{"id": "b1"}], "has_more": True, "next_cursor": "n"})
        return httpx.Response(200, json={"results": [{"id": "b2"}], "has_more": False})

    blocks = asyncio.run(_call(_client(handler), lambda c: c.list_block_children("page-1")))

    assert [b["id"] for b in blocks] == ["b1", "b2"]
    assert seen_cursors == [None, "n"]


def test_list_child_pages_filters_block_types():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": "p1", "type": "paragraph"},
                    {"id": "s1", "type": "child_page"},
                    {"id": "s2", "type": "child_page"},
                ],
                "has_more": False,
            },
        )

    pages = asyncio.run(_call(_client(handler), lambda c: c.list_child_pages("page-1")))

    assert [p["id"] for p in pages] == ["s1", "s2"]


def test_429_raises_rate_limited_with_retry_after():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            headers={"Retry-After": "7"},
            json={"object": "error", "code": "rate_limited", "message": "Slow down"},
        )

    with pytest.raises(RateLimitedError) as excinfo:
        asyncio.run(_call(_client(handler), lambda c: c.list_block_children("x")))

    assert excinfo.value.retry_after == "7"


def test_rate_limited_code_without_header():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "rate_limited", "message": "quota"})

    with pytest.raises(RateLimitedError) as excinfo:
        asyncio.run(_call(_client(handler), lambda c: c.list_block_children("x")))

    assert excinfo.value.retry_after is None


def test_other_errors_raise_notion_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"code": "object_not_found", "message": "Missing"})

    with pytest.raises(NotionAPIError) as excinfo:
        asyncio.run(_call(_client(handler), lambda c: c.query_database("nope")))

    assert excinfo.value.status_code == 404
    assert excinfo.value.code == "object_not_found"


def test_non_json_error_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    with pytest.raises(NotionAPIError) as excinfo:
        asyncio.run(_call(_client(handler), lambda c: c.list_block_children("x")))

    assert excinfo.value.code is None
    assert "bad gateway" in excinfo.value.message
