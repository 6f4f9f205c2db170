"""Shared fakes for export tests."""

from __future__ import annotations

import asyncio
from collections import Counter
import copy
from typing import Any

import pytest

from curriculum_export.config import AppConfig
from curriculum_export.core.errors import NotionAPIError, RateLimitedError


def paragraph(text: str) -> dict[str, Any]:
    return {
        "id": f"p-{text}",
        "type": "paragraph",
        "has_children": False,
        "paragraph": {"rich_text": [{"type": "text", "plain_text": text}]},
    }


def make_page(
    page_id: str,
    name: str | None = "Lesson",
    unit: str | None = "01: Basics",
    chapter: str | None = "Intro",
    ft_id: str | None = "FT-001",
) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "Content Type": {"select": {"name": "Lesson", "color": "blue"}},
        "ID PT": {"formula": {"string": "N/A"}},
    }
    if name is not None:
        properties["Name"] = {"title": [{"plain_text": name}]}
    if unit is not None:
        properties["Unit"] = {"select": {"name": unit, "color": "green"}}
    if chapter is not None:
        properties["Chapter"] = {"select": {"name": chapter, "color": "red"}}
    if ft_id is not None:
        properties["ID FT"] = {"formula": {"string": ft_id}}
    return {"id": page_id, "icon": {"type": "emoji", "emoji": "📘"}, "properties": properties}


class FakeNotion:
    """In-memory stand-in for NotionClient.

    Every block id renders as one paragraph unless ``blocks`` says otherwise.
    Ids in ``rate_limit_once`` fail with RateLimitedError on first access,
    ids in ``rate_limit_always`` on every access. Ids in ``broken`` always
    fail with NotionAPIError. ``child_page_errors`` maps a page id to errors
    raised, one per call, by ``list_child_pages`` before it succeeds.
    """

    def __init__(
        self,
        pages: list[dict[str, Any]],
        blocks: dict[str, list[dict[str, Any]]] | None = None,
        child_pages: dict[str, list[dict[str, Any]]] | None = None,
        rate_limit_once: set[str] | None = None,
        retry_after: str | None = "2",
        broken: set[str] | None = None,
        rate_limit_always: set[str] | None = None,
        child_page_errors: dict[str, list[Exception]] | None = None,
    ):
        self.pages = pages
        self.blocks = blocks or {}
        self.child_pages = child_pages or {}
        self.rate_limit_once = set(rate_limit_once or ())
        self.rate_limit_always = set(rate_limit_always or ())
        self.retry_after = retry_after
        self.broken = set(broken or ())
        self.child_page_errors = {k: list(v) for k, v in (child_page_errors or {}).items()}
        self.calls: Counter[str] = Counter()
        self.child_calls: Counter[str] = Counter()
        self.queries = 0

    async def query_database(self, database_id: str, sort_property: str | None = "Unit"):
        self.queries += 1
        return copy.deepcopy(self.pages)

    async def list_block_children(self, block_id: str):
        self.calls[block_id] += 1
        await asyncio.sleep(0)
        if block_id in self.rate_limit_always:
            raise RateLimitedError(retry_after=self.retry_after)
        if block_id in self.rate_limit_once:
            self.rate_limit_once.discard(block_id)
            raise RateLimitedError(retry_after=self.retry_after)
        if block_id in self.broken:
            raise NotionAPIError(500, "internal_server_error", "boom")
        return copy.deepcopy(self.blocks.get(block_id, [paragraph(f"Content of {block_id}")]))

    async def list_child_pages(self, page_id: str):
        self.child_calls[page_id] += 1
        await asyncio.sleep(0)
        errors = self.child_page_errors.get(page_id)
        if errors:
            raise errors.pop(0)
        return copy.deepcopy(self.child_pages.get(page_id, []))

    async def aclose(self) -> None:
        return None


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    cfg = AppConfig()
    cfg.notion.secret = "test-secret"
    cfg.export.cache_dir = str(tmp_path / "cache")
    cfg.logging.console = False
    return cfg


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
