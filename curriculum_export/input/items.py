"""
Source item collection loading with a local JSON cache.

If ``<cache_dir>/<sourceId>.json`` exists and parses, it is used verbatim so
re-runs can work fully offline. Otherwise the database is queried and the raw
pages are written to the cache for next time.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..core.types import SourceItem
from ..fetch.client import NotionClient
from ..utils.files import read_json, write_json_atomic
from ..utils.logging import log_event


def cache_path(cache_dir: Path, source_id: str) -> Path:
    return cache_dir / f"{source_id}.json"


def parse_items(pages: list[Any], logger: logging.Logger | None = None) -> list[SourceItem]:
    """Convert raw page payloads into SourceItems, dropping malformed entries."""
    items: list[SourceItem] = []
    for page in pages:
        if not isinstance(page, dict) or not page.get("id"):
            log_event(
                logger,
                "Ignoring malformed item in collection",
                level=logging.WARNING,
                event="item_malformed",
            )
            continue
        items.append(SourceItem.from_page(page))
    return items


async def load_source_items(
    source_id: str,
    client: NotionClient,
    cache_dir: Path,
    sort_property: str | None = "Unit",
    logger: logging.Logger | None = None,
) -> list[SourceItem]:
    """Return the full item collection from the cache or the content source."""
    path = cache_path(cache_dir, source_id)
    cached = read_json(path) if path.exists() else None
    if isinstance(cached, list):
        log_event(logger, "Reading local file", event="items_cache_hit", path=str(path), count=len(cached))
        return parse_items(cached, logger)

    log_event(logger, "Fetching from Notion...", event="items_fetch", source_id=source_id)
    pages = await client.query_database(source_id, sort_property=sort_property)
    write_json_atomic(path, pages)
    log_event(logger, "Cached item collection", event="items_cached", path=str(path), count=len(pages))
    return parse_items(pages, logger)
