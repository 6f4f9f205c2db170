"""
Per-item export worker.

Renders one curriculum page (and at most one solution sub-page) to Markdown,
localizes its images, writes the files and registers the manifest record.
Re-exporting unchanged content produces byte-identical files.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from ..config import AppConfig
from ..core.errors import NotionAPIError, RateLimitedError
from ..core.manifest import ManifestAccumulator
from ..core.slug import slugify_path
from ..core.types import ExportOutcome, SourceItem
from ..fetch.client import NotionClient
from ..fetch.images import ImageLocalizer
from ..output.frontmatter import build_front_matter, build_record
from ..output.renderer import NotionMarkdownRenderer
from ..utils.files import write_bytes_atomic
from ..utils.logging import log_event


def item_relative_path(item: SourceItem) -> str:
    """``<unit>/<chapter>/<name>.md`` with every segment slugified."""
    return f"{slugify_path(item.unit.name, item.chapter.name, item.name)}.md"


class ItemExporter:
    """Exports single items into ``target_dir``.

    Attributes:
        target_dir: Export root directory
    """

    def __init__(
        self,
        cfg: AppConfig,
        client: NotionClient,
        renderer: NotionMarkdownRenderer,
        localizer: ImageLocalizer,
        accumulator: ManifestAccumulator,
        target_dir: Path,
        logger: logging.Logger | None = None,
    ):
        self._cfg = cfg
        self._client = client
        self._renderer = renderer
        self._localizer = localizer
        self._accumulator = accumulator
        self.target_dir = target_dir
        self._logger = logger or logging.getLogger("curriculum_export")

    async def export(self, item: SourceItem, index: int, total: int) -> ExportOutcome:
        """Export one item.

        Returns:
            EXPORTED when the file was written and the record registered,
            SKIPPED when the item lacks required fields or content

        Raises:
            RateLimitedError: so the scheduler can retry the whole item
        """
        missing = item.missing_fields()
        if missing:
            log_event(
                self._logger,
                f"Missing required properties for page ID {item.id}. Skipping.",
                level=logging.WARNING,
                event="item_missing_fields",
                item_id=item.id,
                missing=missing,
            )
            return ExportOutcome.SKIPPED

        content = await self._renderer.render_page(item.id)
        if not content:
            log_event(
                self._logger,
                f"No content found for page ID {item.id}. Skipping.",
                level=logging.WARNING,
                event="item_empty",
                item_id=item.id,
            )
            return ExportOutcome.SKIPPED

        front_matter = build_front_matter(item)
        relative = item_relative_path(item)
        await self._write_page(self.target_dir / relative, front_matter, content)
        await self._export_solution(item, relative, front_matter)

        self._accumulator.register(item.id, build_record(item, relative))
        log_event(
            self._logger,
            f"{index + 1}/{total}: {item.name} ✓",
            event="item_exported",
            item_id=item.id,
            path=relative,
        )
        return ExportOutcome.EXPORTED

    async def _export_solution(self, item: SourceItem, relative: str, front_matter: str) -> None:
        """Export the first sub-page of ``item`` under the solutions directory."""
        try:
            child_pages = await self._client.list_child_pages(item.id)
            if not child_pages:
                return
            content = await self._renderer.render_page(child_pages[0]["id"])
            if not content:
                return
            solution_relative = f"{self._cfg.export.solutions_dir}/{relative}"
            await self._write_page(self.target_dir / solution_relative, front_matter, content)
        except RateLimitedError:
            raise
        except (NotionAPIError, httpx.HTTPError, KeyError) as exc:
            log_event(
                self._logger,
                f"Error processing child pages for {item.id}: {exc}",
                level=logging.WARNING,
                event="solution_failed",
                item_id=item.id,
                error=f"{type(exc).__name__}: {exc}",
            )
            return

        log_event(
            self._logger,
            f"  └─ Solution saved: {solution_relative}",
            event="solution_exported",
            item_id=item.id,
            path=solution_relative,
        )

    async def _write_page(self, filepath: Path, front_matter: str, content: str) -> None:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        body = await self._localizer.localize(content, filepath.parent)
        write_bytes_atomic(filepath, f"{front_matter}{body}".encode("utf-8"))
