"""
Export orchestration.

This module coordinates one export run:
1. Load progress and the previous manifest
2. Load the item collection (local cache or Notion)
3. Carry forward records of already-exported items
4. Drive the retry-aware scheduler over the remaining items
5. Deduplicate, sort and write the manifest; persist progress
6. Report summary statistics

Item-level failures never abort the run. Only setup errors (missing secret,
source id or target directory) are raised, before any work starts.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from pathlib import Path
import time

import httpx
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)

from .config import AppConfig, get_notion_secret
from .core.errors import ConfigurationError
from .core.manifest import (
    ManifestAccumulator,
    ManifestStore,
    dedup_records,
    index_records,
    sort_records,
)
from .core.progress import ProgressStore
from .core.scheduler import RetryScheduler
from .core.types import NA_ID, ExportOutcome, ExportRecord, SourceItem
from .exporters.item_exporter import ItemExporter, item_relative_path
from .fetch.client import NotionClient
from .fetch.images import ImageLocalizer
from .input.items import load_source_items
from .output.frontmatter import build_record
from .output.renderer import NotionMarkdownRenderer
from .utils.logging import log_event, setup_logging


@dataclass
class ExportSummary:
    """Statistics for one export run.

    Attributes:
        total: Items in the collection
        skipped_done: Items already exported by a previous run
        exported: Items exported in this run
        skipped_invalid: Items skipped for missing fields or empty content
        failed: Items dropped after a non-rate-limit error
        permanently_failed: Items still rate-limited after the round cap
        duration_seconds: Wall-clock duration of the run
        manifest_path: Location of the written manifest
        records: Final manifest records, in file order
    """

    total: int = 0
    skipped_done: int = 0
    exported: int = 0
    skipped_invalid: int = 0
    failed: int = 0
    permanently_failed: int = 0
    duration_seconds: float = 0.0
    manifest_path: Path | None = None
    records: list[ExportRecord] = field(default_factory=list)


def run_export(
    source_id: str | None,
    target_dir: Path | None,
    cfg: AppConfig,
    public_base_url: str = "",
    show_progress: bool = False,
    console: Console | None = None,
    client: NotionClient | None = None,
    http_client: httpx.AsyncClient | None = None,
    scheduler: RetryScheduler | None = None,
    logger: logging.Logger | None = None,
) -> ExportSummary:
    """Run a complete export and return its summary.

    Args:
        source_id: Notion database id
        target_dir: Export root directory
        cfg: Application configuration
        public_base_url: Prefix for rewritten image links
        show_progress: Whether to display a progress bar
        console: Rich console for output (creates default if None)
        client: Notion client to use (built from config if None)
        http_client: HTTP client for image downloads (built if None)
        scheduler: Scheduler to use (built from config if None)
        logger: Logger for events (configured from ``cfg.logging`` if None)

    Raises:
        ConfigurationError: If the secret, source id or target dir is missing
    """
    secret = get_notion_secret(cfg.notion)
    if not secret:
        raise ConfigurationError(f"{cfg.notion.secret_env} missing in environment")
    if not source_id:
        raise ConfigurationError("No database ID provided as argument")
    if not target_dir:
        raise ConfigurationError("No target directory provided as argument")

    target_dir.mkdir(parents=True, exist_ok=True)
    console = console or Console()
    if logger is None:
        logger = setup_logging(cfg.logging, target_dir, console=console)

    return asyncio.run(
        _run_export_async(
            source_id,
            target_dir,
            cfg,
            secret,
            public_base_url,
            show_progress,
            console,
            client,
            http_client,
            scheduler,
            logger,
        )
    )


async def _run_export_async(
    source_id: str,
    target_dir: Path,
    cfg: AppConfig,
    secret: str,
    public_base_url: str,
    show_progress: bool,
    console: Console,
    client: NotionClient | None,
    http_client: httpx.AsyncClient | None,
    scheduler: RetryScheduler | None,
    logger: logging.Logger,
) -> ExportSummary:
    start = time.monotonic()
    summary = ExportSummary()
    log_event(
        logger,
        f"Starting egress with max concurrent operations: {cfg.export.max_concurrency}",
        event="export_start",
        source_id=source_id,
        target_dir=str(target_dir),
    )

    progress_store = ProgressStore(target_dir / cfg.export.progress_filename, logger)
    progress_store.load()
    manifest_store = ManifestStore(target_dir / cfg.export.manifest_filename, logger)
    existing_records = manifest_store.load()

    owns_client = client is None
    client = client or NotionClient(secret, cfg.notion, logger=logger)
    owns_http = http_client is None
    http_client = http_client or httpx.AsyncClient(
        timeout=httpx.Timeout(cfg.images.timeout_seconds, connect=10.0),
        trust_env=True,
    )
    try:
        items = await load_source_items(
            source_id,
            client,
            Path(cfg.export.cache_dir),
            sort_property=cfg.notion.sort_property,
            logger=logger,
        )
        summary.total = len(items)

        accumulator = ManifestAccumulator()
        to_process = _partition(items, progress_store, existing_records, accumulator, target_dir)
        summary.skipped_done = summary.total - len(to_process)
        if summary.skipped_done:
            log_event(
                logger,
                f"Skipping {summary.skipped_done} already processed items...",
                event="items_skipped_done",
                count=summary.skipped_done,
            )
        log_event(logger, f"Processing {len(to_process)} items...", event="items_to_process", count=len(to_process))

        exporter = ItemExporter(
            cfg,
            client,
            NotionMarkdownRenderer(client, logger),
            ImageLocalizer(target_dir, public_base_url, secret, http_client, cfg.images, logger),
            accumulator,
            target_dir,
            logger,
        )
        scheduler = scheduler or RetryScheduler(
            max_concurrency=cfg.export.max_concurrency,
            max_rounds=cfg.export.max_rounds,
            default_retry_after_ms=cfg.export.default_retry_after_ms,
            logger=logger,
            describe=lambda item: item.label,
        )

        progress = _build_progress(console) if show_progress else None
        task_id = progress.add_task("Export", total=len(to_process)) if progress else None

        async def _export_and_checkpoint(item: SourceItem, index: int, total: int) -> None:
            outcome = await exporter.export(item, index, total)
            if outcome is ExportOutcome.EXPORTED:
                progress_store.mark_done(item.id)
                summary.exported += 1
            else:
                summary.skipped_invalid += 1
            if progress is not None:
                progress.advance(task_id, 1)

        if progress is not None:
            with progress:
                result = await scheduler.run(to_process, _export_and_checkpoint)
        else:
            result = await scheduler.run(to_process, _export_and_checkpoint)
        summary.failed = len(result.failed)
        summary.permanently_failed = len(result.permanently_failed)
    finally:
        if owns_client:
            await client.aclose()
        if owns_http:
            await http_client.aclose()

    records = sort_records(dedup_records(accumulator.records()))
    manifest_store.save(records)
    progress_store.save()
    log_event(logger, f"JSON file written to: {manifest_store.path}", event="manifest_written", records=len(records))

    summary.records = records
    summary.manifest_path = manifest_store.path
    summary.duration_seconds = time.monotonic() - start
    log_event(
        logger,
        f"DONE! Processed {summary.total} items in {summary.duration_seconds:.2f} seconds",
        event="export_complete",
        total=summary.total,
        skipped_done=summary.skipped_done,
        exported=summary.exported,
        skipped_invalid=summary.skipped_invalid,
        failed=summary.failed,
        permanently_failed=summary.permanently_failed,
        duration_seconds=round(summary.duration_seconds, 2),
    )
    return summary


def _partition(
    items: list[SourceItem],
    progress_store: ProgressStore,
    existing_records: list[ExportRecord],
    accumulator: ManifestAccumulator,
    target_dir: Path,
) -> list[SourceItem]:
    """Split items into done and to-do, carrying done items' records forward.

    Done items are matched to a previous record by stable id first, then by
    secondary id. When neither matches but the exported file is still on disk
    (the previous run died before writing its manifest), the record is rebuilt
    from the item. Anything else is dropped from the new manifest.
    """
    by_stable, by_secondary = index_records(existing_records)
    to_process: list[SourceItem] = []
    for item in items:
        if item.id not in progress_store:
            to_process.append(item)
            continue
        record = by_stable.get(item.id)
        if record is None and item.secondary_id != NA_ID:
            record = by_secondary.get(item.secondary_id)
        if record is None and not item.missing_fields():
            relative = item_relative_path(item)
            if (target_dir / relative).is_file():
                record = build_record(item, relative)
        if record is not None:
            accumulator.carry_forward(item.id, record)
    return to_process


def _build_progress(console: Console) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeRemainingColumn(),
        console=console,
    )
