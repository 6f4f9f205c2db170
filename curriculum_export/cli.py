"""
Command-line interface for the curriculum export.

Usage:
    curriculum-export SOURCE_ID TARGET_DIR [PUBLIC_BASE_URL]

The Notion secret is read from ``NOTION_SECRET`` (a ``.env`` file is loaded
first). Missing secret or arguments exit with status 1 before any work.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
import typer
from rich.console import Console

from .config import get_public_base_url, load_config
from .core.errors import ConfigurationError
from .runner import run_export

app = typer.Typer(add_completion=False)
console = Console()
err_console = Console(stderr=True)


@app.command()
def export(
    source_id: str | None = typer.Argument(None, help="Notion database id."),
    target_dir: Path | None = typer.Argument(None, help="Export root directory."),
    public_base_url: str | None = typer.Argument(
        None, help="Public base URL for image links (or set REPO_URL)."
    ),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, dir_okay=False),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-j", min=1, help="Maximum items exported at once."
    ),
    max_rounds: int | None = typer.Option(
        None, "--max-rounds", min=1, help="Maximum rate-limit retry rounds."
    ),
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir", help="Directory holding the <sourceId>.json item cache."
    ),
    progress: bool = typer.Option(False, "--progress/--no-progress"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(
        None, "--log-file/--no-log-file", help="Enable or disable file logging."
    ),
):
    """Export a Notion curriculum database to Markdown files and a manifest."""
    load_dotenv()

    cfg = load_config(str(config) if config else None)

    if concurrency is not None:
        cfg.export.max_concurrency = concurrency
    if max_rounds is not None:
        cfg.export.max_rounds = max_rounds
    if cache_dir is not None:
        cfg.export.cache_dir = str(cache_dir)
    if log_level:
        cfg.logging.level = log_level
    if log_file is not None:
        cfg.logging.file = log_file

    try:
        summary = run_export(
            source_id,
            target_dir,
            cfg,
            public_base_url=get_public_base_url(public_base_url),
            show_progress=progress,
            console=console,
        )
    except ConfigurationError as exc:
        err_console.print(str(exc))
        raise typer.Exit(code=1)

    console.print(
        "[bold]Export summary[/bold]: "
        f"total={summary.total}, skipped_done={summary.skipped_done}, "
        f"exported={summary.exported}, skipped_invalid={summary.skipped_invalid}, "
        f"failed={summary.failed}, permanently_failed={summary.permanently_failed}, "
        f"duration={summary.duration_seconds:.2f}s"
    )


if __name__ == "__main__":
    app()
