"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- NotionConfig: content source API settings
- ExportConfig: scheduler bounds and output file names
- ImagesConfig: image localization settings
- LoggingConfig: logging behavior
- AppConfig: root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
import os
from typing import Any

import yaml


@dataclass
class NotionConfig:
    """Configuration for the Notion content source.

    Attributes:
        api_base_url: Base URL of the Notion REST API
        api_version: Value sent in the ``Notion-Version`` header
        secret_env: Environment variable holding the integration secret
        secret: Optional inline secret (overrides the env var)
        page_size: Page size for paginated list/query calls (max 100)
        timeout_seconds: HTTP timeout per request
        sort_property: Grouping property used to sort the database query
    """

    api_base_url: str = "https://api.notion.com/v1"
    api_version: str = "2022-06-28"
    secret_env: str = "NOTION_SECRET"
    secret: str | None = None
    page_size: int = 100
    timeout_seconds: float = 30.0
    sort_property: str = "Unit"


@dataclass
class ExportConfig:
    """Configuration for the export run.

    Attributes:
        max_concurrency: Maximum number of items exported at once
        max_rounds: Maximum scheduler rounds before rate-limited items are given up
        default_retry_after_ms: Cooldown used when the server sends no usable hint
        manifest_filename: Manifest file name inside the target directory
        progress_filename: Progress file name inside the target directory
        cache_dir: Directory holding the ``<sourceId>.json`` item cache
        solutions_dir: Subdirectory for companion (solution) pages
    """

    max_concurrency: int = 10
    max_rounds: int = 10
    default_retry_after_ms: int = 60000
    manifest_filename: str = "curriculum.json"
    progress_filename: str = ".progress.json"
    cache_dir: str = "."
    solutions_dir: str = "solutions"


@dataclass
class ImagesConfig:
    """Configuration for image localization.

    Attributes:
        enabled: Whether remote images are downloaded and rewritten
        dir_name: Image directory created beside each Markdown file
        default_extension: Extension used when the URL has none
        unauthenticated_hosts: Host substrings fetched without the auth header
        timeout_seconds: HTTP timeout per image download
        max_redirects: Maximum redirect hops followed per image
    """

    enabled: bool = True
    dir_name: str = "images"
    default_extension: str = ".png"
    unauthenticated_hosts: list[str] = field(default_factory=lambda: ["s3.", "amazonaws.com"])
    timeout_seconds: float = 60.0
    max_redirects: int = 5


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to a file in the target directory
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "export.jsonl"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    notion: NotionConfig = field(default_factory=NotionConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    images: ImagesConfig = field(default_factory=ImagesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS = {
    "notion": NotionConfig,
    "export": ExportConfig,
    "images": ImagesConfig,
    "logging": LoggingConfig,
}


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig.

    Unknown sections and keys are ignored.
    """
    data = asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(value, dict) and isinstance(data[key], dict):
            data[key].update(value)
    return _fromdict(data)


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    sections = {}
    for name, cls in _SECTIONS.items():
        known = {f.name for f in fields(cls)}
        sections[name] = cls(**{k: v for k, v in data.get(name, {}).items() if k in known})
    return AppConfig(**sections)


def get_notion_secret(cfg: NotionConfig) -> str | None:
    """Get the Notion secret from inline config or environment variable."""
    if cfg.secret:
        return cfg.secret
    return os.getenv(cfg.secret_env) or None


def get_public_base_url(value: str | None) -> str:
    """Public base URL from the argument, else ``REPO_URL``, else empty."""
    return (value or os.getenv("REPO_URL") or "").rstrip("/")
