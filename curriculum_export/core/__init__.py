"""
Core domain models and export state.

This package contains the data types, persistent stores and the scheduler,
independent of the Notion API and of Markdown rendering.
"""

from .errors import (
    ConfigurationError,
    ExportError,
    ImageDownloadError,
    NotionAPIError,
    RateLimitedError,
)
from .manifest import ManifestAccumulator, ManifestStore, dedup_records, sort_records
from .progress import ProgressStore
from .scheduler import RetryScheduler, SchedulerResult, parse_retry_after
from .slug import slugify, slugify_path
from .types import ExportOutcome, ExportRecord, SelectOption, SourceItem

__all__ = [
    "ConfigurationError",
    "ExportError",
    "ImageDownloadError",
    "NotionAPIError",
    "RateLimitedError",
    "ManifestAccumulator",
    "ManifestStore",
    "dedup_records",
    "sort_records",
    "ProgressStore",
    "RetryScheduler",
    "SchedulerResult",
    "parse_retry_after",
    "slugify",
    "slugify_path",
    "ExportOutcome",
    "ExportRecord",
    "SelectOption",
    "SourceItem",
]
