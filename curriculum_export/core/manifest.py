"""
Manifest storage, in-run accumulation and final deduplication.

The on-disk manifest is a JSON array of records sorted by secondary id.
During a run, records are collected in a ManifestAccumulator keyed by stable
id so concurrent workers can only append or replace, never clobber by index.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..utils.files import read_json, write_json_atomic
from ..utils.logging import log_event
from .types import NA_ID, ExportRecord


class ManifestStore:
    """Loads and atomically writes the manifest file."""

    def __init__(self, path: Path, logger: logging.Logger | None = None):
        self.path = path
        self._logger = logger or logging.getLogger("curriculum_export")

    def load(self) -> list[ExportRecord]:
        """Load records from a previous run.

        Absent or corrupt files yield an empty list; malformed entries are
        dropped individually.
        """
        if not self.path.exists():
            return []
        data = read_json(self.path)
        if not isinstance(data, list):
            log_event(
                self._logger,
                "Manifest unreadable; starting empty",
                level=logging.WARNING,
                event="manifest_corrupt",
                path=str(self.path),
            )
            return []
        return [ExportRecord.from_dict(item) for item in data if isinstance(item, dict)]

    def save(self, records: list[ExportRecord]) -> None:
        write_json_atomic(self.path, [record.to_dict() for record in records])


class ManifestAccumulator:
    """Insertion-ordered records keyed by stable id."""

    def __init__(self) -> None:
        self._records: dict[str, ExportRecord] = {}

    def register(self, key: str, record: ExportRecord) -> None:
        """Append, or replace in place when ``key`` is already present."""
        self._records[key] = record

    def carry_forward(self, key: str, record: ExportRecord) -> bool:
        """Add a record from a previous run unless ``key`` is already present."""
        if key in self._records:
            return False
        self._records[key] = record
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> list[ExportRecord]:
        return list(self._records.values())


def index_records(records: list[ExportRecord]) -> tuple[dict[str, ExportRecord], dict[str, ExportRecord]]:
    """Index records by stable id and by secondary id (first wins, NA excluded)."""
    by_stable: dict[str, ExportRecord] = {}
    by_secondary: dict[str, ExportRecord] = {}
    for record in records:
        if record.stable_id:
            by_stable.setdefault(record.stable_id, record)
        if record.secondary_id and record.secondary_id != NA_ID:
            by_secondary.setdefault(record.secondary_id, record)
    return by_stable, by_secondary


def dedup_records(records: list[ExportRecord]) -> list[ExportRecord]:
    """Keep the first record for each dedup key, preserving order."""
    seen: set[str] = set()
    kept: list[ExportRecord] = []
    for record in records:
        key = record.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        kept.append(record)
    return kept


def sort_records(records: list[ExportRecord]) -> list[ExportRecord]:
    """Sort by secondary id, then stable id, for deterministic output."""
    return sorted(records, key=lambda r: (r.secondary_id or "", r.stable_id or ""))
