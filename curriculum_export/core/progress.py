"""
Persistent set of already-exported item ids.

The progress file is the single source of truth for resuming: it is
rewritten after every successful item so a crash loses at most the item
that was in flight.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..utils.files import read_json, write_json_atomic
from ..utils.logging import log_event


class ProgressStore:
    """Tracks processed stable ids in ``{"processedIds": [...]}`` form.

    Attributes:
        path: Location of the progress file
    """

    def __init__(self, path: Path, logger: logging.Logger | None = None):
        self.path = path
        self._logger = logger or logging.getLogger("curriculum_export")
        self._ids: set[str] = set()

    def load(self) -> set[str]:
        """Load ids from disk. Absent or corrupt files mean no progress."""
        self._ids = set()
        if not self.path.exists():
            return set(self._ids)

        data = read_json(self.path)
        ids = data.get("processedIds") if isinstance(data, dict) else None
        if not isinstance(ids, list):
            log_event(
                self._logger,
                "Progress file unreadable; starting fresh",
                level=logging.WARNING,
                event="progress_corrupt",
                path=str(self.path),
            )
            return set(self._ids)

        self._ids = {value for value in ids if isinstance(value, str)}
        return set(self._ids)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._ids)

    def mark_done(self, item_id: str) -> None:
        """Record one successful item and flush immediately."""
        self._ids.add(item_id)
        self.save()

    def save(self) -> None:
        write_json_atomic(self.path, {"processedIds": sorted(self._ids)})
