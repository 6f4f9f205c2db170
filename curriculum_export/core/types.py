"""
Core data types for the curriculum export.

- SelectOption: a Notion select value (name + color)
- SourceItem: one curriculum page with typed, optional fields
- ExportRecord: one manifest entry
- ExportOutcome: what the per-item worker did with an item
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import hashlib
import json
from typing import Any


NA_ID = "NA"
REQUIRED_FIELDS = ("unit", "chapter", "name")


def normalize_id(value: str | None) -> str:
    """Normalize a curriculum id formula value.

    Absent values, ``N/A`` and unfinished ids (trailing ``.``) become ``NA``.
    """
    if not value or value == "N/A":
        return NA_ID
    value = value.strip()
    if not value or value.endswith("."):
        return NA_ID
    return value


def _plain_text(fragments: list[dict[str, Any]] | None) -> str:
    return "".join(fragment.get("plain_text", "") for fragment in fragments or [])


def _select(prop: dict[str, Any] | None) -> SelectOption | None:
    if not prop:
        return None
    select = prop.get("select")
    if not select or not select.get("name"):
        return None
    return SelectOption(name=select["name"], color=select.get("color") or "neutral")


def _formula_string(prop: dict[str, Any] | None) -> str | None:
    if not prop:
        return None
    formula = prop.get("formula") or {}
    return formula.get("string")


def _first_rich_text(prop: dict[str, Any] | None) -> str | None:
    if not prop:
        return None
    fragments = prop.get("rich_text") or []
    if not fragments:
        return None
    return fragments[0].get("plain_text") or None


@dataclass
class SelectOption:
    name: str
    color: str = "neutral"


@dataclass
class SourceItem:
    """A curriculum page from the source database.

    Required fields (``unit``, ``chapter``, ``name``) drive the output path.
    An item missing any of them is skipped, never exported.

    Attributes:
        id: Stable Notion page id
        name: Page title, joined from all title fragments
        unit: Unit select value (grouping field)
        chapter: Chapter select value (grouping field)
        content_type: Content type select value
        icon: Page emoji icon
        ft_id: Normalized full-time curriculum id (the secondary id)
        pt_id: Normalized part-time curriculum id
        objectives: First objectives text fragment
        slides: First slides text fragment
        instructor_notes: Plain text fragments of the instructor notes
        instructor_links: Links found in the instructor notes
        raw: Original page payload, kept for the local item cache
    """

    id: str
    name: str | None = None
    unit: SelectOption | None = None
    chapter: SelectOption | None = None
    content_type: SelectOption | None = None
    icon: str | None = None
    ft_id: str = NA_ID
    pt_id: str = NA_ID
    objectives: str | None = None
    slides: str | None = None
    instructor_notes: list[str] = field(default_factory=list)
    instructor_links: list[str] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_page(cls, page: dict[str, Any]) -> SourceItem:
        """Build a SourceItem from a Notion page object."""
        properties = page.get("properties") or {}
        icon = page.get("icon") or {}
        notes = (properties.get("Instructor notes") or {}).get("rich_text") or []
        name = _plain_text((properties.get("Name") or {}).get("title"))
        return cls(
            id=page["id"],
            name=name or None,
            unit=_select(properties.get("Unit")),
            chapter=_select(properties.get("Chapter")),
            content_type=_select(properties.get("Content Type")),
            icon=icon.get("emoji"),
            ft_id=normalize_id(_formula_string(properties.get("ID FT"))),
            pt_id=normalize_id(_formula_string(properties.get("ID PT"))),
            objectives=_first_rich_text(properties.get("Objectives")),
            slides=_first_rich_text(properties.get("Slides")),
            instructor_notes=[n.get("plain_text", "") for n in notes],
            instructor_links=[n["href"] for n in notes if n.get("href")],
            raw=page,
        )

    def missing_fields(self) -> list[str]:
        """Return the names of required fields that are absent."""
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]

    @property
    def secondary_id(self) -> str:
        return self.ft_id

    @property
    def label(self) -> str:
        return self.name or "No name"


@dataclass
class ExportRecord:
    """One manifest entry.

    Serialized with the published manifest keys: ``notionId`` (stable id),
    ``ft-id`` (secondary id) and ``repo_path`` (path). Every other key lives
    in ``attributes`` and keeps its position on round trips.
    """

    stable_id: str | None
    secondary_id: str | None
    path: str | None
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExportRecord:
        attributes = {
            key: value
            for key, value in data.items()
            if key not in {"notionId", "ft-id", "repo_path"}
        }
        return cls(
            stable_id=data.get("notionId"),
            secondary_id=data.get("ft-id"),
            path=data.get("repo_path"),
            attributes=attributes,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"notionId": self.stable_id}
        for key, value in self.attributes.items():
            if key == "pt-id":
                data["ft-id"] = self.secondary_id
            data[key] = value
        data.setdefault("ft-id", self.secondary_id)
        data["repo_path"] = self.path
        return data

    def dedup_key(self) -> str:
        """Secondary id, else stable id, else a hash of the full record.

        ``NA`` counts as no secondary id, so records lacking one are never
        collapsed into a single entry.
        """
        if self.secondary_id and self.secondary_id != NA_ID:
            return self.secondary_id
        if self.stable_id:
            return self.stable_id
        payload = json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ExportOutcome(Enum):
    EXPORTED = "exported"
    SKIPPED = "skipped"
