"""YAML front matter and manifest metadata for exported pages."""

from __future__ import annotations

from typing import Any

import yaml

from ..core.types import ExportRecord, SelectOption, SourceItem


def display_name(value: str | None) -> str | None:
    """Display form of a title: colons become em dashes."""
    if value is None:
        return None
    return value.replace(":", "—")


def _option(option: SelectOption | None, default_name: str | None = None) -> dict[str, Any]:
    if option is None:
        return {"name": default_name, "color": "neutral"}
    return {"name": display_name(option.name), "color": option.color or "neutral"}


def extract_metadata(item: SourceItem) -> dict[str, Any]:
    """Metadata shared by the front matter and the manifest record."""
    return {
        "notionId": item.id,
        "icon": item.icon,
        "title": display_name(item.name),
        "unit": _option(item.unit),
        "chapter": _option(item.chapter),
        "type": _option(item.content_type, "No type"),
        "ft-id": item.ft_id,
        "pt-id": item.pt_id,
    }


def build_front_matter(item: SourceItem) -> str:
    metadata = extract_metadata(item)
    metadata.pop("notionId")
    metadata["objectives"] = item.objectives or "No objectives"
    metadata["slides"] = item.slides
    metadata["instructorNotes"] = {
        "plainText": item.instructor_notes or None,
        "links": item.instructor_links or None,
    }
    body = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{body}---\n"


def build_record(item: SourceItem, path: str) -> ExportRecord:
    metadata = extract_metadata(item)
    record = ExportRecord.from_dict(metadata)
    record.path = path
    return record
