"""Tests for front matter and manifest record building."""

from __future__ import annotations

from conftest import make_page
import yaml

from curriculum_export.core.types import SourceItem
from curriculum_export.output.frontmatter import build_front_matter, build_record, display_name


def test_display_name_replaces_colons():
    assert display_name("01: Basics") == "01— Basics"
    assert display_name(None) is None


def test_front_matter_is_valid_yaml_with_defaults():
    item = SourceItem.from_page(make_page("page-1", name="Loops: intro", ft_id="FT-3"))

    text = build_front_matter(item)

    assert text.startswith("---\n")
    assert text.endswith("---\n")
    data = yaml.safe_load(text.strip("-\n"))
    assert data["title"] == "Loops— intro"
    assert data["unit"] == {"name": "01— Basics", "color": "green"}
    assert data["type"] == {"name": "Lesson", "color": "blue"}
    assert data["ft-id"] == "FT-3"
    assert data["pt-id"] == "NA"
    assert data["objectives"] == "No objectives"
    assert data["instructorNotes"] == {"plainText": None, "links": None}
    assert "notionId" not in data


def test_missing_content_type_defaults():
    page = make_page("page-1")
    del page["properties"]["Content Type"]

    data = yaml.safe_load(build_front_matter(SourceItem.from_page(page)).strip("-\n"))

    assert data["type"] == {"name": "No type", "color": "neutral"}


def test_build_record_keys_and_path():
    item = SourceItem.from_page(make_page("page-9", name="Arrays", ft_id="FT-9"))

    record = build_record(item, "01-basics/intro/arrays.md")

    assert record.stable_id == "page-9"
    assert record.secondary_id == "FT-9"
    data = record.to_dict()
    assert list(data) == ["notionId", "icon", "title", "unit", "chapter", "type", "ft-id", "pt-id", "repo_path"]
    assert data["repo_path"] == "01-basics/intro/arrays.md"
