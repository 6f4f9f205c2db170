"""Markdown rendering and front matter helpers."""

from .frontmatter import build_front_matter, build_record, extract_metadata
from .renderer import NotionMarkdownRenderer, blocks_to_markdown, rich_text_to_markdown

__all__ = [
    "build_front_matter",
    "build_record",
    "extract_metadata",
    "NotionMarkdownRenderer",
    "blocks_to_markdown",
    "rich_text_to_markdown",
]
