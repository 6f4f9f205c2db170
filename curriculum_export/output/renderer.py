"""
Notion block tree to Markdown rendering.

The block tree is fetched with an explicit worklist. Block ids already
fetched are never fetched again, so synced blocks that point back at visited
content cannot cause repeated or unbounded requests. A block that refers back
to one of its own ancestors renders without children. Sub-pages are not
descended into; they render as nothing and are exported separately.
"""

from __future__ import annotations

from html import escape
import logging
from typing import Any

from ..fetch.client import NotionClient
from ..utils.logging import log_event


SKIPPED_CHILDREN = {"child_page", "child_database"}


class NotionMarkdownRenderer:
    """Renders a Notion page to Markdown text."""

    def __init__(self, client: NotionClient, logger: logging.Logger | None = None):
        self._client = client
        self._logger = logger or logging.getLogger("curriculum_export")

    async def render_page(self, page_id: str) -> str | None:
        """Return the page body as Markdown, or None when it has no content."""
        blocks = await self.fetch_block_tree(page_id)
        text = blocks_to_markdown(blocks).strip()
        if not text:
            return None
        return f"{text}\n"

    async def fetch_block_tree(self, root_id: str) -> list[dict[str, Any]]:
        """Fetch a page's blocks with nested children attached as ``children``.

        Each block id is fetched at most once. A synced block included several
        times gets the same children attached at every occurrence.
        """
        fetched = {root_id: await self._client.list_block_children(root_id)}
        worklist = list(reversed(fetched[root_id]))

        while worklist:
            block = worklist.pop()
            source_id = _children_source(block)
            if source_id is None or source_id in fetched:
                continue
            children = await self._client.list_block_children(source_id)
            fetched[source_id] = children
            worklist.extend(reversed(children))

        return self._assemble(fetched[root_id], fetched, frozenset({root_id}))

    def _assemble(
        self,
        blocks: list[dict[str, Any]],
        fetched: dict[str, list[dict[str, Any]]],
        ancestors: frozenset[str],
    ) -> list[dict[str, Any]]:
        assembled = []
        for block in blocks:
            block = dict(block)
            source_id = _children_source(block)
            if source_id is not None:
                if source_id in ancestors:
                    log_event(
                        self._logger,
                        "Skipping cyclic block reference",
                        level=logging.DEBUG,
                        event="block_cycle",
                        block_id=source_id,
                    )
                else:
                    block["children"] = self._assemble(
                        fetched[source_id], fetched, ancestors | {source_id}
                    )
            assembled.append(block)
        return assembled


def _children_source(block: dict[str, Any]) -> str | None:
    """Block id whose children belong under ``block``, if any."""
    block_type = block.get("type")
    if block_type in SKIPPED_CHILDREN:
        return None
    if block_type == "synced_block":
        synced_from = (block.get("synced_block") or {}).get("synced_from") or {}
        if synced_from.get("block_id"):
            return synced_from["block_id"]
    if block.get("has_children"):
        return block.get("id")
    return None


def rich_text_to_markdown(fragments: list[dict[str, Any]] | None) -> str:
    """Render Notion rich text fragments with inline annotations."""
    parts = []
    for fragment in fragments or []:
        if fragment.get("type") == "equation":
            parts.append(f"${fragment.get('equation', {}).get('expression', '')}$")
            continue
        text = fragment.get("plain_text", "")
        if not text:
            continue
        annotations = fragment.get("annotations") or {}
        if annotations.get("code"):
            text = f"`{text}`"
        else:
            if annotations.get("bold"):
                text = f"**{text}**"
            if annotations.get("italic"):
                text = f"_{text}_"
            if annotations.get("strikethrough"):
                text = f"~~{text}~~"
        if fragment.get("href"):
            text = f"[{text}]({fragment['href']})"
        parts.append(text)
    return "".join(parts)


def blocks_to_markdown(blocks: list[dict[str, Any]]) -> str:
    """Render a list of sibling blocks into Markdown paragraphs."""
    list_types = {"bulleted_list_item", "numbered_list_item", "to_do"}
    out = ""
    prev_type = None
    numbered = 0
    for block in blocks:
        block_type = block.get("type")
        numbered = numbered + 1 if block_type == "numbered_list_item" else 0
        rendered = _render_block(block, numbered)
        if not rendered:
            continue
        if out:
            # Consecutive list items stay tight; everything else is a paragraph.
            tight = block_type in list_types and prev_type in list_types
            out += "\n" if tight else "\n\n"
        out += rendered
        prev_type = block_type
    return out


def _children_markdown(block: dict[str, Any]) -> str:
    return blocks_to_markdown(block.get("children") or [])


def _indent(text: str, prefix: str = "    ") -> str:
    return "\n".join(f"{prefix}{line}" if line else line for line in text.splitlines())


def _caption(value: dict[str, Any]) -> str:
    return rich_text_to_markdown(value.get("caption"))


def _file_url(value: dict[str, Any]) -> str:
    kind = value.get("type")
    if kind and isinstance(value.get(kind), dict):
        return value[kind].get("url", "")
    return value.get("url", "")


def _render_block(block: dict[str, Any], number: int) -> str:
    block_type = block.get("type", "")
    value = block.get(block_type) or {}
    text = rich_text_to_markdown(value.get("rich_text"))

    if block_type in SKIPPED_CHILDREN:
        return ""
    if block_type == "paragraph":
        children = _children_markdown(block)
        return "\n\n".join(part for part in (text, _indent(children) if children else "") if part)
    if block_type in ("heading_1", "heading_2", "heading_3"):
        level = int(block_type[-1])
        heading = f"{'#' * level} {text}"
        if value.get("is_toggleable") and block.get("children"):
            return f"{heading}\n\n{_children_markdown(block)}"
        return heading
    if block_type in ("bulleted_list_item", "numbered_list_item", "to_do"):
        if block_type == "bulleted_list_item":
            marker = "-"
        elif block_type == "numbered_list_item":
            marker = f"{number}."
        else:
            marker = "- [x]" if value.get("checked") else "- [ ]"
        line = f"{marker} {text}"
        children = _children_markdown(block)
        if children:
            return f"{line}\n{_indent(children)}"
        return line
    if block_type == "toggle":
        body = _children_markdown(block)
        return f"<details>\n<summary>{text}</summary>\n\n{body}\n\n</details>"
    if block_type == "quote":
        body = text
        children = _children_markdown(block)
        if children:
            body = f"{body}\n\n{children}" if body else children
        return "\n".join(f"> {line}" if line else ">" for line in body.splitlines())
    if block_type == "callout":
        icon = (value.get("icon") or {}).get("emoji")
        body = f"{icon} {text}" if icon else text
        children = _children_markdown(block)
        if children:
            body = f"{body}\n\n{children}"
        return "\n".join(f"> {line}" if line else ">" for line in body.splitlines())
    if block_type == "code":
        code = "".join(f.get("plain_text", "") for f in value.get("rich_text") or [])
        language = value.get("language") or ""
        if language == "plain text":
            language = "text"
        return f"```{language}\n{code}\n```"
    if block_type == "divider":
        return "---"
    if block_type == "equation":
        return f"$$\n{value.get('expression', '')}\n$$"
    if block_type == "image":
        return f"![{_caption(value)}]({_file_url(value)})"
    if block_type == "embed":
        url = value.get("url")
        if not url:
            return ""
        return (
            "<figure>\n"
            f'  <iframe width="100%" height="600" scrolling="no" allowfullscreen src="{escape(url)}"></iframe>\n'
            f"  <figcaption>{_caption(value)}</figcaption>\n"
            "</figure>"
        )
    if block_type in ("video", "file", "pdf", "audio"):
        url = _file_url(value)
        if not url:
            return ""
        return f"[{_caption(value) or value.get('name') or block_type}]({url})"
    if block_type in ("bookmark", "link_preview"):
        url = value.get("url")
        if not url:
            return ""
        return f"[{_caption(value) or url}]({url})"
    if block_type == "table":
        return _render_table(block, value)
    if block_type in ("column_list", "column", "synced_block"):
        return _children_markdown(block)
    return text


def _render_table(block: dict[str, Any], value: dict[str, Any]) -> str:
    rows = [
        [rich_text_to_markdown(cell).replace("|", "\\|") for cell in (row.get("table_row") or {}).get("cells", [])]
        for row in block.get("children") or []
        if row.get("type") == "table_row"
    ]
    if not rows:
        return ""
    width = max(len(row) for row in rows)
    rows = [row + [""] * (width - len(row)) for row in rows]
    if value.get("has_column_header"):
        header, body = rows[0], rows[1:]
    else:
        header, body = [""] * width, rows
    lines = [
        f"| {' | '.join(header)} |",
        f"| {' | '.join(['---'] * width)} |",
    ]
    lines.extend(f"| {' | '.join(row)} |" for row in body)
    return "\n".join(lines)
