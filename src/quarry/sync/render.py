"""Notion block renderer — one content block to one Markdown fragment.

Pure functions, no I/O. Every block type yields a string: unknown or
malformed blocks fall back to whatever inline text they carry, or ``""``.
"""

from __future__ import annotations

from typing import Any

_PREFIXES: dict[str, str] = {
    "paragraph": "",
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "bulleted_list_item": "* ",
    "numbered_list_item": "1. ",
    "quote": "> ",
}


def extract_rich_text(rich_text: Any) -> str:
    """Concatenate the ``plain_text`` of each rich-text segment, in order."""
    if not isinstance(rich_text, list):
        return ""
    parts: list[str] = []
    for segment in rich_text:
        if isinstance(segment, dict):
            text = segment.get("plain_text")
            if isinstance(text, str):
                parts.append(text)
    return "".join(parts)


def render_block(block: Any) -> str:
    """Render a single Notion block as Markdown text."""
    if not isinstance(block, dict):
        return ""
    block_type = block.get("type")
    content = block.get(block_type) if isinstance(block_type, str) else None
    if not isinstance(content, dict):
        return ""

    text = extract_rich_text(content.get("rich_text"))

    if block_type in _PREFIXES:
        return f"{_PREFIXES[block_type]}{text}"
    if block_type == "to_do":
        mark = "x" if content.get("checked") else " "
        return f"- [{mark}] {text}"
    if block_type == "code":
        language = content.get("language") or ""
        return f"```{language}\n{text}\n```"
    return text


def render_blocks(blocks: list[Any]) -> str:
    """Render *blocks* and join the non-empty fragments with a blank line."""
    fragments = (render_block(b) for b in blocks)
    return "\n\n".join(f for f in fragments if f)


def extract_title(record: Any) -> str:
    """Return the plain text of a page's ``title`` property, or ``""``."""
    if not isinstance(record, dict):
        return ""
    properties = record.get("properties")
    if not isinstance(properties, dict):
        return ""
    for prop in properties.values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return extract_rich_text(prop.get("title"))
    return ""
