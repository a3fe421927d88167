"""Markdown-ish plain text to Notion block conversion.

Backlog's ``plain`` field carries lightly formatted Markdown.  Conversion is
line-oriented, one block per input line:

- ``# ``, ``## ``, ``### `` -> ``heading_1`` .. ``heading_3``
- ``- `` or ``* ``          -> ``bulleted_list_item``
- blank line               -> empty ``paragraph``
- anything else            -> ``paragraph``

Inline formatting (``**bold**``, ``[text](url)``) is detected but written
through as plain text.
"""

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_HEADING_PATTERN = re.compile(r"^(#{1,3}) (.*)$")
_BULLET_PREFIXES = ("- ", "* ")

_BOLD_PATTERN = re.compile(r"\*\*(.+?)\*\*")
_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")

# Notion caps a single rich_text segment at 2000 characters
MAX_TEXT_LENGTH = 2000


def rich_text(text: str) -> list[dict[str, Any]]:
    """Build a rich_text array for *text*, split into API-sized segments."""
    if not text:
        return []
    if _BOLD_PATTERN.search(text) or _LINK_PATTERN.search(text):
        logger.debug("Inline formatting kept as plain text: %.60s", text)
    return [
        {"type": "text", "text": {"content": text[i : i + MAX_TEXT_LENGTH]}}
        for i in range(0, len(text), MAX_TEXT_LENGTH)
    ]


def _block(block_type: str, text: str) -> dict[str, Any]:
    return {
        "object": "block",
        "type": block_type,
        block_type: {"rich_text": rich_text(text)},
    }


def classify_line(line: str) -> tuple[str, str]:
    """Return ``(block_type, text)`` for one line of input."""
    stripped = line.strip()
    if not stripped:
        return "paragraph", ""

    match = _HEADING_PATTERN.match(stripped)
    if match:
        return f"heading_{len(match.group(1))}", match.group(2)

    if stripped.startswith(_BULLET_PREFIXES):
        return "bulleted_list_item", stripped[2:]

    return "paragraph", stripped


def markdown_to_blocks(markdown: str) -> list[dict[str, Any]]:
    """Convert *markdown* into a list of Notion block descriptors.

    Args:
        markdown: Source text; ``None``-like empty input yields no blocks.

    Returns:
        Block dicts ready for the ``blocks/{id}/children`` append endpoint.
    """
    if not markdown:
        return []
    lines = markdown.replace("\r\n", "\n").split("\n")
    return [_block(*classify_line(line)) for line in lines]
