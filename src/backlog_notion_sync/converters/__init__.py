"""Content conversion for pages written to Notion."""

from .blocks import classify_line, markdown_to_blocks, rich_text

__all__ = ["classify_line", "markdown_to_blocks", "rich_text"]
