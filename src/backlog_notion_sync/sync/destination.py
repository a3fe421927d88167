"""Notion side of the sync: reading the existing page tree and mutating it.

``build_path_map`` walks the page tree under the configured root once per
run and returns an immutable ``path -> DestinationPage`` mapping.  Branches
that disappear during the walk (deleted root, stale child references) are
skipped with a warning.

``DestinationMutator`` is the only writer.  Its operations raise the typed
errors from ``backlog_notion_sync.errors`` so the engine can isolate
per-page failures.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from ..converters.blocks import markdown_to_blocks
from ..core.notion import NotionClient
from ..errors import NotFoundError, ValidationError
from .layout import join_path
from .models import DestinationPage
from .tree import parse_timestamp

logger = logging.getLogger(__name__)

CHILD_PAGE = "child_page"

# Blocks that are pages in their own right and survive content replacement
_STRUCTURAL_BLOCKS = frozenset({CHILD_PAGE, "child_database"})

UNTITLED = "Untitled"


def extract_title(page: dict[str, Any]) -> str:
    """Return the plain-text title of a Notion page object."""
    properties = page.get("properties") or {}
    for prop in properties.values():
        if isinstance(prop, dict) and prop.get("type", "title") == "title":
            segments = prop.get("title")
            if isinstance(segments, list) and segments:
                text = "".join(
                    s.get("plain_text") or s.get("text", {}).get("content", "")
                    for s in segments
                    if isinstance(s, dict)
                )
                if text:
                    return text
    return UNTITLED


def _describe(page_id: str, page: dict[str, Any]) -> DestinationPage:
    edited = parse_timestamp(page.get("last_edited_time"))
    if edited is None:
        raise ValidationError(f"Page {page_id} has no last_edited_time")
    return DestinationPage(
        id=page_id, title=extract_title(page), last_edited_at=edited
    )


def list_child_pages(
    client: NotionClient, page_id: str
) -> list[DestinationPage]:
    """Return descriptors of the direct child pages of *page_id*.

    Raises:
        NotFoundError: If *page_id* itself cannot be listed.
    """
    pages: list[DestinationPage] = []
    for block in client.list_children(page_id):
        if block.get("type") != CHILD_PAGE:
            continue
        child_id = block["id"]
        try:
            page = client.get_page(child_id)
        except NotFoundError:
            logger.warning("Child page %s not found, skipping", child_id)
            continue
        if page.get("archived") or page.get("in_trash"):
            continue
        pages.append(_describe(child_id, page))
    return pages


def build_path_map(
    client: NotionClient, root_page_id: str
) -> Mapping[str, DestinationPage]:
    """Walk the page tree under *root_page_id* and key it by title path.

    The root page itself is not part of the map.  When two siblings share
    a title the later one wins.

    Returns:
        Read-only mapping of path key to page descriptor.
    """
    paths: dict[str, DestinationPage] = {}

    def _walk(page_id: str, prefix: str) -> None:
        try:
            children = list_child_pages(client, page_id)
        except NotFoundError:
            logger.warning(
                "Page %s not found while reading the destination tree, "
                "skipping its branch",
                page_id,
            )
            return
        for page in children:
            path = join_path(prefix, page.title)
            if path in paths:
                logger.debug("Duplicate destination path %s", path)
            paths[path] = page
            _walk(page.id, path)

    _walk(root_page_id, "")
    return MappingProxyType(paths)


class DestinationMutator:
    """Create, rewrite and archive Notion pages."""

    def __init__(self, client: NotionClient) -> None:
        self.client = client

    def create_child_page(self, parent_id: str, title: str) -> str:
        """Create an empty page titled *title* under *parent_id*."""
        return self.client.create_page(parent_id, title)

    def replace_page_content(self, page_id: str, content: str) -> None:
        """Replace the body of *page_id* with blocks built from *content*.

        Existing child pages and databases are left in place, so replacing
        a folder page's text never detaches the pages below it.
        """
        for block in self.client.list_children(page_id):
            if block.get("type") in _STRUCTURAL_BLOCKS:
                continue
            self.client.delete_block(block["id"])

        blocks = markdown_to_blocks(content)
        if blocks:
            self.client.append_children(page_id, blocks)

    def archive_page(self, page_id: str) -> None:
        self.client.archive_page(page_id)
