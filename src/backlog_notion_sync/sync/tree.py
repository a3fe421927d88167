"""Source tree construction from a Backlog project's documents.

The preferred path is the native ``documents/tree`` endpoint, whose
entries are normalised directly into ``TreeNode`` objects.  Spaces that do
not offer it (404) or return something unexpected fall back to rebuilding
the hierarchy from the flat document listing:

1. Page through ``/documents`` until a page comes back empty.
2. Fetch each document's detail record.  A failed detail fetch downgrades
   the document to its listing fields; it is never dropped.
3. Classify a document as folder-like when its structured body contains a
   ``childlist`` block.  Folder-like documents only become pages when the
   layout names them as folders.
4. Assemble the forest from the configured layout rules (see
   ``assemble_tree``).  The listing carries no parent/child linkage, so the
   layout is a title-based heuristic rather than the real hierarchy.

Nodes without a usable title are dropped everywhere.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..config_schema import SyncConfig
from ..core.backlog import BacklogClient
from ..errors import FetchError, NotFoundError, SyncError
from .models import NodeKind, SourceDocument, TreeNode

logger = logging.getLogger(__name__)

_DATETIME = TypeAdapter(datetime)

CHILDLIST_BLOCK = "childlist"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an API timestamp; missing or unparsable values give ``None``."""
    if value in (None, ""):
        return None
    try:
        return _DATETIME.validate_python(value)
    except PydanticValidationError:
        logger.debug("Ignoring unparsable timestamp %r", value)
        return None


def _title_of(entry: dict[str, Any]) -> str:
    title = entry.get("title") or entry.get("name") or ""
    return title if isinstance(title, str) and title.strip() else ""


# ------------------------------------------------------------------
# Native tree
# ------------------------------------------------------------------


def tree_entries(payload: Any) -> list[Any] | None:
    """Return the list of top-level entries in a tree payload.

    Accepts a bare array or Backlog's ``{"activeTree": {"children": [...]}}``
    shape whose items are all objects; anything else is malformed and
    yields ``None``.
    """
    entries = None
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict):
        active = payload.get("activeTree")
        if isinstance(active, dict) and isinstance(
            active.get("children"), list
        ):
            entries = active["children"]
    if entries is None or not all(isinstance(e, dict) for e in entries):
        return None
    return entries


def parse_tree(entries: Iterable[Any]) -> list[TreeNode]:
    """Recursively normalise native tree entries into ``TreeNode`` objects.

    An entry is a folder when it has a non-empty ``children`` list or an
    explicit ``type: folder`` marker.
    """
    nodes: list[TreeNode] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        title = _title_of(entry)
        if not title:
            logger.debug("Dropping untitled tree entry %s", entry.get("id"))
            continue

        raw_children = entry.get("children")
        children = (
            parse_tree(raw_children) if isinstance(raw_children, list) else []
        )
        is_folder = entry.get("type") == "folder" or bool(raw_children)

        nodes.append(
            TreeNode(
                id=str(entry.get("id", "")),
                title=title,
                kind=NodeKind.FOLDER if is_folder else NodeKind.DOCUMENT,
                updated_at=parse_timestamp(entry.get("updated")),
                created_at=parse_timestamp(entry.get("created")),
                children=children if is_folder else [],
            )
        )
    return nodes


# ------------------------------------------------------------------
# Flat listing
# ------------------------------------------------------------------


def is_folder_like(record: dict[str, Any]) -> bool:
    """Return ``True`` when the record's structured body has a child list."""
    body = record.get("json")
    if not isinstance(body, dict):
        return False
    content = body.get("content")
    if not isinstance(content, list):
        return False
    return any(
        isinstance(item, dict) and item.get("type") == CHILDLIST_BLOCK
        for item in content
    )


def assemble_tree(
    records: list[dict[str, Any]], layout: SyncConfig
) -> list[TreeNode]:
    """Build a forest from flat document records using *layout*.

    Placement, in order of precedence:

    1. Records titled like a ``folder_children`` key become folders at the
       root, in listing order.
    2. The first record for each ``root_titles`` entry is placed at the
       root, even if a folder lists it.
    3. Each folder receives the first record for each of its child titles
       not already placed.
    4. Every remaining record goes to the root, in listing order.

    Steps 2 to 4 only place document-like records.  A folder-like record
    that is not a ``folder_children`` key is a container with no page of
    its own, so it is dropped.

    Args:
        records: Listing entries merged with their detail records.
        layout: Layout rules.

    Returns:
        Root nodes; folders carry their assigned children.
    """
    titled = [r for r in records if _title_of(r)]
    dropped = len(records) - len(titled)
    if dropped:
        logger.debug("Dropped %d untitled documents", dropped)

    first_by_title: dict[str, dict[str, Any]] = {}
    for record in titled:
        first_by_title.setdefault(_title_of(record), record)

    placed: set[int] = set()

    folder_roots = [r for r in titled if _title_of(r) in layout.folder_children]
    placed.update(id(r) for r in folder_roots)

    def _claim(title: str) -> dict[str, Any] | None:
        record = first_by_title.get(title)
        if record is None or id(record) in placed or is_folder_like(record):
            return None
        placed.add(id(record))
        return record

    forced_roots = [
        record
        for record in map(_claim, layout.root_titles)
        if record is not None
    ]

    folder_members: dict[int, list[dict[str, Any]]] = {}
    for folder in folder_roots:
        folder_members[id(folder)] = [
            record
            for record in map(_claim, layout.folder_children[_title_of(folder)])
            if record is not None
        ]

    remaining: list[dict[str, Any]] = []
    for record in titled:
        if id(record) in placed:
            continue
        if is_folder_like(record):
            logger.debug("Dropping container document %s", _title_of(record))
            continue
        remaining.append(record)

    def _node(
        record: dict[str, Any],
        kind: NodeKind = NodeKind.DOCUMENT,
        children: list[TreeNode] | None = None,
    ) -> TreeNode:
        return TreeNode(
            id=str(record.get("id", "")),
            title=_title_of(record),
            kind=kind,
            updated_at=parse_timestamp(record.get("updated")),
            created_at=parse_timestamp(record.get("created")),
            children=children or [],
        )

    roots: list[TreeNode] = [
        _node(
            folder,
            NodeKind.FOLDER,
            [_node(member) for member in folder_members[id(folder)]],
        )
        for folder in folder_roots
    ]
    roots.extend(_node(record) for record in forced_roots)
    roots.extend(_node(record) for record in remaining)
    return roots


class SourceTreeBuilder:
    """Build the normalised source tree for a Backlog project.

    Args:
        client: Backlog API client.
        layout: Layout rules for the flat-listing fallback.
        page_size: Documents requested per listing page.
    """

    def __init__(
        self,
        client: BacklogClient,
        layout: SyncConfig | None = None,
        page_size: int = 100,
    ) -> None:
        self.client = client
        self.layout = layout or SyncConfig()
        self.page_size = page_size

    def build_tree(self, project_key: str) -> list[TreeNode]:
        """Return the document forest of *project_key*.

        Raises:
            FetchError: If the project cannot be resolved.
        """
        try:
            project = self.client.get_project(project_key)
        except SyncError as exc:
            raise FetchError(
                f"Cannot resolve Backlog project '{project_key}': {exc}"
            ) from exc
        project_id = project["id"]

        tree = self._fetch_native_tree(project_id)
        if tree is not None:
            logger.info("Using native document tree (%d root nodes)", len(tree))
            return tree

        return self._build_from_listing(project_id)

    def fetch_document(self, document_id: str) -> SourceDocument:
        """Fetch the full content of one document."""
        detail = self.client.get_document(document_id)
        return SourceDocument(
            id=str(detail.get("id", document_id)),
            title=detail.get("title") or "",
            content=detail.get("plain") or "",
            updated_at=parse_timestamp(detail.get("updated")),
            created_at=parse_timestamp(detail.get("created")),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fetch_native_tree(self, project_id: Any) -> list[TreeNode] | None:
        try:
            payload = self.client.get_document_tree(project_id)
        except NotFoundError:
            logger.info(
                "Document tree endpoint not found, rebuilding from the flat listing"
            )
            return None
        except SyncError as exc:
            logger.warning(
                "Document tree fetch failed, rebuilding from the flat listing: %s",
                exc,
            )
            return None

        entries = tree_entries(payload)
        if entries is None:
            logger.warning(
                "Document tree response is malformed (%s), "
                "rebuilding from the flat listing",
                type(payload).__name__,
            )
            return None
        return parse_tree(entries)

    def _list_all_documents(self, project_id: Any) -> list[dict[str, Any]]:
        documents: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = self.client.list_documents(
                project_id, offset, self.page_size
            )
            if not page:
                return documents
            documents.extend(page)
            offset += len(page)

    def _with_detail(self, entry: dict[str, Any]) -> dict[str, Any]:
        try:
            detail = self.client.get_document(str(entry.get("id")))
        except SyncError as exc:
            logger.warning(
                "Could not fetch detail of document %s (%s), "
                "using listing fields",
                entry.get("id"),
                exc,
            )
            return dict(entry)
        return {**entry, **detail}

    def _build_from_listing(self, project_id: Any) -> list[TreeNode]:
        listed = self._list_all_documents(project_id)
        logger.info("Fetched %d documents from the flat listing", len(listed))
        records = [self._with_detail(entry) for entry in listed]
        return assemble_tree(records, self.layout)
