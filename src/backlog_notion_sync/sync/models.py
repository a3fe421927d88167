"""Pydantic models for the Backlog -> Notion sync engine.

Defines the core data contracts used across all sync modules:

- ``NodeKind``: folder or document.
- ``TreeNode``: one node of the normalised source tree.
- ``SourceDocument``: full content of one source document.
- ``DestinationPage``: one page found under the destination root.
- ``SyncAction``: Enum of possible sync operations.
- ``SyncResult``: Outcome of syncing one path.
- ``SyncReport``: Aggregate results for a full sync run.

All models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(value: datetime | None) -> datetime:
    """Return *value* as an aware UTC datetime; ``None`` becomes the epoch.

    Naive datetimes are taken to be UTC.
    """
    if value is None:
        return EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class NodeKind(str, Enum):
    """Kind of a source tree node."""

    FOLDER = "folder"
    DOCUMENT = "document"


class TreeNode(BaseModel):
    """A folder or document in the source tree.

    Attributes:
        id: Source document id.
        title: Display name; also the node's path segment.
        kind: Folder or document.
        updated_at: Last modification time, often missing for folders.
        created_at: Creation time.
        children: Child nodes, in source order (always empty for documents).
    """

    id: str
    title: str
    kind: NodeKind = NodeKind.DOCUMENT
    updated_at: datetime | None = None
    created_at: datetime | None = None
    children: list[TreeNode] = []

    model_config = {"frozen": True}

    @property
    def is_folder(self) -> bool:
        return self.kind == NodeKind.FOLDER


class SourceDocument(BaseModel):
    """Full record of one source document.

    Attributes:
        id: Source document id.
        title: Document title.
        content: Plain-text (Markdown-like) body.
        updated_at: Last modification time.
        created_at: Creation time.
    """

    id: str
    title: str = ""
    content: str = ""
    updated_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"frozen": True}


class DestinationPage(BaseModel):
    """A page under the destination root.

    Attributes:
        id: Notion page id.
        title: Page title.
        last_edited_at: Notion ``last_edited_time``.
    """

    id: str
    title: str
    last_edited_at: datetime

    model_config = {"frozen": True}


class SyncAction(str, Enum):
    """Possible sync operations for one path."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    DELETE = "delete"


class SyncResult(BaseModel):
    """Result of syncing one path.

    Attributes:
        path: Slash-joined title path of the node.
        action: Sync action that was performed (or attempted).
        kind: Source node kind; ``None`` for orphan deletions.
        page_id: Destination page id, when known.
        success: Whether the operation succeeded.
        error: Error message if the operation failed.
    """

    path: str
    action: SyncAction
    kind: NodeKind | None = None
    page_id: str | None = None
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        project_key: Backlog project that was mirrored.
        root_page_id: Notion page receiving the tree.
        dry_run: Whether this was a dry-run (no changes applied).
        results: Individual sync results in processing order.
        started_at: ISO 8601 timestamp when sync started.
        completed_at: ISO 8601 timestamp when sync completed.
    """

    project_key: str
    root_page_id: str
    dry_run: bool = False
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [r for r in self.results if r.action == action and r.success]

    @property
    def created(self) -> list[SyncResult]:
        """Successful CREATE results."""
        return self._with_action(SyncAction.CREATE)

    @property
    def updated(self) -> list[SyncResult]:
        """Successful UPDATE results."""
        return self._with_action(SyncAction.UPDATE)

    @property
    def skipped(self) -> list[SyncResult]:
        """SKIP results."""
        return self._with_action(SyncAction.SKIP)

    @property
    def deleted(self) -> list[SyncResult]:
        """Successful DELETE results."""
        return self._with_action(SyncAction.DELETE)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def summary(self) -> str:
        """Format a short multi-line summary with counts by action."""
        lines = [
            f"Sync report for project '{self.project_key}'"
            + (" (dry run)" if self.dry_run else ""),
            f"  Created: {len(self.created)}",
            f"  Updated: {len(self.updated)}",
            f"  Skipped: {len(self.skipped)}",
            f"  Deleted: {len(self.deleted)}",
            f"  Errors:  {len(self.errors)}",
            f"  Total:   {len(self.results)}",
        ]
        return "\n".join(lines)
