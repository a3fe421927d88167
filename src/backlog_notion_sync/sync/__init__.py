"""One-way Backlog -> Notion tree sync engine.

Public API for mirroring a Backlog project's documents into a Notion page
tree.

Architecture
------------
Titles are the only correlation key between the two services.  Each node
is addressed by its *path key*, the slash-joined titles from the root down
to the node.  There is no local state: the Notion tree itself is what the
next run compares against.

Modules:

- ``tree``        -- ``SourceTreeBuilder``: native tree or heuristic
  rebuild from the flat listing.
- ``destination`` -- ``build_path_map`` and ``DestinationMutator``.
- ``engine``      -- ``SyncEngine``: create / update / skip / delete.
- ``layout``      -- path key helpers.
- ``models``      -- ``TreeNode``, ``DestinationPage``, ``SyncAction``,
  ``SyncResult``, ``SyncReport``: core data contracts.
- ``reporter``    -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from backlog_notion_sync.config_schema import SyncConfig
    from backlog_notion_sync.core import BacklogClient, NotionClient
    from backlog_notion_sync.sync import SourceTreeBuilder, SyncEngine

    policy = SyncConfig(force_update_paths=["Status definitions"])
    engine = SyncEngine(
        source=SourceTreeBuilder(BacklogClient(config), layout=policy),
        notion=NotionClient(config),
        policy=policy,
    )

    preview = engine.run("PROJ", config.notion_parent_page_id, dry_run=True)
    print(format_dry_run_preview(preview))
"""

from .destination import DestinationMutator, build_path_map
from .engine import SyncEngine
from .models import (
    DestinationPage,
    NodeKind,
    SourceDocument,
    SyncAction,
    SyncReport,
    SyncResult,
    TreeNode,
)
from .reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .tree import SourceTreeBuilder

__all__ = [
    "DestinationMutator",
    "DestinationPage",
    "NodeKind",
    "SourceDocument",
    "SourceTreeBuilder",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "SyncResult",
    "TreeNode",
    "build_path_map",
    "format_dry_run_preview",
    "format_sync_report",
    "report_to_json",
]
