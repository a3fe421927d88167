"""Reconciliation engine that mirrors a source tree into Notion.

The ``SyncEngine`` ties the source tree builder, the destination reader and
the destination mutator into a complete run.  It:

1. Builds the source tree (a failure to resolve the project aborts).
2. Reads the destination tree into a path map, to completion, before any
   mutation happens.
3. Walks the source tree depth-first, pre-order, creating or resolving
   each folder page before its children are processed.
4. Creates documents missing in Notion and rewrites those whose source
   is newer than the page (or whose path is force-updated).
5. Optionally archives destination pages whose path no longer exists in
   the source.
6. Builds and returns a ``SyncReport``.

Every remote call is made once, sequentially.  Error handling is per node:
a ``SyncError`` on one page is recorded in the report and the run moves
on.  A folder that cannot be created takes its subtree with it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone

from ..config_schema import SyncConfig
from ..core.notion import NotionClient
from ..errors import SyncError
from .destination import DestinationMutator, build_path_map
from .layout import collect_paths, is_forced, iter_paths, join_path
from .models import (
    DestinationPage,
    NodeKind,
    SourceDocument,
    SyncAction,
    SyncReport,
    SyncResult,
    TreeNode,
    as_utc,
)
from .tree import SourceTreeBuilder

logger = logging.getLogger(__name__)

PathMap = Mapping[str, DestinationPage]


class SyncEngine:
    """Mirror one Backlog project into one Notion page tree.

    Args:
        source: Builder for the source tree; also fetches document content.
        notion: Notion client used to read the destination tree.
        policy: Reconciliation policy (force-update suffixes, orphan
            deletion, folder content push).
        mutator: Destination writer; defaults to one over *notion*.
    """

    def __init__(
        self,
        source: SourceTreeBuilder,
        notion: NotionClient,
        policy: SyncConfig | None = None,
        mutator: DestinationMutator | None = None,
    ) -> None:
        self.source = source
        self.notion = notion
        self.policy = policy or SyncConfig()
        self.mutator = mutator or DestinationMutator(notion)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self, project_key: str, root_page_id: str, dry_run: bool = False
    ) -> SyncReport:
        """Execute a full sync run.

        Args:
            project_key: Backlog project to mirror.
            root_page_id: Notion page that receives the tree.
            dry_run: If ``True``, compute actions but do not execute them.

        Returns:
            A ``SyncReport`` summarising what was (or would be) done.

        Raises:
            FetchError: If the source project cannot be resolved.
            TransportError: If either tree cannot be read.
            ValidationError: If a destination page lacks its edit time.
        """
        started_at = datetime.now(timezone.utc).isoformat()

        logger.info("Fetching document tree for project %s", project_key)
        tree = self.source.build_tree(project_key)
        logger.info(
            "Source tree has %d nodes", sum(1 for _ in iter_paths(tree))
        )

        logger.info("Reading destination pages under %s", root_page_id)
        path_map = build_path_map(self.notion, root_page_id)
        logger.info("Found %d existing pages", len(path_map))

        results = self.reconcile(tree, root_page_id, path_map, dry_run)

        report = SyncReport(
            project_key=project_key,
            root_page_id=root_page_id,
            dry_run=dry_run,
            results=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Sync finished: %s", report.summary().replace("\n", ";"))
        return report

    def reconcile(
        self,
        tree: list[TreeNode],
        root_page_id: str,
        path_map: PathMap,
        dry_run: bool = False,
    ) -> list[SyncResult]:
        """Bring the destination in line with *tree*.

        Args:
            tree: Source forest.
            root_page_id: Destination page that holds the top-level nodes.
            path_map: Existing destination pages keyed by path.
            dry_run: Compute results without calling the mutator.

        Returns:
            One result per processed node, then one per orphan.
        """
        results: list[SyncResult] = []
        self._sync_nodes(tree, root_page_id, "", path_map, dry_run, results)
        if self.policy.delete_orphans:
            results.extend(self._delete_orphans(tree, path_map, dry_run))
        return results

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _sync_nodes(
        self,
        nodes: list[TreeNode],
        parent_id: str | None,
        prefix: str,
        path_map: PathMap,
        dry_run: bool,
        results: list[SyncResult],
    ) -> None:
        for node in nodes:
            path = join_path(prefix, node.title)
            if node.is_folder:
                self._sync_folder(
                    node, parent_id, path, path_map, dry_run, results
                )
            else:
                results.append(
                    self._sync_document(
                        node, parent_id, path, path_map, dry_run
                    )
                )

    def _sync_folder(
        self,
        node: TreeNode,
        parent_id: str | None,
        path: str,
        path_map: PathMap,
        dry_run: bool,
        results: list[SyncResult],
    ) -> None:
        page = path_map.get(path)

        if page is not None:
            page_id: str | None = page.id
            results.append(
                self._sync_folder_content(node, path, page, dry_run)
            )
        else:
            logger.info("create: %s", path)
            page_id = None
            if not dry_run:
                try:
                    page_id = self.mutator.create_child_page(
                        parent_id, node.title
                    )
                except SyncError as exc:
                    results.append(
                        self._failure(
                            path, SyncAction.CREATE, NodeKind.FOLDER, exc
                        )
                    )
                    logger.error("Skipping contents of %s", path)
                    return
            results.append(
                SyncResult(
                    path=path,
                    action=SyncAction.CREATE,
                    kind=NodeKind.FOLDER,
                    page_id=page_id,
                )
            )
            if self.policy.sync_folder_content and page_id is not None:
                failure = self._fill_new_folder(node, path, page_id)
                if failure is not None:
                    results.append(failure)

        self._sync_nodes(
            node.children, page_id, path, path_map, dry_run, results
        )

    def _sync_folder_content(
        self,
        node: TreeNode,
        path: str,
        page: DestinationPage,
        dry_run: bool,
    ) -> SyncResult:
        """Refresh the own text of an existing folder page when stale."""
        skip = SyncResult(
            path=path,
            action=SyncAction.SKIP,
            kind=NodeKind.FOLDER,
            page_id=page.id,
        )
        if not self.policy.sync_folder_content:
            return skip

        # Dry runs read the folder document too; only writes are skipped
        document = self._folder_document(node, path)
        if document is None or not document.content.strip():
            return skip

        updated_at = node.updated_at or document.updated_at
        forced = is_forced(path, self.policy.force_update_paths)
        if not (forced or self._is_newer(updated_at, page)):
            logger.debug("skip: %s (folder unchanged)", path)
            return skip

        logger.info("update: %s", path)
        if not dry_run:
            try:
                self.mutator.replace_page_content(page.id, document.content)
            except SyncError as exc:
                return self._failure(
                    path, SyncAction.UPDATE, NodeKind.FOLDER, exc, page.id
                )
        return skip.model_copy(update={"action": SyncAction.UPDATE})

    def _fill_new_folder(
        self, node: TreeNode, path: str, page_id: str
    ) -> SyncResult | None:
        document = self._folder_document(node, path)
        if document is None or not document.content.strip():
            return None
        try:
            self.mutator.replace_page_content(page_id, document.content)
        except SyncError as exc:
            failure = self._failure(
                path, SyncAction.UPDATE, NodeKind.FOLDER, exc, page_id
            )
            # Kept: the subtree hangs off this page
            return failure.model_copy(
                update={
                    "error": f"{exc} (folder page kept without its text; "
                    "add the path to force_update_paths to rewrite it)"
                }
            )
        return None

    def _folder_document(
        self, node: TreeNode, path: str
    ) -> SourceDocument | None:
        # Pure folders have no document behind them
        try:
            return self.source.fetch_document(node.id)
        except SyncError as exc:
            logger.debug("No source content for folder %s: %s", path, exc)
            return None

    def _sync_document(
        self,
        node: TreeNode,
        parent_id: str | None,
        path: str,
        path_map: PathMap,
        dry_run: bool,
    ) -> SyncResult:
        page = path_map.get(path)

        if page is None:
            logger.info("create: %s", path)
            if dry_run:
                return SyncResult(
                    path=path, action=SyncAction.CREATE, kind=NodeKind.DOCUMENT
                )
            page_id = None
            try:
                document = self.source.fetch_document(node.id)
                page_id = self.mutator.create_child_page(parent_id, node.title)
                self.mutator.replace_page_content(page_id, document.content)
            except SyncError as exc:
                if page_id is not None:
                    page_id = self._discard_partial_page(path, page_id)
                return self._failure(
                    path, SyncAction.CREATE, NodeKind.DOCUMENT, exc, page_id
                )
            return SyncResult(
                path=path,
                action=SyncAction.CREATE,
                kind=NodeKind.DOCUMENT,
                page_id=page_id,
            )

        if is_forced(
            path, self.policy.force_update_paths
        ) or self._is_newer(node.updated_at, page):
            logger.info("update: %s", path)
            if not dry_run:
                try:
                    document = self.source.fetch_document(node.id)
                    self.mutator.replace_page_content(page.id, document.content)
                except SyncError as exc:
                    return self._failure(
                        path, SyncAction.UPDATE, NodeKind.DOCUMENT, exc, page.id
                    )
            return SyncResult(
                path=path,
                action=SyncAction.UPDATE,
                kind=NodeKind.DOCUMENT,
                page_id=page.id,
            )

        logger.info("skip: %s (unchanged)", path)
        return SyncResult(
            path=path,
            action=SyncAction.SKIP,
            kind=NodeKind.DOCUMENT,
            page_id=page.id,
        )

    # ------------------------------------------------------------------
    # Orphans
    # ------------------------------------------------------------------

    def _delete_orphans(
        self, tree: list[TreeNode], path_map: PathMap, dry_run: bool
    ) -> list[SyncResult]:
        """Archive destination pages whose path is absent from *tree*."""
        source_paths = collect_paths(tree)
        orphans = [
            (path, page)
            for path, page in path_map.items()
            if path not in source_paths
        ]
        if not orphans:
            logger.info("No orphaned pages")
            return []

        logger.info("Found %d orphaned pages", len(orphans))
        results: list[SyncResult] = []
        for path, page in orphans:
            logger.info("delete: %s", path)
            if not dry_run:
                try:
                    self.mutator.archive_page(page.id)
                except SyncError as exc:
                    results.append(
                        self._failure(
                            path, SyncAction.DELETE, None, exc, page.id
                        )
                    )
                    continue
            results.append(
                SyncResult(
                    path=path, action=SyncAction.DELETE, page_id=page.id
                )
            )
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _discard_partial_page(self, path: str, page_id: str) -> str | None:
        """Archive a page whose content could not be written.

        An empty page left in place would look newer than its source and
        be skipped by later runs.  Returns the id when it is still live.
        """
        try:
            self.mutator.archive_page(page_id)
        except SyncError as exc:
            logger.error(
                "Could not archive empty page %s for %s: %s", page_id, path, exc
            )
            return page_id
        logger.info("Archived empty page for %s", path)
        return None

    @staticmethod
    def _is_newer(
        source_updated: datetime | None, page: DestinationPage
    ) -> bool:
        """Missing source timestamps count as older than any page."""
        return as_utc(source_updated) > as_utc(page.last_edited_at)

    @staticmethod
    def _failure(
        path: str,
        action: SyncAction,
        kind: NodeKind | None,
        exc: SyncError,
        page_id: str | None = None,
    ) -> SyncResult:
        logger.error("%s failed for %s: %s", action.value, path, exc)
        return SyncResult(
            path=path,
            action=action,
            kind=kind,
            page_id=page_id,
            success=False,
            error=str(exc),
        )
