"""Path keys: the only correlation between source nodes and Notion pages.

A node's path key is the slash-joined chain of ancestor titles followed by
its own title, e.g. ``"Specs/API"``.  Matching is exact string equality:
case-sensitive, no Unicode normalisation.  Two siblings sharing a title
produce the same key; the later one wins wherever keys are stored.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import TreeNode

PATH_SEPARATOR = "/"


def join_path(prefix: str, title: str) -> str:
    """Append *title* to *prefix*; an empty prefix yields *title*."""
    return f"{prefix}{PATH_SEPARATOR}{title}" if prefix else title


def iter_paths(
    nodes: Iterable[TreeNode], prefix: str = ""
) -> Iterator[tuple[str, TreeNode]]:
    """Yield ``(path, node)`` for every node, depth-first pre-order."""
    for node in nodes:
        path = join_path(prefix, node.title)
        yield path, node
        yield from iter_paths(node.children, path)


def collect_paths(nodes: Iterable[TreeNode]) -> frozenset[str]:
    """Return the path keys of every node in the tree."""
    return frozenset(path for path, _ in iter_paths(nodes))


def is_forced(path: str, force_update_paths: Iterable[str]) -> bool:
    """Return ``True`` if *path* ends with any configured suffix."""
    return any(path.endswith(suffix) for suffix in force_update_paths if suffix)
