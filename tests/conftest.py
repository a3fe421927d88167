"""Shared pytest fixtures for backlog-notion-sync tests."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any
from unittest.mock import Mock

import pytest

from backlog_notion_sync.config import Config
from backlog_notion_sync.errors import NotFoundError

ROOT_PAGE_ID = "00000000-0000-0000-0000-000000000000"
NOW = datetime(2030, 1, 1, tzinfo=timezone.utc)


class FakeBacklogClient:
    """In-memory stand-in for ``BacklogClient``.

    Args:
        project: Project record; ``None`` makes ``get_project`` fail.
        tree: Native tree payload; ``None`` means the endpoint 404s.
        tree_error: Exception raised by ``get_document_tree`` instead.
        listing: Flat document listing, sliced by offset/count.
        documents: Detail records by document id.
    """

    def __init__(
        self,
        project: dict | None = None,
        tree: Any = None,
        tree_error: Exception | None = None,
        listing: list[dict] | None = None,
        documents: dict[str, dict] | None = None,
    ) -> None:
        self.project = project if project is not None else {"id": 42}
        self.tree = tree
        self.tree_error = tree_error
        self.listing = listing or []
        self.documents = documents or {}
        self.list_calls: list[int] = []
        self.detail_calls: list[str] = []

    def get_project(self, project_key: str) -> dict:
        if not self.project:
            raise NotFoundError(f"project {project_key} not found")
        return self.project

    def get_document_tree(self, project_id):
        if self.tree_error is not None:
            raise self.tree_error
        if self.tree is None:
            raise NotFoundError("tree endpoint not found")
        return self.tree

    def list_documents(self, project_id, offset: int, count: int = 100):
        self.list_calls.append(offset)
        return [dict(d) for d in self.listing[offset : offset + count]]

    def get_document(self, document_id: str) -> dict:
        self.detail_calls.append(document_id)
        if document_id not in self.documents:
            raise NotFoundError(f"document {document_id} not found")
        return dict(self.documents[document_id])


class FakeNotionClient:
    """In-memory stand-in for ``NotionClient``.

    Pages live in ``self.pages``; the block children of every page (child
    page blocks and content blocks) live in ``self.children``.  Every
    mutating call is recorded in ``self.calls`` and stamps the page with
    ``NOW`` as its last edit time.
    """

    def __init__(self, root_id: str = ROOT_PAGE_ID) -> None:
        self.root_id = root_id
        self.pages: dict[str, dict] = {}
        self.children: dict[str, list[dict]] = {root_id: []}
        self.calls: list[tuple] = []
        self.missing_pages: set[str] = set()
        self._ids = itertools.count(1)

    # -- setup helpers -------------------------------------------------

    def add_page(
        self,
        parent_id: str,
        title: str,
        last_edited: str | datetime = NOW,
        page_id: str | None = None,
    ) -> str:
        page_id = page_id or f"page-{next(self._ids)}"
        if isinstance(last_edited, datetime):
            last_edited = last_edited.isoformat()
        self.pages[page_id] = {
            "title": title,
            "parent": parent_id,
            "last_edited_time": last_edited,
            "archived": False,
        }
        self.children.setdefault(page_id, [])
        self.children.setdefault(parent_id, []).append(
            {"id": page_id, "type": "child_page"}
        )
        return page_id

    def add_text(self, page_id: str, text: str) -> str:
        block_id = f"block-{next(self._ids)}"
        self.children[page_id].append(
            {"id": block_id, "type": "paragraph", "text": text}
        )
        return block_id

    def calls_named(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def path_of(self, page_id: str) -> str:
        parts = []
        while page_id in self.pages:
            parts.append(self.pages[page_id]["title"])
            page_id = self.pages[page_id]["parent"]
        return "/".join(reversed(parts))

    def _touch(self, page_id: str) -> None:
        if page_id in self.pages:
            self.pages[page_id]["last_edited_time"] = NOW.isoformat()

    # -- client API ----------------------------------------------------

    def list_children(self, block_id: str) -> list[dict]:
        if block_id not in self.children:
            raise NotFoundError(f"block {block_id} not found")
        return [dict(b) for b in self.children[block_id]]

    def get_page(self, page_id: str) -> dict:
        if page_id in self.missing_pages or page_id not in self.pages:
            raise NotFoundError(f"page {page_id} not found")
        page = self.pages[page_id]
        return {
            "object": "page",
            "id": page_id,
            "archived": page["archived"],
            "last_edited_time": page["last_edited_time"],
            "properties": {
                "title": {
                    "id": "title",
                    "type": "title",
                    "title": [{"plain_text": page["title"]}],
                }
            },
        }

    def create_page(self, parent_id: str, title: str) -> str:
        self.calls.append(("create_page", parent_id, title))
        return self.add_page(parent_id, title)

    def append_children(self, block_id: str, children: list[dict]) -> None:
        self.calls.append(("append_children", block_id, children))
        for child in children:
            self.children[block_id].append(
                {"id": f"block-{next(self._ids)}", "type": child["type"]}
            )
        self._touch(block_id)

    def delete_block(self, block_id: str) -> None:
        self.calls.append(("delete_block", block_id))
        for owner, blocks in self.children.items():
            for block in blocks:
                if block["id"] == block_id:
                    blocks.remove(block)
                    self._touch(owner)
                    return

    def archive_page(self, page_id: str) -> None:
        self.calls.append(("archive_page", page_id))
        if page_id not in self.pages:
            raise NotFoundError(f"page {page_id} not found")
        page = self.pages[page_id]
        page["archived"] = True
        siblings = self.children.get(page["parent"], [])
        self.children[page["parent"]] = [
            b for b in siblings if b["id"] != page_id
        ]


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        backlog_domain="example.backlog.com",
        backlog_api_key="backlog-key",
        backlog_project_key="PROJ",
        notion_token="secret_notion",
        notion_parent_page_id=ROOT_PAGE_ID,
    )


@pytest.fixture
def notion():
    return FakeNotionClient()


@pytest.fixture
def mock_response():
    """Factory fixture for creating ``requests.Response`` mocks."""

    def _create_response(status_code=200, body=None, json_error=False):
        response = Mock()
        response.status_code = status_code
        if json_error:
            response.json.side_effect = ValueError("No JSON object")
        else:
            response.json.return_value = body
        return response

    return _create_response
