from typing import Any

import requests

from ..config import Config
from ..errors import TransportError
from .http import send

SERVICE = "Notion"
NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Notion rejects appends of more than 100 blocks per request
MAX_BLOCKS_PER_APPEND = 100


class NotionClient:
    """Thin client over the Notion REST endpoints used for mirroring."""

    def __init__(self, config: Config):
        self.config = config
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.notion_token}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            }
        )
        return session

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        return send(
            self.session,
            method,
            f"{NOTION_API_URL}{path}",
            SERVICE,
            **kwargs,
        )

    def list_children(self, block_id: str) -> list[dict[str, Any]]:
        """
        List every child block of a page or block, following pagination.
        """
        blocks: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"page_size": 100}
            if cursor:
                params["start_cursor"] = cursor
            body = self._call(
                "GET", f"/blocks/{block_id}/children", params=params
            )
            if not isinstance(body, dict) or not isinstance(
                body.get("results"), list
            ):
                raise TransportError(
                    f"Malformed child listing for block {block_id}"
                )
            blocks.extend(body["results"])
            cursor = body.get("next_cursor")
            if not body.get("has_more") or not cursor:
                return blocks

    def get_page(self, page_id: str) -> dict[str, Any]:
        """Retrieve a page object (properties and timestamps)."""
        return self._call("GET", f"/pages/{page_id}")

    def create_page(self, parent_id: str, title: str) -> str:
        """
        Create an empty child page titled *title* under *parent_id*.

        Returns:
            The new page id.
        """
        body = self._call(
            "POST",
            "/pages",
            json={
                "parent": {"page_id": parent_id},
                "properties": {
                    "title": {
                        "title": [{"text": {"content": title}}]
                    }
                },
            },
        )
        if not isinstance(body, dict) or "id" not in body:
            raise TransportError(f"Malformed page create response for '{title}'")
        return body["id"]

    def append_children(
        self, block_id: str, children: list[dict[str, Any]]
    ) -> None:
        """Append blocks to a page, in chunks the API accepts."""
        for start in range(0, len(children), MAX_BLOCKS_PER_APPEND):
            chunk = children[start : start + MAX_BLOCKS_PER_APPEND]
            self._call(
                "PATCH",
                f"/blocks/{block_id}/children",
                json={"children": chunk},
            )

    def delete_block(self, block_id: str) -> None:
        self._call("DELETE", f"/blocks/{block_id}")

    def archive_page(self, page_id: str) -> None:
        """Soft-delete a page (moves it to the trash)."""
        self._call("PATCH", f"/pages/{page_id}", json={"archived": True})
