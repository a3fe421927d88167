from typing import Any

import requests

from ..config import Config
from ..errors import TransportError
from .http import send

SERVICE = "Backlog"


class BacklogClient:
    """Read-only client for the Backlog v2 document API.

    Authentication uses the ``apiKey`` query parameter on every request.
    """

    def __init__(self, config: Config):
        self.config = config
        self.base_url = self._get_base_url()
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _get_base_url(self) -> str:
        return f"https://{self.config.backlog_domain}/api/v2"

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({"Accept": "application/json"})
        return session

    def _get(self, path: str, params: list[tuple[str, Any]] | None = None):
        query = list(params or [])
        query.append(("apiKey", self.config.backlog_api_key))
        return send(
            self.session,
            "GET",
            f"{self.base_url}{path}",
            SERVICE,
            params=query,
        )

    def get_project(self, project_key: str) -> dict[str, Any]:
        """
        Resolve a project key (or numeric id) to the project record.

        Raises:
            NotFoundError: If the project does not exist.
        """
        project = self._get(f"/projects/{project_key}")
        if not isinstance(project, dict) or "id" not in project:
            raise TransportError(
                f"Malformed project record for '{project_key}'"
            )
        return project

    def get_document_tree(self, project_id: int | str) -> Any:
        """
        Fetch the native document tree of a project.

        The payload is returned undecoded; spaces without the tree endpoint
        answer with 404 (``NotFoundError``).
        """
        return self._get(f"/projects/{project_id}/documents/tree")

    def list_documents(
        self, project_id: int | str, offset: int, count: int = 100
    ) -> list[dict[str, Any]]:
        """
        Fetch one page of the flat document listing.

        An empty list marks the end of the listing.
        """
        page = self._get(
            "/documents",
            [
                ("projectId[]", project_id),
                ("offset", offset),
                ("count", count),
            ],
        )
        if not isinstance(page, list):
            raise TransportError(
                f"Malformed document listing at offset {offset}"
            )
        return page

    def get_document(self, document_id: str) -> dict[str, Any]:
        """
        Fetch the full record of one document, including ``plain`` text
        and the structured ``json`` body.
        """
        document = self._get(f"/documents/{document_id}")
        if not isinstance(document, dict):
            raise TransportError(
                f"Malformed document record for '{document_id}'"
            )
        return document
