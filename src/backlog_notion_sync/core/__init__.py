"""HTTP clients for the source (Backlog) and destination (Notion) services."""

from .backlog import BacklogClient
from .notion import NotionClient

__all__ = ["BacklogClient", "NotionClient"]
