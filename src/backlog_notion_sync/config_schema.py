"""Unified configuration schema for backlog_notion_sync.

Defines Pydantic models for the config file structure with dedicated
sections for the Backlog source, the Notion destination, tree layout
rules used by the sync engine, and logging.

Usage:
    from backlog_notion_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    layout = unified.sync
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BacklogConfig(BaseModel):
    """Backlog (source) connection settings.

    All fields are optional here: env vars and CLI args can supply them at
    runtime instead.
    """

    domain: str | None = Field(
        default=None, description="Backlog space domain, e.g. example.backlog.com"
    )
    api_key: str | None = Field(default=None, description="Backlog API key")
    project_key: str | None = Field(
        default=None, description="Backlog project key"
    )
    page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Documents requested per listing page (1-100)",
    )

    model_config = {"frozen": True}


class NotionConfig(BaseModel):
    """Notion (destination) connection settings."""

    token: str | None = Field(
        default=None, description="Notion integration token"
    )
    parent_page_id: str | None = Field(
        default=None, description="Root page that receives the mirrored tree"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Tree layout and reconciliation policy.

    Attributes:
        folder_children: Folder title -> ordered child document titles.
            Keys are also the titles treated as folder roots when the
            source has no native tree endpoint.
        root_titles: Document titles always placed at the tree root.
        force_update_paths: Path suffixes whose pages are rewritten on
            every run regardless of timestamps.
        delete_orphans: Archive destination pages missing from the source.
        sync_folder_content: Push a folder document's own text into its
            destination page.
    """

    folder_children: dict[str, list[str]] = Field(default_factory=dict)
    root_titles: list[str] = Field(default_factory=list)
    force_update_paths: list[str] = Field(default_factory=list)
    delete_orphans: bool = True
    sync_folder_content: bool = True

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    backlog: BacklogConfig = Field(default_factory=BacklogConfig)
    notion: NotionConfig = Field(default_factory=NotionConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def connection_fallbacks(unified: UnifiedConfig) -> dict[str, str]:
    """Flatten the non-empty connection values of *unified* into the
    keyword names accepted by ``load_config(yaml_fallbacks=...)``.
    """
    candidates = {
        "backlog_domain": unified.backlog.domain,
        "backlog_api_key": unified.backlog.api_key,
        "backlog_project_key": unified.backlog.project_key,
        "notion_token": unified.notion.token,
        "notion_parent_page_id": unified.notion.parent_page_id,
    }
    return {k: v for k, v in candidates.items() if v}
