"""Connection configuration for the Backlog -> Notion synchronizer.

Reads connection settings from CLI args, environment variables, .env files,
and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    BACKLOG_DOMAIN: Backlog space domain, e.g. example.backlog.com (required)
    BACKLOG_API_KEY: Backlog API key (required)
    BACKLOG_PROJECT_KEY: Backlog project key (required)
    NOTION_TOKEN: Notion integration token (required)
    NOTION_PARENT_PAGE_ID: Notion page receiving the mirrored tree (required)
    BACKLOG_NOTION_SYNC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_PAGE_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{32}$")
_DOMAIN_PATTERN = re.compile(r"^[A-Za-z0-9.-]+(:\d+)?$")


@dataclass
class Config:
    backlog_domain: str
    backlog_api_key: str
    backlog_project_key: str
    notion_token: str
    notion_parent_page_id: str
    debug: bool = False


def normalize_page_id(page_id: str) -> str:
    """Return *page_id* in dashed 8-4-4-4-12 form.

    Accepts both the dashed UUID form and the 32-hex-digit form Notion
    shows in page URLs.

    Raises:
        ValueError: If *page_id* is not 32 hex digits once dashes are removed.
    """
    compact = page_id.strip().replace("-", "")
    if not _PAGE_ID_PATTERN.match(compact):
        raise ValueError(
            f"Invalid Notion page id '{page_id}': expected 32 hex digits"
        )
    compact = compact.lower()
    return (
        f"{compact[:8]}-{compact[8:12]}-{compact[12:16]}-"
        f"{compact[16:20]}-{compact[20:]}"
    )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate. The domain and page id are
            normalised in place.

    Raises:
        ValueError: If the domain is malformed, the page id is not a Notion
            id, or a credential is empty.
    """
    domain = config.backlog_domain.strip().removesuffix("/")
    if not domain or not _DOMAIN_PATTERN.match(domain):
        raise ValueError(
            f"Invalid Backlog domain '{config.backlog_domain}': "
            "expected a bare host name such as example.backlog.com "
            "(no scheme or path)"
        )
    config.backlog_domain = domain

    if not config.backlog_api_key.strip():
        raise ValueError(
            "Backlog API key cannot be empty. Set BACKLOG_API_KEY environment variable."
        )

    if not config.backlog_project_key.strip():
        raise ValueError(
            "Backlog project key cannot be empty. Set BACKLOG_PROJECT_KEY environment variable."
        )

    if not config.notion_token.strip():
        raise ValueError(
            "Notion token cannot be empty. Set NOTION_TOKEN environment variable."
        )

    config.notion_parent_page_id = normalize_page_id(
        config.notion_parent_page_id
    )


def load_config(
    project_key: str | None = None,
    parent_page_id: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > error

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        project_key: Override Backlog project key (CLI).
        parent_page_id: Override Notion parent page id (CLI).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Connection values from the YAML config file, keyed
            by ``Config`` field name.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a required value is missing after checking all
            sources, or fails validation.
    """
    fb = yaml_fallbacks or {}

    def _required(cli_value: str | None, env: str, field: str) -> str:
        value = cli_value or os.getenv(env) or fb.get(field)
        if not value:
            raise ValueError(
                f"{env} not found. Set the {env} environment variable "
                f"or add it to the config file."
            )
        return value.strip()

    domain = _required(None, "BACKLOG_DOMAIN", "backlog_domain")
    api_key = _required(None, "BACKLOG_API_KEY", "backlog_api_key")
    project = _required(
        project_key, "BACKLOG_PROJECT_KEY", "backlog_project_key"
    )
    token = _required(None, "NOTION_TOKEN", "notion_token")
    page_id = _required(
        parent_page_id, "NOTION_PARENT_PAGE_ID", "notion_parent_page_id"
    )

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("BACKLOG_NOTION_SYNC_DEBUG")
        final_debug = (
            env_debug is not None
            and env_debug.lower() in ("true", "1", "yes", "on")
        )

    config = Config(
        backlog_domain=domain,
        backlog_api_key=api_key,
        backlog_project_key=project,
        notion_token=token,
        notion_parent_page_id=page_id,
        debug=final_debug,
    )

    validate_config(config)

    return config
