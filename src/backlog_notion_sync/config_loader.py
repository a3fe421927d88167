"""
YAML config file handling for backlog_notion_sync.

A run reads up to three files, lowest precedence first:

    ~/.config/backlog_notion_sync/config.yml     (per user)
    ./.backlog_notion_sync/config.yml            (per project)
    $BACKLOG_NOTION_SYNC_CONFIG                  (explicit)

Later files are layered over earlier ones section by section (see
``merge_config``), so credentials can live in the user file while each
project only names its project key, parent page and layout.

The layout tables that rebuild a Backlog document hierarchy tend to grow
large, so they can be kept in their own file::

    sync: !include layout.yml

String values may reference the environment as ``${VAR}`` or
``${VAR:-default}``.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BACKLOG_NOTION_SYNC_CONFIG"
CONFIG_DIR_NAME = "backlog_notion_sync"
CONFIG_FILE_NAME = "config.yml"

# Layout tables merged per folder title instead of replaced
_KEYED_TABLES = {("sync", "folder_children")}

_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none.  Text that is not a complete reference is kept as is.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m.group(1)) or (m.group(2) or ""), value
    )


def expand_env(data: Any) -> Any:
    """Apply ``interpolate_env_vars`` to every string inside *data*."""
    if isinstance(data, str):
        return interpolate_env_vars(data)
    if isinstance(data, list):
        return [expand_env(item) for item in data]
    if isinstance(data, dict):
        return {key: expand_env(value) for key, value in data.items()}
    return data


class IncludeLoader(yaml.SafeLoader):
    """SafeLoader with an ``!include <path>`` tag.

    Relative paths resolve against the directory of the including file.
    ``chain`` holds the files being loaded so a cycle is reported instead
    of recursing forever.
    """

    chain: tuple[Path, ...] = ()

    def include(self, node: yaml.ScalarNode) -> Any:
        target = Path(self.construct_scalar(node)).expanduser()
        if not target.is_absolute():
            target = self.chain[-1].parent / target
        return read_yaml(target, chain=self.chain)


IncludeLoader.add_constructor("!include", IncludeLoader.include)


def read_yaml(path: Path, chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following ``!include`` tags.

    Raises:
        FileNotFoundError: If *path* (or an included file) does not exist.
        ValueError: If the includes form a cycle.
        yaml.YAMLError: If a file is not valid YAML.
    """
    path = path.resolve()
    if path in chain:
        cycle = " -> ".join(p.name for p in (*chain, path))
        raise ValueError(f"Circular include: {cycle}")
    if not path.is_file():
        origin = f" (included from {chain[-1]})" if chain else ""
        raise FileNotFoundError(f"Config file not found: {path}{origin}")

    with open(path, encoding="utf-8") as fh:
        loader = IncludeLoader(fh)
        loader.chain = (*chain, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


def config_candidates() -> list[Path]:
    """Return every config location, highest precedence first."""
    candidates = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    candidates.append(Path.cwd() / f".{CONFIG_DIR_NAME}" / CONFIG_FILE_NAME)
    candidates.append(
        Path.home() / ".config" / CONFIG_DIR_NAME / CONFIG_FILE_NAME
    )
    return candidates


def discover_config_files() -> list[Path]:
    """Return the config files that exist, highest precedence first."""
    return [path for path in config_candidates() if path.is_file()]


def merge_config(
    base: dict[str, Any], override: dict[str, Any]
) -> dict[str, Any]:
    """Layer *override* over *base*.

    Sections that are mappings on both sides are merged key by key, and
    ``sync.folder_children`` is merged per folder title.  Any other value
    in *override*, lists included, replaces the one in *base*.
    """
    merged = dict(base)
    for section, value in override.items():
        current = merged.get(section)
        if not (isinstance(current, dict) and isinstance(value, dict)):
            merged[section] = value
            continue
        combined = {**current, **value}
        for key in value:
            if (section, key) in _KEYED_TABLES and isinstance(
                current.get(key), dict
            ) and isinstance(value[key], dict):
                combined[key] = {**current[key], **value[key]}
        merged[section] = combined
    return merged


def load_hierarchical_config() -> dict[str, Any]:
    """Read, merge and env-expand all discovered config files.

    Returns an empty dict when there are none.  A file whose top level is
    not a mapping is skipped with a warning.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Reading config file %s", path)
        data = read_yaml(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring config file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged = merge_config(merged, data)
    return expand_env(merged)


_STARTER_CONFIG = """\
# backlog-notion-sync configuration
#
# Connection settings can also come from the environment (or .env):
#   BACKLOG_DOMAIN, BACKLOG_API_KEY, BACKLOG_PROJECT_KEY,
#   NOTION_TOKEN, NOTION_PARENT_PAGE_ID
#
# backlog:
#   domain: example.backlog.com
#   api_key: ${BACKLOG_API_KEY}
#   project_key: PROJ
#   page_size: 100
#
# notion:
#   token: ${NOTION_TOKEN}
#   parent_page_id: 0123456789abcdef0123456789abcdef
#
# Layout rules, used when the Backlog space has no document tree endpoint.
# Titles are matched exactly.  Container documents that are not listed
# under folder_children get no page; name their children in root_titles.
# The table may also live in its own file:  sync: !include layout.yml
#
# sync:
#   folder_children:
#     プランニング:
#       - 20251107-SP2プランニング
#       - 20251002 プランニング
#     テスト:
#       - テスト資料
#       - テスト進行キックオフ
#   root_titles:
#     - ステータス定義
#     - マニュアル作成
#   force_update_paths:
#     - ステータス定義
#   delete_orphans: true
#   sync_folder_content: true
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the config file a run would read first.

    Falls back to the project location when no file exists yet.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / f".{CONFIG_DIR_NAME}" / CONFIG_FILE_NAME


def ensure_config(target: Path | None = None) -> Path:
    """Write a commented starter config unless a config file already exists.

    Args:
        target: Where to write the starter file.  Defaults to
            ``resolve_config_path()``.

    Returns:
        The existing or newly written config file.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config %s", path)
    return path
