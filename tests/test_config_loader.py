"""Tests for backlog_notion_sync.config_loader: config files on disk."""

import textwrap
from pathlib import Path

import pytest
import yaml

from backlog_notion_sync.config_loader import (
    discover_config_files,
    ensure_config,
    expand_env,
    interpolate_env_vars,
    load_hierarchical_config,
    merge_config,
    read_yaml,
    resolve_config_path,
)
from backlog_notion_sync.config_schema import build_config


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """CWD and HOME under tmp_path, no explicit config file."""
    monkeypatch.delenv("BACKLOG_NOTION_SYNC_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


def _project_file(root: Path, text: str) -> Path:
    return _write(root / ".backlog_notion_sync" / "config.yml", text)


def _user_file(root: Path, text: str) -> Path:
    return _write(
        root / "home" / ".config" / "backlog_notion_sync" / "config.yml", text
    )


# -------------------------------------------------------------------------
# ${VAR} expansion
# -------------------------------------------------------------------------


class TestEnvExpansion:
    def test_token_reference(self, monkeypatch):
        monkeypatch.setenv("NOTION_TOKEN", "secret_abc")
        assert interpolate_env_vars("${NOTION_TOKEN}") == "secret_abc"

    def test_default_for_unset_and_empty(self, monkeypatch):
        monkeypatch.delenv("BNS_PAGE_SIZE", raising=False)
        monkeypatch.setenv("BNS_EMPTY", "")
        assert interpolate_env_vars("${BNS_PAGE_SIZE:-50}") == "50"
        assert interpolate_env_vars("${BNS_EMPTY:-PROJ}") == "PROJ"
        assert interpolate_env_vars("${BNS_PAGE_SIZE}") == ""

    def test_incomplete_reference_kept(self):
        assert interpolate_env_vars("${BACKLOG_DOMAIN") == "${BACKLOG_DOMAIN"

    def test_layout_titles_expanded_in_place(self, monkeypatch):
        monkeypatch.setenv("STATUS_TITLE", "ステータス定義")
        data = {
            "sync": {
                "root_titles": ["${STATUS_TITLE}", "FAQ"],
                "delete_orphans": False,
            },
            "backlog": {"page_size": 50},
        }

        assert expand_env(data) == {
            "sync": {
                "root_titles": ["ステータス定義", "FAQ"],
                "delete_orphans": False,
            },
            "backlog": {"page_size": 50},
        }


# -------------------------------------------------------------------------
# read_yaml() and !include
# -------------------------------------------------------------------------


class TestReadYaml:
    def test_layout_table_from_included_file(self, tmp_path):
        _write(
            tmp_path / "layout.yml",
            """\
            folder_children:
              テスト:
                - テスト資料
                - テスト進行キックオフ
            root_titles: [ステータス定義]
            """,
        )
        config = _write(
            tmp_path / "config.yml",
            """\
            backlog:
              project_key: PROJ
            sync: !include layout.yml
            """,
        )

        unified = build_config(read_yaml(config))

        assert unified.sync.folder_children == {
            "テスト": ["テスト資料", "テスト進行キックオフ"]
        }
        assert unified.sync.root_titles == ["ステータス定義"]
        assert unified.backlog.project_key == "PROJ"

    def test_include_relative_to_including_file(self, tmp_path):
        _write(tmp_path / "layouts" / "children.yml", "Specs: [API]\n")
        _write(
            tmp_path / "layouts" / "sync.yml",
            "folder_children: !include children.yml\n",
        )
        config = _write(
            tmp_path / "config.yml", "sync: !include layouts/sync.yml\n"
        )

        assert read_yaml(config) == {
            "sync": {"folder_children": {"Specs": ["API"]}}
        }

    def test_absolute_include(self, tmp_path):
        secrets = _write(tmp_path / "secrets.yml", "token: secret_abc\n")
        config = _write(
            tmp_path / "project" / "config.yml", f"notion: !include {secrets}\n"
        )

        assert read_yaml(config) == {"notion": {"token": "secret_abc"}}

    def test_missing_include(self, tmp_path):
        config = _write(tmp_path / "config.yml", "sync: !include layout.yml\n")

        with pytest.raises(FileNotFoundError, match="layout.yml"):
            read_yaml(config)

    @pytest.mark.parametrize("second", ["a.yml", "b.yml"])
    def test_include_cycle(self, tmp_path, second):
        _write(tmp_path / "b.yml", f"sync: !include {second}\n")
        config = _write(tmp_path / "a.yml", "sync: !include b.yml\n")

        with pytest.raises(ValueError, match="Circular include"):
            read_yaml(config)

    def test_plain_safe_load_rejects_include(self, tmp_path):
        config = _write(tmp_path / "config.yml", "sync: !include layout.yml\n")

        with pytest.raises(yaml.constructor.ConstructorError):
            yaml.safe_load(config.read_text(encoding="utf-8"))


# -------------------------------------------------------------------------
# merge_config()
# -------------------------------------------------------------------------


class TestMergeConfig:
    def test_sections_merge_key_by_key(self):
        user = {"backlog": {"domain": "acme.backlog.com", "api_key": "k"}}
        project = {"backlog": {"project_key": "PROJ"}}

        assert merge_config(user, project) == {
            "backlog": {
                "domain": "acme.backlog.com",
                "api_key": "k",
                "project_key": "PROJ",
            }
        }

    def test_folder_children_merge_per_folder(self):
        user = {"sync": {"folder_children": {"Specs": ["API"], "Tests": ["Plan"]}}}
        project = {"sync": {"folder_children": {"Specs": ["Schema"]}}}

        merged = merge_config(user, project)

        assert merged["sync"]["folder_children"] == {
            "Specs": ["Schema"],
            "Tests": ["Plan"],
        }

    def test_lists_are_replaced(self):
        user = {"sync": {"root_titles": ["A", "B"], "delete_orphans": True}}
        project = {"sync": {"root_titles": ["C"]}}

        assert merge_config(user, project)["sync"] == {
            "root_titles": ["C"],
            "delete_orphans": True,
        }

    def test_inputs_are_not_modified(self):
        user = {"logging": {"level": "INFO"}}
        merge_config(user, {"logging": {"level": "DEBUG"}})
        assert user == {"logging": {"level": "INFO"}}


# -------------------------------------------------------------------------
# Discovery and load_hierarchical_config()
# -------------------------------------------------------------------------


class TestDiscovery:
    def test_precedence_order(self, workdir, monkeypatch):
        user = _user_file(workdir, "logging: {level: INFO}\n")
        project = _project_file(workdir, "sync: {}\n")
        explicit = _write(workdir / "ci.yml", "sync: {}\n")
        monkeypatch.setenv("BACKLOG_NOTION_SYNC_CONFIG", str(explicit))

        assert discover_config_files() == [explicit.resolve(), project, user]

    def test_missing_explicit_file_is_ignored(self, workdir, monkeypatch):
        monkeypatch.setenv(
            "BACKLOG_NOTION_SYNC_CONFIG", str(workdir / "absent.yml")
        )
        assert discover_config_files() == []


class TestLoadHierarchicalConfig:
    def test_no_files(self, workdir):
        assert load_hierarchical_config() == {}

    def test_project_file_layers_over_user_file(self, workdir, monkeypatch):
        monkeypatch.setenv("BNS_API_KEY", "from-env")
        _user_file(
            workdir,
            """\
            backlog:
              domain: acme.backlog.com
              api_key: ${BNS_API_KEY}
            logging:
              level: DEBUG
            """,
        )
        _project_file(
            workdir,
            """\
            backlog:
              project_key: PROJ
            sync:
              force_update_paths: [ステータス定義]
            """,
        )

        unified = build_config(load_hierarchical_config())

        assert unified.backlog.domain == "acme.backlog.com"
        assert unified.backlog.api_key == "from-env"
        assert unified.backlog.project_key == "PROJ"
        assert unified.sync.force_update_paths == ["ステータス定義"]
        assert unified.logging.level == "DEBUG"

    def test_project_layout_include(self, workdir):
        project = _project_file(workdir, "sync: !include layout.yml\n")
        _write(project.parent / "layout.yml", "root_titles: [FIX済み仕様]\n")

        assert load_hierarchical_config() == {
            "sync": {"root_titles": ["FIX済み仕様"]}
        }

    def test_empty_and_non_mapping_files_skipped(self, workdir, monkeypatch):
        _project_file(workdir, "# nothing yet\n")
        listing = _write(workdir / "list.yml", "- a\n- b\n")
        monkeypatch.setenv("BACKLOG_NOTION_SYNC_CONFIG", str(listing))

        assert load_hierarchical_config() == {}

    def test_invalid_yaml_raises(self, workdir):
        _project_file(workdir, "sync: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()


# -------------------------------------------------------------------------
# Starter config
# -------------------------------------------------------------------------


class TestStarterConfig:
    def test_default_location(self, workdir):
        assert resolve_config_path() == (
            workdir / ".backlog_notion_sync" / "config.yml"
        )

    def test_existing_file_is_kept(self, workdir):
        project = _project_file(workdir, "sync: {}\n")

        assert resolve_config_path() == project
        assert ensure_config() == project
        assert project.read_text(encoding="utf-8") == "sync: {}\n"

    def test_writes_commented_starter(self, workdir):
        path = ensure_config()

        text = path.read_text(encoding="utf-8")
        assert path == workdir / ".backlog_notion_sync" / "config.yml"
        assert "#   folder_children:" in text
        assert "sync: !include layout.yml" in text
        assert yaml.safe_load(text) is None
        assert load_hierarchical_config() == {}

    def test_explicit_target(self, workdir):
        target = workdir / "deploy" / "sync.yml"

        assert ensure_config(target=target) == target
        assert target.is_file()
