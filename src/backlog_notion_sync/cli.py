"""Command-line entry point: one sync run per invocation.

Progress and diagnostics are logged to stderr; the final report is
written to stdout.
"""

import argparse
import json
import logging
import sys
from typing import Any

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from .config_schema import UnifiedConfig, build_config, connection_fallbacks
from .core import BacklogClient, NotionClient
from .errors import SyncError
from .logger import setup_logging
from .sync import (
    SourceTreeBuilder,
    SyncEngine,
    SyncReport,
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backlog-notion-sync",
        description="Mirror a Backlog project's documents into a Notion page tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with settings from .env / environment / config file
  backlog-notion-sync

  # Preview without touching Notion
  backlog-notion-sync --dry-run

  # Sync another project, keep pages that vanished from Backlog
  backlog-notion-sync --project-key PROJ2 --no-delete-orphans

  # Machine-readable report
  backlog-notion-sync --json > report.json
        """,
    )
    parser.add_argument(
        "--project-key",
        help="Backlog project key (overrides BACKLOG_PROJECT_KEY and config files)",
    )
    parser.add_argument(
        "--parent-page-id",
        help="Notion root page id (overrides NOTION_PARENT_PAGE_ID and config files)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without modifying Notion",
    )
    parser.add_argument(
        "--no-delete-orphans",
        action="store_true",
        help="Keep Notion pages that no longer exist in Backlog",
    )
    parser.add_argument(
        "--no-folder-content",
        action="store_true",
        help="Do not copy a folder document's own text into its Notion page",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented starter config file (if none exists) and exit",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"backlog-notion-sync version {__version__}",
    )
    return parser


def load_settings(
    args: argparse.Namespace,
) -> tuple[Config, UnifiedConfig]:
    """Resolve connection settings and sync policy for one run.

    Precedence: CLI args > env vars (.env loaded first) > config file.

    Raises:
        ValueError: If a required setting is missing or invalid.
    """
    load_dotenv()

    unified = UnifiedConfig()
    if discover_config_files():
        unified = build_config(load_hierarchical_config())

    config = load_config(
        project_key=args.project_key,
        parent_page_id=args.parent_page_id,
        debug=args.debug,
        yaml_fallbacks=connection_fallbacks(unified),
    )

    overrides: dict[str, Any] = {}
    if args.no_delete_orphans:
        overrides["delete_orphans"] = False
    if args.no_folder_content:
        overrides["sync_folder_content"] = False
    if overrides:
        unified = unified.model_copy(
            update={"sync": unified.sync.model_copy(update=overrides)}
        )
    return config, unified


def render_report(report: SyncReport, as_json: bool) -> str:
    if as_json:
        return json.dumps(report_to_json(report), indent=2, ensure_ascii=False)
    if report.dry_run:
        return format_dry_run_preview(report)
    return format_sync_report(report)


def main(argv: list[str] | None = None) -> int:
    """Run one sync and return the process exit status."""
    args = build_parser().parse_args(argv)

    if args.init_config:
        print(ensure_config())
        return EXIT_OK

    try:
        config, unified = load_settings(args)
    except (ValueError, OSError, yaml.YAMLError) as e:
        _stderr_print(f"ERROR: Configuration error: {e}")
        return EXIT_FAILURE

    setup_logging(
        debug=config.debug,
        log_file=args.log_file or unified.logging.file,
        log_format=args.log_format,
        level=unified.logging.level,
    )
    logger.info(
        "Syncing Backlog project %s (%s) into Notion page %s",
        config.backlog_project_key,
        config.backlog_domain,
        config.notion_parent_page_id,
    )

    notion = NotionClient(config)
    engine = SyncEngine(
        source=SourceTreeBuilder(
            BacklogClient(config),
            layout=unified.sync,
            page_size=unified.backlog.page_size,
        ),
        notion=notion,
        policy=unified.sync,
    )

    try:
        report = engine.run(
            config.backlog_project_key,
            config.notion_parent_page_id,
            dry_run=args.dry_run,
        )
    except SyncError as e:
        logger.error("Sync aborted: %s", e)
        _stderr_print(f"ERROR: Sync aborted: {e}")
        return EXIT_FAILURE

    print(render_report(report, args.json))
    return EXIT_FAILURE if report.errors else EXIT_OK


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    run()
