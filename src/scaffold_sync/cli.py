"""Command-line interface for scaffold-sync.

Subcommands:
    update    Sync the project with the bundled (or given) templates.
    analyze   Show which files a sync would touch and how risky it is.
    backups   List complete config backups.
    restore   Merge a config backup back into the current config.
    rotate    Delete old backups, keeping the newest N.

Reports go to stdout; logs and prompts go to stderr.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import SyncSettings, load_config
from .errors import SyncError
from .logger import setup_logging
from .sync.analyzer import analyze
from .sync.backup import BackupManager
from .sync.confirm import PromptConfirmer
from .sync.models import RestoreMethod
from .sync.orchestrator import SyncContext, SyncOrchestrator
from .sync.reporter import (
    analysis_to_json,
    format_merge_analysis,
    format_sync_report,
    report_to_json,
)
from .templates import DirectoryTemplateSource, TemplateSource, bundled_source
from .templates.deployer import Deployer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scaffold-sync",
        description="Keep project scaffolding in sync with its templates "
        "while preserving user customizations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what an update would change
  scaffold-sync analyze

  # Update without prompting (CI)
  scaffold-sync update --yes

  # Re-sync even though the template version is unchanged
  scaffold-sync update --force

  # Restore a specific backup
  scaffold-sync restore 20260101_120000
        """,
    )
    parser.add_argument(
        "--project-root",
        help="Project directory (default: SCAFFOLD_PROJECT_ROOT or the current directory)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Log only to the log file (LOG_FILE or /tmp/scaffold-sync.log), not stderr",
    )
    parser.add_argument(
        "--templates",
        help="Template directory to use instead of the bundled templates",
    )
    parser.add_argument(
        "--template-version",
        help="Version of the --templates directory (default: package version)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"scaffold-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    update = sub.add_parser("update", help="Sync templates into the project")
    update.add_argument(
        "--force", action="store_true", help="Sync even when already up to date"
    )
    update.add_argument(
        "--yes", "-y", action="store_true", help="Proceed without confirmation"
    )
    update.add_argument(
        "--keep-backups", type=int, help="Backups kept after rotation (1-100)"
    )
    update.add_argument("--json", action="store_true", help="Print the report as JSON")

    analyze_cmd = sub.add_parser("analyze", help="Show the merge analysis")
    analyze_cmd.add_argument("--json", action="store_true", help="Print as JSON")

    sub.add_parser("backups", help="List complete config backups")

    restore = sub.add_parser("restore", help="Restore a config backup")
    restore.add_argument("backup", help="Backup name (YYYYMMDD_HHMMSS) or directory")

    rotate = sub.add_parser("rotate", help="Delete old backups")
    rotate.add_argument("--keep", type=int, help="Backups to keep (default: from config)")

    return parser


def _template_source(args: argparse.Namespace) -> TemplateSource:
    if args.templates:
        return DirectoryTemplateSource(
            Path(args.templates), args.template_version or __version__
        )
    return bundled_source()


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_update(args: argparse.Namespace, settings: SyncSettings) -> int:
    context = SyncContext(
        project_root=settings.project_root,
        settings=settings,
        template_source=_template_source(args),
        confirmer=PromptConfirmer(),
    )
    report = SyncOrchestrator(context).run()
    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))
    return 1 if report.failed else 0


def _cmd_analyze(args: argparse.Namespace, settings: SyncSettings) -> int:
    layout = settings.layout()
    deployer = Deployer(_template_source(args), layout)
    analysis = analyze(
        deployer.list_templates(), settings.project_root, layout.managed_paths()
    )
    if args.json:
        print(json.dumps(analysis_to_json(analysis), indent=2))
    else:
        print(format_merge_analysis(analysis))
    return 0


def _cmd_backups(args: argparse.Namespace, settings: SyncSettings) -> int:
    manager = BackupManager(settings.layout(), settings.excluded_dirs)
    backups = manager.list_backups(settings.project_root)
    if not backups:
        print("No backups found.")
        return 0
    for backup_dir in backups:
        metadata = manager.load_metadata(backup_dir)
        print(f"{backup_dir.name}  {len(metadata.backed_up_items)} files")
    return 0


def _cmd_restore(args: argparse.Namespace, settings: SyncSettings) -> int:
    manager = BackupManager(settings.layout(), settings.excluded_dirs)
    candidate = Path(args.backup)
    if not candidate.is_dir():
        candidate = manager.backups_root(settings.project_root) / args.backup
    manager.load_metadata(candidate)

    results = manager.restore(settings.project_root, candidate)
    for r in results:
        line = f"{r.method.value:<12} {r.path}"
        if r.warning:
            line += f"  ({r.warning})"
        print(line)
    print(f"Restored {len(results)} config files from {candidate.name}")
    return 1 if any(r.method == RestoreMethod.FAILED for r in results) else 0


def _cmd_rotate(args: argparse.Namespace, settings: SyncSettings) -> int:
    manager = BackupManager(settings.layout(), settings.excluded_dirs)
    keep = args.keep if args.keep is not None else settings.keep_backups
    deleted = manager.rotate(settings.project_root, keep)
    print(f"Deleted {deleted} old backups, keeping {keep}")
    return 0


_COMMANDS = {
    "update": _cmd_update,
    "analyze": _cmd_analyze,
    "backups": _cmd_backups,
    "restore": _cmd_restore,
    "rotate": _cmd_rotate,
}


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the subcommand and return the exit code."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        settings = load_config(
            project_root=args.project_root,
            force=getattr(args, "force", False),
            auto_confirm=getattr(args, "yes", False),
            keep_backups=getattr(args, "keep_backups", None),
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        mode="file" if args.quiet else "cli",
        debug=args.debug,
        log_file=args.log_file or settings.log_file,
        debug_format=args.log_format,
        level=settings.log_level,
    )
    logger.debug("Project root: %s", settings.project_root)

    try:
        return _COMMANDS[args.command](args, settings)
    except (SyncError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
