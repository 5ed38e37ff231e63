"""Command-line interface for the vault mirror.

Commands:
    sync     Upload documents changed since the last pass
    resync   Archive the mirrored tree and upload everything (asks first)
    status   Show what the mirror currently tracks

Exit codes: 0 success, 1 some documents failed, 2 the pass could not run.
"""

import argparse
import json
import logging
import sys

from . import __version__
from .config import load_layered_config
from .core.client import NotionClient
from .logger import setup_logging
from .sync.engine import SyncEngine
from .sync.models import PassStatus, SyncReport
from .sync.reporter import format_sync_report, report_to_json
from .vault import FileSystemVault

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


def exit_code_for(report: SyncReport) -> int:
    match report.status:
        case PassStatus.SUCCESS:
            return EXIT_SUCCESS
        case PassStatus.PARTIAL_FAILURE:
            return EXIT_PARTIAL
        case _:
            return EXIT_FATAL


def confirm_resync(stream=sys.stdin) -> bool:
    """Ask on stderr whether to wipe the remote tree; True only for 'y'/'yes'."""
    print(
        "Full resync archives every page under the Notion root page and "
        "uploads the whole vault again.\nContinue? [y/N] ",
        end="",
        file=sys.stderr,
        flush=True,
    )
    answer = stream.readline()
    return answer.strip().lower() in ("y", "yes")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notion-mirror",
        description="Mirror a local Markdown vault into a Notion page tree",
    )
    parser.add_argument("--token", help="Notion integration token (prefer NOTION_TOKEN)")
    parser.add_argument("--root-page", help="Root page id or URL")
    parser.add_argument("--vault", help="Vault directory")
    parser.add_argument(
        "--json", action="store_true", help="Print the result as JSON"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file", help="Also write log records to LOG_FILE"
    )
    parser.add_argument(
        "--version", action="version", version=f"notion-mirror {__version__}"
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("sync", help="Upload documents changed since the last pass")
    resync = sub.add_parser(
        "resync", help="Archive the mirrored tree and upload everything"
    )
    resync.add_argument(
        "--yes", action="store_true", help="Do not ask for confirmation"
    )
    sub.add_parser("status", help="Show what the mirror tracks")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)

    overrides = {
        "token": args.token,
        "root_page": args.root_page,
        "vault_path": args.vault,
        "debug": args.debug,
    }
    try:
        config, sources = load_layered_config(
            {k: v for k, v in overrides.items() if v}
        )
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FATAL
    logger.debug("Configuration loaded from: %s", ", ".join(sources))

    engine = SyncEngine(
        NotionClient(config), FileSystemVault(config.vault_path), config
    )

    match args.command:
        case "status":
            status = engine.status()
            if args.json:
                print(json.dumps(status, indent=2))
            else:
                for key, value in status.items():
                    print(f"{key}: {value}")
            return EXIT_SUCCESS
        case "resync":
            if not args.yes and not confirm_resync():
                print("Aborted.", file=sys.stderr)
                return EXIT_SUCCESS
            report = engine.run_full_resync()
        case _:
            report = engine.run_incremental_sync()

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))
    return exit_code_for(report)


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
