"""Command-line interface for Mail Emulator.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import structlog

from mail_emulator import __version__
from mail_emulator.config import get_settings
from mail_emulator.corpus import list_owners
from mail_emulator.exceptions import ConfigurationError, OutputWriteError
from mail_emulator.log import configure_logging
from mail_emulator.pipeline import TransformOptions, TransformPipeline
from mail_emulator.serialization import STATS_FILE

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def _parse_timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mail-emulator", description="Mail Emulator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    transform_parser = subparsers.add_parser(
        "transform",
        help="Convert a mailbox folder of the corpus into Gmail-shaped fixtures",
    )
    transform_parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Corpus root directory (default: settings corpus_root)",
    )
    transform_parser.add_argument(
        "--user",
        default=None,
        help="Mailbox owner directory to transform (default: settings folder_owner)",
    )
    transform_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Keep only the most recent N messages (default: all)",
    )
    transform_parser.add_argument(
        "--test-email",
        default=None,
        help="Address the mailbox owner is rewritten to (default: settings test_email)",
    )
    transform_parser.add_argument(
        "--owner-email",
        default=None,
        help="Real address of the mailbox owner (default: inferred from sent folders)",
    )
    transform_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output directory (default: settings output_dir)",
    )
    window = transform_parser.add_mutually_exclusive_group()
    window.add_argument(
        "--window-end",
        type=_parse_timestamp,
        default=None,
        help="ISO-8601 timestamp the newest message is shifted to (default: now)",
    )
    window.add_argument(
        "--days-ago",
        type=int,
        default=None,
        help="Shift the newest message to N days before now",
    )
    transform_parser.add_argument("--top-k", type=int, default=None, help="Number of named personas")
    transform_parser.add_argument("--workers", type=int, default=None, help="Parser worker threads")

    owners_parser = subparsers.add_parser("owners", help="List mailbox owners available in the corpus")
    owners_parser.add_argument("--root", type=Path, default=None, help="Corpus root directory")

    serve_parser = subparsers.add_parser("serve", help="Serve transform output over HTTP")
    serve_parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory with transform output (default: settings data_dir)",
    )
    serve_parser.add_argument("--host", default=None, help="Bind host")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    stats_parser = subparsers.add_parser("stats", help="Show stats of a transform output directory")
    stats_parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory with transform output (default: settings data_dir)",
    )

    return parser


def _cmd_transform(args: argparse.Namespace) -> int:
    settings = get_settings()

    window_end = args.window_end
    if args.days_ago is not None:
        window_end = datetime.now(timezone.utc) - timedelta(days=args.days_ago)

    options = TransformOptions.from_settings(
        settings,
        corpus_root=args.root,
        owner=args.user,
        limit=args.limit,
        test_email=args.test_email.strip().lower() if args.test_email else None,
        owner_email=args.owner_email.strip().lower() if args.owner_email else None,
        window_end=window_end,
        top_k=args.top_k,
        workers=args.workers,
    )
    output_dir: Path = args.out or settings.output_dir

    result = TransformPipeline(options).run_and_write(output_dir)
    stats = result.stats
    print(
        f"Transformed {stats.total_transformed} messages in {stats.thread_count} threads "
        f"({stats.persona_count} personas, {stats.skipped_count} skipped) into {output_dir}"
    )
    return EXIT_OK


def _cmd_owners(args: argparse.Namespace) -> int:
    settings = get_settings()
    for owner in list_owners(args.root or settings.corpus_root):
        print(owner)
    return EXIT_OK


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from mail_emulator.replay import create_app

    settings = get_settings()
    app = create_app(settings, data_dir=args.data_dir or settings.data_dir)
    uvicorn.run(
        app,
        host=args.host or settings.replay_host,
        port=args.port or settings.replay_port,
        log_level=settings.log_level.lower(),
    )
    return EXIT_OK


def _cmd_stats(args: argparse.Namespace) -> int:
    settings = get_settings()
    data_dir: Path = args.data_dir or settings.data_dir
    stats_path = data_dir / STATS_FILE
    if not stats_path.is_file():
        raise ConfigurationError(f"No stats found at {stats_path}")

    stats = json.loads(stats_path.read_text(encoding="utf-8"))
    print(f"Total messages: {stats.get('totalTransformed', 0)}")
    print(f"Threads: {stats.get('threadCount', 0)}")
    print(f"Personas: {stats.get('personaCount', 0)}")
    print(f"Skipped records: {stats.get('skippedCount', 0)}")
    date_range = stats.get("dateRange") or {}
    if date_range.get("start") and date_range.get("end"):
        print(f"Date range: {date_range['start']} -> {date_range['end']}")

    print("\nTop contacts:")
    for contact in stats.get("topContacts", []):
        print(
            f"- #{contact['rank']} {contact['displayName']} ({contact['role']}): "
            f"{contact['messageCount']} messages"
        )
    return EXIT_OK


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Mail Emulator CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, 1 for fatal configuration or output errors,
        2 for usage errors).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("mail_emulator_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    commands = {
        "transform": _cmd_transform,
        "owners": _cmd_owners,
        "serve": _cmd_serve,
        "stats": _cmd_stats,
    }
    command = commands.get(parsed.command)
    if command is None:
        logger.error("unknown_command", command=parsed.command)
        return EXIT_USAGE

    try:
        return command(parsed)
    except (ConfigurationError, OutputWriteError) as exc:
        logger.error("fatal_error", command=parsed.command, error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
