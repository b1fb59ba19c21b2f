"""Command-line argument parsing for ShiftSync."""

import argparse
from pathlib import Path
from typing import Optional

from .. import __version__
from ..sync.sources import VALID_AUTO_SYNC_INTERVALS


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one sub-command per operation."""
    parser = argparse.ArgumentParser(
        prog="shiftsync",
        description="Mirror external ICS calendar feeds into shift calendars",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--database", type=Path, default=None, help="SQLite database file (default: data dir)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level: DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Add an external calendar to a calendar")
    add.add_argument("--calendar", required=True, help="Owning calendar id")
    add.add_argument("--name", required=True, help="Display name of the external calendar")
    source = add.add_mutually_exclusive_group(required=True)
    source.add_argument("--url", help="Feed URL (webcal://, https://)")
    source.add_argument("--file", type=Path, help="ICS file for a one-time import")
    add.add_argument("--color", default=None, help="Display color, e.g. #3b82f6")
    add.add_argument(
        "--interval",
        type=int,
        default=0,
        choices=VALID_AUTO_SYNC_INTERVALS,
        help="Auto sync interval in minutes for the external scheduler (0 = manual)",
    )
    add.add_argument(
        "--no-sync", action="store_true", help="Only store the configuration, do not sync now"
    )

    sync = commands.add_parser("sync", help="Synchronize one external calendar now")
    sync.add_argument("sync_id", help="Sync configuration id")
    sync.add_argument(
        "--auto", action="store_true", help="Record the run as scheduler-triggered"
    )

    import_ = commands.add_parser("import", help="Synchronize from a local ICS file")
    import_.add_argument("sync_id", help="Sync configuration id")
    import_.add_argument("file", type=Path, help="ICS file to import")

    list_ = commands.add_parser("list", help="List external calendar configurations")
    list_.add_argument("--calendar", default=None, help="Only show this calendar")

    logs = commands.add_parser("logs", help="Show recent sync logs of a calendar")
    logs.add_argument("calendar_id", help="Calendar id")
    logs.add_argument("--limit", type=int, default=20, help="Number of entries to show")
    logs.add_argument(
        "--mark-read", action="store_true", help="Mark all error logs of the calendar as read"
    )

    update = commands.add_parser("update", help="Edit an external calendar configuration")
    update.add_argument("sync_id", help="Sync configuration id")
    update.add_argument("--name", default=None, help="New display name")
    update.add_argument("--url", default=None, help="New feed URL")
    update.add_argument(
        "--color", default=None, help="New display color, also applied to synced occurrences"
    )
    update.add_argument(
        "--interval",
        type=int,
        default=None,
        choices=VALID_AUTO_SYNC_INTERVALS,
        help="New auto sync interval in minutes",
    )

    remove = commands.add_parser(
        "remove", help="Delete an external calendar with its occurrences and logs"
    )
    remove.add_argument("sync_id", help="Sync configuration id")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return create_parser().parse_args(argv)
