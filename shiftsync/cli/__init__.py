"""Command-line interface for ShiftSync."""

import argparse
import json
import logging
from typing import Any, Optional

from ..config.settings import ShiftSyncSettings, get_settings
from ..ics.fetcher import encode_ics_upload
from ..ics.parser import ICSParser
from ..storage.database import SyncDatabase
from ..storage.models import DEFAULT_COLOR, SyncConfig, SyncTrigger, SyncType
from ..sync.executor import SyncExecutor
from ..sync.sources import (
    detect_sync_type,
    is_valid_calendar_url,
    validate_auto_sync_interval,
)
from ..utils.exceptions import SyncError
from ..utils.logging import setup_logging
from .parser import create_parser, parse_args

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def add_command(
    args: argparse.Namespace, settings: ShiftSyncSettings, database: SyncDatabase
) -> int:
    """Store a new sync configuration and, unless disabled, run its first sync."""
    if args.file is not None:
        content = args.file.read_text(encoding="utf-8")
        if not ICSParser(settings).has_events(content):
            print("Error: Invalid ICS file. File must contain at least one event.")
            return 1
        # Uploads cannot change, so they are never re-fetched on a schedule
        config = SyncConfig(
            calendar_id=args.calendar,
            name=args.name,
            calendar_url=encode_ics_upload(content),
            color=args.color or DEFAULT_COLOR,
            sync_type=SyncType.CUSTOM,
            is_one_time_import=True,
            auto_sync_interval=0,
        )
    else:
        sync_type = detect_sync_type(args.url)
        if not is_valid_calendar_url(args.url, sync_type):
            print(f"Error: Invalid {sync_type.value} calendar URL: {args.url}")
            return 1
        config = SyncConfig(
            calendar_id=args.calendar,
            name=args.name,
            calendar_url=args.url.strip(),
            color=args.color or DEFAULT_COLOR,
            sync_type=sync_type,
            auto_sync_interval=validate_auto_sync_interval(args.interval),
        )

    await database.save_sync_config(config)
    logger.info(f"Added {config.sync_type.value} sync '{config.name}' ({config.id})")
    _print_json(config.model_dump(mode="json", exclude={"calendar_url"}))

    if args.no_sync:
        return 0
    return await _run_sync(SyncExecutor(settings, database).synchronize(config.id))


async def sync_command(
    args: argparse.Namespace, settings: ShiftSyncSettings, database: SyncDatabase
) -> int:
    trigger = SyncTrigger.AUTO if args.auto else SyncTrigger.MANUAL
    return await _run_sync(SyncExecutor(settings, database).synchronize(args.sync_id, trigger))


async def import_command(
    args: argparse.Namespace, settings: ShiftSyncSettings, database: SyncDatabase
) -> int:
    content = args.file.read_bytes()
    return await _run_sync(SyncExecutor(settings, database).import_ics(args.sync_id, content))


async def _run_sync(run: Any) -> int:
    try:
        stats = await run
    except SyncError as e:
        print(f"Error: {e.message}")
        return 1
    _print_json({"success": True, "stats": stats.model_dump(mode="json")})
    return 0


async def list_command(
    args: argparse.Namespace, settings: ShiftSyncSettings, database: SyncDatabase
) -> int:
    configs = await database.list_sync_configs(args.calendar)
    _print_json([config.model_dump(mode="json", exclude={"calendar_url"}) for config in configs])
    return 0


async def logs_command(
    args: argparse.Namespace, settings: ShiftSyncSettings, database: SyncDatabase
) -> int:
    logs = await database.get_sync_logs(args.calendar_id, limit=args.limit)
    _print_json([log.model_dump(mode="json") for log in logs])
    if args.mark_read:
        await database.mark_errors_read(args.calendar_id)
    return 0


async def update_command(
    args: argparse.Namespace, settings: ShiftSyncSettings, database: SyncDatabase
) -> int:
    """Edit name, feed URL, color or interval of a sync configuration."""
    config = await database.get_sync_config(args.sync_id)
    if config is None:
        print("Error: External sync configuration not found")
        return 1

    url = args.url.strip() if args.url is not None else None
    if url is not None:
        if config.is_one_time_import:
            print("Error: The file of a one-time import cannot be replaced by a URL")
            return 1
        if not is_valid_calendar_url(url, config.sync_type):
            print(f"Error: Invalid {config.sync_type.value} calendar URL: {url}")
            return 1

    interval = args.interval
    if interval is not None and config.is_one_time_import:
        interval = 0

    try:
        updated = await database.update_sync_config(
            config.id,
            name=args.name,
            calendar_url=url,
            color=args.color,
            auto_sync_interval=interval,
        )
    except SyncError as e:
        print(f"Error: {e.message}")
        return 1

    if updated is None:
        print("Error: External sync configuration not found")
        return 1
    _print_json(updated.model_dump(mode="json", exclude={"calendar_url"}))
    return 0


async def remove_command(
    args: argparse.Namespace, settings: ShiftSyncSettings, database: SyncDatabase
) -> int:
    if not await database.delete_sync_config(args.sync_id):
        print("Error: External sync configuration not found")
        return 1
    print(f"Removed external sync {args.sync_id}")
    return 0


COMMANDS = {
    "add": add_command,
    "sync": sync_command,
    "import": import_command,
    "list": list_command,
    "logs": logs_command,
    "update": update_command,
    "remove": remove_command,
}


async def main_entry(
    argv: Optional[list[str]] = None, settings: Optional[ShiftSyncSettings] = None
) -> int:
    """Parse arguments and run the selected command.

    Returns:
        Process exit code
    """
    args = parse_args(argv)
    settings = settings or get_settings()

    setup_logging(args.log_level or settings.log_level, debug=args.debug or settings.debug or None)

    database = SyncDatabase(args.database or settings.database_file)
    return await COMMANDS[args.command](args, settings, database)


__all__ = ["create_parser", "main_entry"]
