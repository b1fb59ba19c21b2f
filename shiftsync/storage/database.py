"""SQLite persistence for sync configurations, synced occurrences and sync logs."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Protocol, Union

import aiosqlite

from ..utils.exceptions import PersistenceFailure
from ..utils.helpers import get_timezone_aware_now
from .models import Occurrence, SyncConfig, SyncLog, SyncStatus

if TYPE_CHECKING:
    from ..sync.models import OccurrenceCandidate, OccurrenceUpdate, ReconcilePlan

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS sync_configs (
        id TEXT PRIMARY KEY,
        calendar_id TEXT NOT NULL,
        name TEXT NOT NULL,
        calendar_url TEXT NOT NULL,
        color TEXT NOT NULL DEFAULT '#3b82f6',
        sync_type TEXT NOT NULL DEFAULT 'custom',
        is_one_time_import INTEGER NOT NULL DEFAULT 0,
        auto_sync_interval INTEGER NOT NULL DEFAULT 0,
        last_synced_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS occurrences (
        id TEXT PRIMARY KEY,
        calendar_id TEXT NOT NULL,
        external_sync_id TEXT NOT NULL,
        date TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        title TEXT NOT NULL,
        color TEXT NOT NULL,
        notes TEXT,
        is_all_day INTEGER NOT NULL DEFAULT 0,
        external_event_id TEXT,
        synced_from_external INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (external_sync_id) REFERENCES sync_configs(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_occurrences_sync
    ON occurrences(external_sync_id)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_occurrences_calendar_date
    ON occurrences(calendar_id, date)
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_logs (
        id TEXT PRIMARY KEY,
        calendar_id TEXT NOT NULL,
        external_sync_id TEXT,
        external_sync_name TEXT NOT NULL,
        status TEXT NOT NULL,
        error_message TEXT,
        shifts_created INTEGER NOT NULL DEFAULT 0,
        shifts_updated INTEGER NOT NULL DEFAULT 0,
        shifts_deleted INTEGER NOT NULL DEFAULT 0,
        sync_trigger TEXT NOT NULL DEFAULT 'auto',
        is_read INTEGER NOT NULL DEFAULT 0,
        synced_at TEXT NOT NULL,
        FOREIGN KEY (external_sync_id) REFERENCES sync_configs(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_sync_logs_calendar
    ON sync_logs(calendar_id, synced_at)
    """,
)


class OccurrenceStore(Protocol):
    """Persistence collaborator required by the sync executor."""

    async def get_sync_config(self, sync_id: str) -> Optional[SyncConfig]: ...

    async def get_occurrences_for_sync(self, sync_id: str) -> list[Occurrence]: ...

    async def apply_sync(
        self, config: SyncConfig, plan: "ReconcilePlan", log: SyncLog
    ) -> None: ...

    async def insert_sync_log(self, log: SyncLog) -> None: ...


class SyncDatabase:
    """aiosqlite implementation of :class:`OccurrenceStore`."""

    def __init__(self, database_path: Union[Path, str]):
        """Initialize database manager.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False
        self._initialization_lock: Optional[asyncio.Lock] = None

        logger.debug(f"Sync database initialized (lazy): {database_path}")

    async def initialize(self) -> None:
        """Create the schema if needed."""
        await self._ensure_initialized()

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        if self._initialization_lock is None:
            self._initialization_lock = asyncio.Lock()

        async with self._initialization_lock:
            if self._initialized:
                return

            try:
                async with aiosqlite.connect(str(self.database_path)) as db:
                    # WAL lets readers see the last committed sync while a new one runs
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.execute("PRAGMA synchronous=NORMAL")
                    for statement in SCHEMA:
                        await db.execute(statement)
                    await db.commit()
            except aiosqlite.Error as e:
                logger.exception("Failed to initialize database")
                raise PersistenceFailure(f"Failed to initialize database: {e}") from e

            self._initialized = True
            logger.info("Database schema initialized successfully")

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self.database_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys=ON")
            yield db

    # Sync configurations

    async def save_sync_config(self, config: SyncConfig) -> None:
        """Insert a sync configuration, or update it in place when the id exists.

        Occurrences and logs owned by an existing configuration are kept.
        """
        async with self._connect() as db:
            await self._upsert_sync_config(db, config)
            await db.commit()

    async def _upsert_sync_config(self, db: aiosqlite.Connection, config: SyncConfig) -> None:
        await db.execute(
            """
            INSERT INTO sync_configs (
                id, calendar_id, name, calendar_url, color, sync_type,
                is_one_time_import, auto_sync_interval, last_synced_at,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                calendar_id = excluded.calendar_id,
                name = excluded.name,
                calendar_url = excluded.calendar_url,
                color = excluded.color,
                sync_type = excluded.sync_type,
                is_one_time_import = excluded.is_one_time_import,
                auto_sync_interval = excluded.auto_sync_interval,
                last_synced_at = excluded.last_synced_at,
                updated_at = excluded.updated_at
            """,
            (
                config.id,
                config.calendar_id,
                config.name,
                config.calendar_url,
                config.color,
                config.sync_type.value,
                int(config.is_one_time_import),
                config.auto_sync_interval,
                config.last_synced_at.isoformat() if config.last_synced_at else None,
                config.created_at.isoformat(),
                config.updated_at.isoformat(),
            ),
        )

    async def update_sync_config(
        self,
        sync_id: str,
        name: Optional[str] = None,
        calendar_url: Optional[str] = None,
        color: Optional[str] = None,
        auto_sync_interval: Optional[int] = None,
    ) -> Optional[SyncConfig]:
        """Change the editable fields of a sync configuration.

        A new color is also applied to every occurrence of the sync, in the
        same transaction. Values are stored as given; callers validate them.

        Returns:
            The updated configuration, or None if the id does not exist

        Raises:
            PersistenceFailure: If the update could not be committed
        """
        config = await self.get_sync_config(sync_id)
        if config is None:
            return None

        changes = {
            field: value
            for field, value in (
                ("name", name),
                ("calendar_url", calendar_url),
                ("color", color),
                ("auto_sync_interval", auto_sync_interval),
            )
            if value is not None
        }
        now = get_timezone_aware_now()
        updated = config.model_copy(update={**changes, "updated_at": now})
        recolor = color is not None and color != config.color

        try:
            async with self._connect() as db:
                try:
                    await db.execute("BEGIN")
                    await self._upsert_sync_config(db, updated)
                    if recolor:
                        await db.execute(
                            "UPDATE occurrences SET color = ?, updated_at = ? "
                            "WHERE external_sync_id = ?",
                            (color, now.isoformat(), sync_id),
                        )
                    await db.commit()
                except aiosqlite.Error:
                    await db.rollback()
                    raise
        except aiosqlite.Error as e:
            logger.exception(f"Update of sync {sync_id} rolled back")
            raise PersistenceFailure(f"Failed to update external sync: {e}") from e

        logger.info(f"Updated sync {sync_id}: {', '.join(sorted(changes)) or 'no changes'}")
        return updated

    async def get_sync_config(self, sync_id: str) -> Optional[SyncConfig]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM sync_configs WHERE id = ?", (sync_id,))
            row = await cursor.fetchone()
        return self._row_to_sync_config(row) if row else None

    async def list_sync_configs(self, calendar_id: Optional[str] = None) -> list[SyncConfig]:
        async with self._connect() as db:
            if calendar_id is None:
                cursor = await db.execute("SELECT * FROM sync_configs ORDER BY created_at")
            else:
                cursor = await db.execute(
                    "SELECT * FROM sync_configs WHERE calendar_id = ? ORDER BY created_at",
                    (calendar_id,),
                )
            rows = await cursor.fetchall()
        return [self._row_to_sync_config(row) for row in rows]

    async def delete_sync_config(self, sync_id: str) -> bool:
        """Delete a sync configuration together with its occurrences and logs."""
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM sync_configs WHERE id = ?", (sync_id,))
            await db.commit()
            return cursor.rowcount > 0

    # Occurrences

    async def get_occurrences_for_sync(self, sync_id: str) -> list[Occurrence]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM occurrences WHERE external_sync_id = ? ORDER BY date, start_time",
                (sync_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_occurrence(row) for row in rows]

    async def apply_sync(self, config: SyncConfig, plan: "ReconcilePlan", log: SyncLog) -> None:
        """Apply a reconcile plan, the last-synced stamp and the log in one transaction.

        Raises:
            PersistenceFailure: If any statement fails; nothing is committed
        """
        synced_at = log.synced_at
        try:
            async with self._connect() as db:
                try:
                    await db.execute("BEGIN")
                    await self._insert_occurrences(db, config, plan.to_insert)
                    await self._update_occurrences(db, plan.to_update, synced_at)
                    await self._delete_occurrences(db, plan.to_delete)
                    await self._stamp_last_synced(db, config.id, synced_at)
                    await self._insert_sync_log(db, log)
                    await db.commit()
                except aiosqlite.Error:
                    await db.rollback()
                    raise
        except aiosqlite.Error as e:
            logger.exception(f"Sync transaction for {config.id} rolled back")
            raise PersistenceFailure(f"Failed to save synced events: {e}") from e

        logger.debug(
            f"Committed sync {config.id}: +{len(plan.to_insert)} "
            f"~{len(plan.to_update)} -{len(plan.to_delete)}"
        )

    async def _insert_occurrences(
        self,
        db: aiosqlite.Connection,
        config: SyncConfig,
        candidates: "list[OccurrenceCandidate]",
    ) -> None:
        if not candidates:
            return
        rows = []
        for candidate in candidates:
            occurrence = candidate.to_occurrence(config)
            rows.append(
                (
                    occurrence.id,
                    occurrence.calendar_id,
                    occurrence.external_sync_id,
                    occurrence.date,
                    occurrence.start_time,
                    occurrence.end_time,
                    occurrence.title,
                    occurrence.color,
                    occurrence.notes,
                    int(occurrence.is_all_day),
                    occurrence.external_event_id,
                    int(occurrence.synced_from_external),
                    occurrence.created_at.isoformat(),
                    occurrence.updated_at.isoformat(),
                )
            )
        await db.executemany(
            """
            INSERT INTO occurrences (
                id, calendar_id, external_sync_id, date, start_time, end_time,
                title, color, notes, is_all_day, external_event_id,
                synced_from_external, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )

    async def _update_occurrences(
        self, db: aiosqlite.Connection, updates: "list[OccurrenceUpdate]", updated_at: datetime
    ) -> None:
        if not updates:
            return
        await db.executemany(
            """
            UPDATE occurrences
            SET date = ?, start_time = ?, end_time = ?, title = ?, notes = ?,
                is_all_day = ?, external_event_id = ?, updated_at = ?
            WHERE id = ?
            """,
            [
                (
                    update.candidate.date,
                    update.candidate.start_time,
                    update.candidate.end_time,
                    update.candidate.title,
                    update.candidate.notes,
                    int(update.candidate.is_all_day),
                    update.candidate.external_event_id,
                    updated_at.isoformat(),
                    update.occurrence_id,
                )
                for update in updates
            ],
        )

    async def _delete_occurrences(
        self, db: aiosqlite.Connection, occurrence_ids: list[str]
    ) -> None:
        if not occurrence_ids:
            return
        await db.executemany(
            "DELETE FROM occurrences WHERE id = ?",
            [(occurrence_id,) for occurrence_id in occurrence_ids],
        )

    async def _stamp_last_synced(
        self, db: aiosqlite.Connection, sync_id: str, synced_at: datetime
    ) -> None:
        await db.execute(
            "UPDATE sync_configs SET last_synced_at = ?, updated_at = ? WHERE id = ?",
            (synced_at.isoformat(), synced_at.isoformat(), sync_id),
        )

    # Sync logs

    async def insert_sync_log(self, log: SyncLog) -> None:
        async with self._connect() as db:
            await self._insert_sync_log(db, log)
            await db.commit()

    async def _insert_sync_log(self, db: aiosqlite.Connection, log: SyncLog) -> None:
        await db.execute(
            """
            INSERT INTO sync_logs (
                id, calendar_id, external_sync_id, external_sync_name, status,
                error_message, shifts_created, shifts_updated, shifts_deleted,
                sync_trigger, is_read, synced_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                log.id,
                log.calendar_id,
                log.external_sync_id,
                log.external_sync_name,
                log.status.value,
                log.error_message,
                log.shifts_created,
                log.shifts_updated,
                log.shifts_deleted,
                log.trigger.value,
                int(log.is_read),
                log.synced_at.isoformat(),
            ),
        )

    async def get_sync_logs(self, calendar_id: str, limit: int = 50) -> list[SyncLog]:
        """Return the most recent sync logs of a calendar, newest first."""
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT * FROM sync_logs WHERE calendar_id = ?
                ORDER BY synced_at DESC, rowid DESC LIMIT ?
                """,
                (calendar_id, limit),
            )
            rows = await cursor.fetchall()
        return [self._row_to_sync_log(row) for row in rows]

    async def mark_errors_read(self, calendar_id: str) -> int:
        """Mark the unread error logs of a calendar as read, returning how many changed."""
        async with self._connect() as db:
            cursor = await db.execute(
                """
                UPDATE sync_logs SET is_read = 1
                WHERE calendar_id = ? AND status = ? AND is_read = 0
                """,
                (calendar_id, SyncStatus.ERROR.value),
            )
            await db.commit()
            return cursor.rowcount

    # Row conversion

    def _row_to_sync_config(self, row: aiosqlite.Row) -> SyncConfig:
        return SyncConfig(
            id=row["id"],
            calendar_id=row["calendar_id"],
            name=row["name"],
            calendar_url=row["calendar_url"],
            color=row["color"],
            sync_type=row["sync_type"],
            is_one_time_import=bool(row["is_one_time_import"]),
            auto_sync_interval=row["auto_sync_interval"],
            last_synced_at=row["last_synced_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_occurrence(self, row: aiosqlite.Row) -> Occurrence:
        return Occurrence(
            id=row["id"],
            calendar_id=row["calendar_id"],
            external_sync_id=row["external_sync_id"],
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            title=row["title"],
            color=row["color"],
            notes=row["notes"],
            is_all_day=bool(row["is_all_day"]),
            external_event_id=row["external_event_id"],
            synced_from_external=bool(row["synced_from_external"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_sync_log(self, row: aiosqlite.Row) -> SyncLog:
        return SyncLog(
            id=row["id"],
            calendar_id=row["calendar_id"],
            external_sync_id=row["external_sync_id"],
            external_sync_name=row["external_sync_name"],
            status=row["status"],
            error_message=row["error_message"],
            shifts_created=row["shifts_created"],
            shifts_updated=row["shifts_updated"],
            shifts_deleted=row["shifts_deleted"],
            trigger=row["sync_trigger"],
            is_read=bool(row["is_read"]),
            synced_at=row["synced_at"],
        )
