"""Orchestration of one sync run: fetch, parse, expand, reconcile, persist, log."""

import asyncio
import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Any, Callable, Optional, Union

from ..ics.fetcher import ICSFetcher
from ..ics.models import EventSeries, ExpandedOccurrence
from ..ics.parser import ICSParser
from ..ics.rrule_expander import RRuleExpander, sync_window
from ..storage.database import OccurrenceStore
from ..storage.models import SyncConfig, SyncLog, SyncStatus, SyncTrigger
from ..utils.exceptions import SyncConfigNotFound
from ..utils.helpers import get_timezone_aware_now
from .models import ReconcilePlan, SyncState, SyncStats
from .notifier import ChangeNotifier
from .reconciler import build_candidates, reconcile

logger = logging.getLogger(__name__)


class SyncExecutor:
    """Runs the synchronization pipeline for one sync configuration at a time.

    Runs for the same sync id must be serialized by the caller; the
    reconciler reads a snapshot of stored occurrences and the persist
    transaction assumes no interleaving writer.
    """

    def __init__(
        self,
        settings: Any,
        store: OccurrenceStore,
        notifier: Optional[ChangeNotifier] = None,
        fetcher: Optional[ICSFetcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the executor.

        Args:
            settings: Application settings
            store: Persistence collaborator
            notifier: Change notification sink; a private one is created when omitted
            fetcher: Shared fetcher; a short-lived one is opened per run when omitted
            clock: Returns "now" for the sync window, mainly for tests
        """
        self.settings = settings
        self.store = store
        self.notifier = notifier or ChangeNotifier()
        self.fetcher = fetcher
        self.parser = ICSParser(settings)
        self.expander = RRuleExpander(settings)
        self.clock = clock or get_timezone_aware_now
        self.state = SyncState.IDLE

    def _transition(self, state: SyncState) -> None:
        logger.debug(f"Sync state {self.state.value} -> {state.value}")
        self.state = state

    async def synchronize(
        self, sync_id: str, trigger: SyncTrigger = SyncTrigger.MANUAL
    ) -> SyncStats:
        """Synchronize the feed of ``sync_id`` into its calendar.

        Raises:
            SyncConfigNotFound: If the sync id is unknown
            FetchFailure: If the feed could not be downloaded
            ParseFailure: If the feed is not valid iCalendar
            PersistenceFailure: If the results could not be committed
        """
        config = await self._load_config(sync_id)
        return await self._run(config, trigger)

    async def import_ics(
        self,
        sync_id: str,
        content: Union[str, bytes],
        trigger: SyncTrigger = SyncTrigger.MANUAL,
    ) -> SyncStats:
        """Synchronize from raw ICS content instead of fetching the feed."""
        config = await self._load_config(sync_id)
        return await self._run(config, trigger, content)

    async def _load_config(self, sync_id: str) -> SyncConfig:
        config = await self.store.get_sync_config(sync_id)
        if config is None:
            raise SyncConfigNotFound(sync_id)
        return config

    async def _run(
        self,
        config: SyncConfig,
        trigger: SyncTrigger,
        content: Optional[Union[str, bytes]] = None,
    ) -> SyncStats:
        self.state = SyncState.IDLE
        logger.info(f"Starting {trigger.value} sync of '{config.name}' ({config.id})")

        try:
            if content is None:
                self._transition(SyncState.FETCHING)
                content = await self._fetch(config)

            self._transition(SyncState.PARSING)
            calendar = self.parser.parse(content)
            vevents = self.parser.events(calendar)

            self._transition(SyncState.EXPANDING)
            plan = await self._plan(config, vevents)
        except Exception as e:
            self._transition(SyncState.FAILED)
            await self._record_failure(config, e, trigger)
            raise

        self._transition(SyncState.PERSISTING)
        log = SyncLog(
            calendar_id=config.calendar_id,
            external_sync_id=config.id,
            external_sync_name=config.name,
            status=SyncStatus.SUCCESS,
            shifts_created=len(plan.to_insert),
            shifts_updated=len(plan.to_update),
            shifts_deleted=len(plan.to_delete),
            trigger=trigger,
        )
        try:
            # Once persisting starts the transaction runs to completion
            await asyncio.shield(self.store.apply_sync(config, plan, log))
        except Exception:
            self._transition(SyncState.FAILED)
            raise

        self._transition(SyncState.DONE)
        stats = SyncStats(
            created=len(plan.to_insert),
            updated=len(plan.to_update),
            deleted=len(plan.to_delete),
            total_events=len(vevents),
            total_occurrences=len(plan.to_insert) + len(plan.to_update),
            calendar_id=config.calendar_id,
            sync_type=config.sync_type,
        )
        if plan.has_changes:
            logger.info(
                f"Synced '{config.name}': {stats.created} created, {stats.updated} updated, "
                f"{stats.deleted} deleted, {plan.unchanged} unchanged"
            )
        else:
            logger.info(f"Synced '{config.name}': {plan.unchanged} occurrences already up to date")
        self.notifier.notify(
            config.calendar_id, "sync-log", "create", stats.model_dump(mode="json")
        )
        return stats

    async def _fetch(self, config: SyncConfig) -> str:
        if self.fetcher is not None:
            return await self.fetcher.fetch(config.calendar_url)
        async with ICSFetcher(self.settings) as fetcher:
            return await fetcher.fetch(config.calendar_url)

    async def _plan(self, config: SyncConfig, vevents: list) -> ReconcilePlan:
        window_start, window_end = sync_window(self.clock())
        stored = await self.store.get_occurrences_for_sync(config.id)
        series = self.parser.group_series(vevents)

        candidates = build_candidates(
            self._expand_all(series, window_start, window_end),
            config.sync_type,
            self.settings.timezone,
        )
        return reconcile(candidates, stored, config.sync_type)

    def _expand_all(
        self, series: list[EventSeries], window_start: datetime, window_end: datetime
    ) -> Iterator[ExpandedOccurrence]:
        for item in series:
            yield from self.expander.expand(item, window_start, window_end)

    async def _record_failure(
        self, config: SyncConfig, error: Exception, trigger: SyncTrigger
    ) -> None:
        """Write an error log row; a failure to do so is only logged."""
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        logger.error(f"Sync of '{config.name}' ({config.id}) failed: {message}")

        try:
            await self.store.insert_sync_log(SyncLog.failure(config, message, trigger))
        except Exception:
            logger.exception(f"Could not record error log for sync {config.id}")
            return

        self.notifier.notify(config.calendar_id, "sync-log", "create")
