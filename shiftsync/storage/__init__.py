"""Persistence of sync configurations, synced occurrences and sync logs."""

from .database import OccurrenceStore, SyncDatabase
from .models import (
    Occurrence,
    SyncConfig,
    SyncLog,
    SyncStatus,
    SyncTrigger,
    SyncType,
)

__all__ = [
    "Occurrence",
    "OccurrenceStore",
    "SyncConfig",
    "SyncDatabase",
    "SyncLog",
    "SyncStatus",
    "SyncTrigger",
    "SyncType",
]
