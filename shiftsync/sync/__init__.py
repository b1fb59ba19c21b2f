"""Synchronization engine: day splitting, fingerprints, reconciliation and orchestration."""

from .executor import SyncExecutor
from .fingerprint import (
    IdentityPolicy,
    create_event_fingerprint,
    fingerprint_for,
    identity_includes_event_id,
)
from .models import ReconcilePlan, SyncState, SyncStats
from .notifier import CalendarChangeEvent, ChangeNotifier
from .reconciler import build_candidates, reconcile
from .splitter import DayEntry, split_multi_day_event

__all__ = [
    "CalendarChangeEvent",
    "ChangeNotifier",
    "DayEntry",
    "IdentityPolicy",
    "ReconcilePlan",
    "SyncExecutor",
    "SyncState",
    "SyncStats",
    "build_candidates",
    "create_event_fingerprint",
    "fingerprint_for",
    "identity_includes_event_id",
    "reconcile",
    "split_multi_day_event",
]
