"""Occurrence fingerprints and the per-sync-type identity policy."""

import hashlib
from enum import Enum
from typing import Optional

from ..storage.models import SyncType


class IdentityPolicy(str, Enum):
    """How an occurrence is recognized across two feed snapshots."""

    # Durable UIDs: the external event id is the identity
    EVENT_ID = "event_id"
    # Unstable UIDs: visible content (date, times, title) is the identity
    CONTENT = "content"


IDENTITY_POLICIES = {
    SyncType.ICLOUD: IdentityPolicy.EVENT_ID,
    SyncType.GOOGLE: IdentityPolicy.EVENT_ID,
    SyncType.CUSTOM: IdentityPolicy.CONTENT,
}


def identity_policy(sync_type: SyncType) -> IdentityPolicy:
    return IDENTITY_POLICIES[SyncType(sync_type)]


def identity_includes_event_id(sync_type: SyncType) -> bool:
    """Whether fingerprints for ``sync_type`` incorporate the external event id."""
    return identity_policy(sync_type) is IdentityPolicy.EVENT_ID


def create_event_fingerprint(
    date: str,
    start_time: str,
    end_time: str,
    title: str,
    external_event_id: Optional[str] = None,
) -> str:
    """Return a stable SHA-256 fingerprint for one occurrence-day.

    With an external event id the id alone is hashed, so edits to time or
    title keep the fingerprint and surface as updates. Without one the
    visible content is hashed.
    """
    if external_event_id is not None:
        canonical = f"uid:{external_event_id}"
    else:
        canonical = "|".join((date, start_time, end_time, title))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def fingerprint_for(
    sync_type: SyncType,
    date: str,
    start_time: str,
    end_time: str,
    title: str,
    external_event_id: Optional[str],
) -> str:
    """Fingerprint an occurrence-day under the identity policy of ``sync_type``."""
    event_id = external_event_id if identity_includes_event_id(sync_type) else None
    return create_event_fingerprint(date, start_time, end_time, title, event_id)
