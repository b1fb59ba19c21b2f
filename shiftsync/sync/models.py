"""Models exchanged between the reconciler, the executor and its callers."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..storage.models import Occurrence, SyncConfig, SyncType


class SyncState(str, Enum):
    """Stages of one executor run."""

    IDLE = "idle"
    FETCHING = "fetching"
    PARSING = "parsing"
    # Expanding, splitting, fingerprinting and reconciling
    EXPANDING = "expanding"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class OccurrenceCandidate(BaseModel):
    """An occurrence-day computed from the current feed snapshot."""

    fingerprint: str
    date: str
    start_time: str
    end_time: str
    title: str
    notes: Optional[str] = None
    is_all_day: bool = False
    external_event_id: str

    def to_occurrence(self, config: SyncConfig) -> Occurrence:
        """Materialize as a new stored occurrence owned by ``config``."""
        return Occurrence(
            calendar_id=config.calendar_id,
            external_sync_id=config.id,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            title=self.title,
            color=config.color,
            notes=self.notes,
            is_all_day=self.is_all_day,
            external_event_id=self.external_event_id,
            synced_from_external=True,
        )


class OccurrenceUpdate(BaseModel):
    """New content for a stored occurrence whose fingerprint matched."""

    occurrence_id: str
    candidate: OccurrenceCandidate


class ReconcilePlan(BaseModel):
    """Minimal set of writes that brings stored occurrences in line with the feed."""

    to_insert: list[OccurrenceCandidate] = Field(default_factory=list)
    to_update: list[OccurrenceUpdate] = Field(default_factory=list)
    to_delete: list[str] = Field(default_factory=list)
    unchanged: int = 0
    processed_fingerprints: set[str] = Field(default_factory=set)

    @property
    def has_changes(self) -> bool:
        return bool(self.to_insert or self.to_update or self.to_delete)


class SyncStats(BaseModel):
    """Summary returned by a successful sync run."""

    created: int
    updated: int
    deleted: int
    total_events: int
    total_occurrences: int
    calendar_id: str
    sync_type: SyncType
