"""Persisted records: sync configurations, synced occurrences and sync logs."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from ..utils.helpers import get_timezone_aware_now

DEFAULT_COLOR = "#3b82f6"


class SyncType(str, Enum):
    """Kind of external feed; drives the occurrence identity policy."""

    ICLOUD = "icloud"
    GOOGLE = "google"
    CUSTOM = "custom"


class SyncStatus(str, Enum):
    """Outcome recorded in a sync log row."""

    SUCCESS = "success"
    ERROR = "error"


class SyncTrigger(str, Enum):
    """What started a sync run."""

    MANUAL = "manual"
    AUTO = "auto"


def new_id() -> str:
    return str(uuid.uuid4())


class SyncConfig(BaseModel):
    """One external feed bound to one calendar."""

    id: str = Field(default_factory=new_id)
    calendar_id: str
    name: str
    calendar_url: str
    color: str = DEFAULT_COLOR
    sync_type: SyncType = SyncType.CUSTOM
    is_one_time_import: bool = False
    auto_sync_interval: int = 0
    last_synced_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=get_timezone_aware_now)
    updated_at: datetime = Field(default_factory=get_timezone_aware_now)

    @field_serializer("last_synced_at", "created_at", "updated_at")
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat() if dt is not None else None


class Occurrence(BaseModel):
    """A day-granular calendar entry materialized from an external event."""

    id: str = Field(default_factory=new_id)
    calendar_id: str
    external_sync_id: str
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    title: str
    color: str = DEFAULT_COLOR
    notes: Optional[str] = None
    is_all_day: bool = False
    external_event_id: Optional[str] = None
    synced_from_external: bool = True
    created_at: datetime = Field(default_factory=get_timezone_aware_now)
    updated_at: datetime = Field(default_factory=get_timezone_aware_now)

    @field_serializer("created_at", "updated_at")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()


class SyncLog(BaseModel):
    """Append-only audit record of one sync attempt."""

    id: str = Field(default_factory=new_id)
    calendar_id: str
    external_sync_id: Optional[str] = None
    external_sync_name: str
    status: SyncStatus
    error_message: Optional[str] = None
    shifts_created: int = 0
    shifts_updated: int = 0
    shifts_deleted: int = 0
    trigger: SyncTrigger = SyncTrigger.AUTO
    is_read: bool = False
    synced_at: datetime = Field(default_factory=get_timezone_aware_now)

    @field_serializer("synced_at")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()

    @classmethod
    def failure(cls, config: SyncConfig, message: str, trigger: SyncTrigger) -> "SyncLog":
        """Build an error log row for ``config`` with zero counts."""
        return cls(
            calendar_id=config.calendar_id,
            external_sync_id=config.id,
            external_sync_name=config.name,
            status=SyncStatus.ERROR,
            error_message=message,
            trigger=trigger,
        )
