"""Transient ICS data models produced while reading and expanding a feed."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

UNTITLED_EVENT = "Untitled Event"


class RemoteEvent(BaseModel):
    """Facts read from a single VEVENT component.

    All-day events carry naive midnight datetimes; ``end`` is already
    resolved from DTEND, DURATION or the date-only default.
    """

    uid: str
    summary: Optional[str] = None
    description: Optional[str] = None
    start: datetime
    end: datetime
    is_all_day: bool = False
    status: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == "CANCELLED"


class ExpandedOccurrence(BaseModel):
    """One concrete instance of an event inside the sync window."""

    uid: str
    recurrence_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    start: datetime
    end: datetime
    is_all_day: bool = False

    @property
    def base_event_id(self) -> str:
        """External id of this instance before any per-day suffix."""
        if self.recurrence_id:
            return f"{self.uid}_{self.recurrence_id}"
        return self.uid

    @property
    def title(self) -> str:
        return self.summary or UNTITLED_EVENT


class EventSeries(BaseModel):
    """A master VEVENT together with its RECURRENCE-ID overrides."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    uid: str
    master: Optional[Any] = None
    overrides: dict[str, Any] = Field(default_factory=dict)
