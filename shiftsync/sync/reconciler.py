"""Diffing of a feed snapshot against previously stored occurrences."""

import logging
from collections.abc import Iterable, Iterator

from ..ics.models import ExpandedOccurrence
from ..storage.models import Occurrence, SyncType
from ..utils.helpers import to_wall_clock
from .fingerprint import fingerprint_for
from .models import OccurrenceCandidate, OccurrenceUpdate, ReconcilePlan
from .splitter import split_multi_day_event

logger = logging.getLogger(__name__)

# Fields compared after a fingerprint match
CONTENT_FIELDS = ("title", "date", "start_time", "end_time", "is_all_day", "notes")


def build_candidates(
    occurrences: Iterable[ExpandedOccurrence], sync_type: SyncType, tz_name: str
) -> Iterator[OccurrenceCandidate]:
    """Split expanded occurrences into fingerprinted occurrence-days.

    Timed instants are converted to wall-clock time in ``tz_name`` first.
    """
    for occurrence in occurrences:
        start = to_wall_clock(occurrence.start, tz_name)
        end = to_wall_clock(occurrence.end, tz_name)
        days = split_multi_day_event(start, end, occurrence.is_all_day)

        for entry in days:
            event_id = occurrence.base_event_id
            if len(days) > 1:
                event_id = f"{event_id}_day{entry.day_index}"
            day = entry.date.isoformat()

            yield OccurrenceCandidate(
                fingerprint=fingerprint_for(
                    sync_type, day, entry.start_time, entry.end_time, occurrence.title, event_id
                ),
                date=day,
                start_time=entry.start_time,
                end_time=entry.end_time,
                title=occurrence.title,
                notes=occurrence.description,
                is_all_day=occurrence.is_all_day,
                external_event_id=event_id,
            )


def stored_fingerprint(occurrence: Occurrence, sync_type: SyncType) -> str:
    return fingerprint_for(
        sync_type,
        occurrence.date,
        occurrence.start_time,
        occurrence.end_time,
        occurrence.title,
        occurrence.external_event_id,
    )


def needs_update(stored: Occurrence, candidate: OccurrenceCandidate) -> bool:
    """Whether matched content differs on any compared field."""
    return any(getattr(stored, name) != getattr(candidate, name) for name in CONTENT_FIELDS)


def reconcile(
    candidates: Iterable[OccurrenceCandidate],
    stored: Iterable[Occurrence],
    sync_type: SyncType,
) -> ReconcilePlan:
    """Classify candidates and stored rows into insert, update and delete.

    A fingerprint match with identical content is left untouched, so an
    unchanged feed yields an empty plan. Repeated fingerprints are collapsed
    to their first occurrence on both sides.
    """
    stored_by_fingerprint: dict[str, Occurrence] = {}
    duplicate_ids = []
    for occurrence in stored:
        fingerprint = stored_fingerprint(occurrence, sync_type)
        if fingerprint in stored_by_fingerprint:
            duplicate_ids.append(occurrence.id)
        else:
            stored_by_fingerprint[fingerprint] = occurrence

    plan = ReconcilePlan()
    for candidate in candidates:
        if candidate.fingerprint in plan.processed_fingerprints:
            logger.debug(f"Skipping duplicate occurrence {candidate.external_event_id}")
            continue
        plan.processed_fingerprints.add(candidate.fingerprint)

        existing = stored_by_fingerprint.get(candidate.fingerprint)
        if existing is None:
            plan.to_insert.append(candidate)
        elif needs_update(existing, candidate):
            plan.to_update.append(
                OccurrenceUpdate(occurrence_id=existing.id, candidate=candidate)
            )
        else:
            plan.unchanged += 1

    plan.to_delete = [
        occurrence.id
        for fingerprint, occurrence in stored_by_fingerprint.items()
        if fingerprint not in plan.processed_fingerprints
    ] + duplicate_ids

    return plan
