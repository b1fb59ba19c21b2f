"""Fire-and-forget change notifications for live-update subscribers."""

import asyncio
import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

CHANGE_KINDS = ("shift", "preset", "note", "calendar", "sync-log")
CHANGE_ACTIONS = ("create", "update", "delete")


class CalendarChangeEvent(BaseModel):
    """A change broadcast to subscribers of one calendar."""

    calendar_id: str
    kind: str
    action: str
    payload: Optional[Any] = None


ChangeListener = Callable[[CalendarChangeEvent], Any]


class ChangeNotifier:
    """Observer registry. Listener failures are logged and never propagate."""

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def notify(
        self, calendar_id: str, kind: str, action: str, payload: Optional[Any] = None
    ) -> None:
        """Deliver a change event to every listener.

        Coroutine listeners are scheduled on the running loop and not awaited.
        """
        if kind not in CHANGE_KINDS or action not in CHANGE_ACTIONS:
            raise ValueError(f"Unknown change event {kind}/{action}")

        event = CalendarChangeEvent(
            calendar_id=calendar_id, kind=kind, action=action, payload=payload
        )
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    task = asyncio.get_running_loop().create_task(result)
                    task.add_done_callback(_log_listener_failure)
            except Exception:
                logger.exception(f"Change listener failed for {kind}/{action} on {calendar_id}")


def _log_listener_failure(task: "asyncio.Task[Any]") -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Async change listener failed", exc_info=task.exception())
