"""Base exception taxonomy for synchronization runs."""

from typing import Optional


class SyncError(Exception):
    """Base exception for every failure scoped to a single sync run.

    The message is surfaced to users verbatim, so it is kept on the
    instance as well as in ``args``.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PersistenceFailure(SyncError):
    """Exception raised when the sync transaction cannot be committed."""


class SyncConfigNotFound(SyncError):
    """Exception raised when a sync configuration id does not exist."""

    def __init__(self, sync_id: str):
        super().__init__("External sync configuration not found", status_code=404)
        self.sync_id = sync_id
