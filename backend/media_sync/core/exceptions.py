"""
Error taxonomy for the sync engine.

Per-item errors (everything except a pass timeout, which is reported as an
outcome rather than raised) abort only the item they were raised for.
"""


class MediaSyncError(Exception):
    """Base class for sync engine errors."""


class MalformedParentTree(MediaSyncError):
    """A remote parent tree is missing a field required to walk it."""


class MissingRequiredParent(MediaSyncError):
    """A new local record cannot be created without its parent."""


class PersistenceError(MediaSyncError):
    """The local content store failed to save a record."""


class QueueError(MediaSyncError):
    """A work item could not be handed to the dispatch queue."""


class RemoteApiError(MediaSyncError):
    """The Media Manager API returned an unusable response."""

    def __init__(self, message: str, status_code: int = None, detail: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
