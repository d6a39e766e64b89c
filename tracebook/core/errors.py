"""Exception types raised at the edges of the search index."""


class TracebookError(Exception):
    """Base class for all Tracebook errors."""


class PlaceStoreError(TracebookError):
    """A place store could not list the places of a collection."""

    def __init__(self, collection_id: str, message: str, status: int | None = None):
        self.collection_id = collection_id
        self.status = status
        detail = f" (status {status})" if status is not None else ""
        super().__init__(f"{collection_id}: {message}{detail}")


class SessionFileError(TracebookError):
    """A session snapshot file is missing, unreadable or malformed."""
