"""Error hierarchy for the change-detection engine.

Transient errors come from collaborators (storage backend, notification sink)
and may succeed on the next pass. Permanent errors describe data that will not
get better by itself, such as a corrupt persisted document.

Neither kind is retried inside a pass; callers catch them at the item level,
log, and move on.
"""


class EventwatchError(Exception):
    """Base exception for all engine errors."""

    pass


class TransientError(EventwatchError):
    """Collaborator failure that may succeed on a later pass."""

    pass


class StoreError(TransientError):
    """The key-value backend could not read or write a document."""

    pass


class SinkError(TransientError):
    """The notification sink rejected a show or cancel request."""

    pass


class PermanentError(EventwatchError):
    """Failure that will not succeed on a later pass."""

    pass


class DataError(PermanentError):
    """Persisted data or an event record is malformed."""

    pass
