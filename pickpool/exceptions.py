"""
Exception hierarchy for the pick pool.

State errors indicate a caller bug and are surfaced; feed record errors are
logged and skipped by the sync engine.
"""


class PickPoolError(Exception):
    """Base class for all pick pool errors"""


class InvalidStateError(PickPoolError):
    """Raised when an operation is not valid for the current state of a game"""


class NotFoundError(InvalidStateError):
    """Raised when a referenced game does not exist"""


class FeedError(PickPoolError):
    """Base class for odds feed problems"""


class FeedUnavailableError(FeedError):
    """Raised when the odds feed cannot be reached or returns an error"""


class FeedRecordError(FeedError):
    """Raised for a single malformed feed record"""
