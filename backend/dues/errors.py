"""Error taxonomy of the matching engine.

Unparseable deposit notifications are not exceptions: the canonicalizer
returns a ``ParseError`` value instead (see ``dues.services.canonicalizer``).
"""


class MatchingError(Exception):
    """Base class for errors surfaced by the matching engine."""

    status_code = 500


class ValidationError(MatchingError):
    """Submitted data is missing required fields or is malformed."""

    status_code = 400


class NotFoundError(MatchingError):
    """A referenced application, deposit or match does not exist."""

    status_code = 404


class ConflictError(MatchingError):
    """The entity is no longer in the state the operation requires."""

    status_code = 409


class PersistenceError(MatchingError):
    """The store is unavailable. Safe to retry."""

    status_code = 503
