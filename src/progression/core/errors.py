"""Error taxonomy for grade and level progression operations."""


class ProgressionError(Exception):
    """Base class for progression service errors."""

    code = "progression_error"


class ValidationError(ProgressionError):
    """Raised when a score, period number or identifier is invalid."""

    code = "validation_error"


class NotFoundError(ProgressionError):
    """Raised for an unknown class, level or student pairing."""

    code = "not_found"


class ConflictError(ProgressionError):
    """Raised when a concurrent transition holds the level ledger entry.

    Callers may retry with backoff; the service never retries on its own.
    """

    code = "conflict"


class InconsistentStateError(ProgressionError):
    """Raised when the ledger cannot support the requested transition.

    Typical case: a terminal period is saved for a student with no open
    level attempt. Requires manual reconciliation.
    """

    code = "inconsistent_state"
