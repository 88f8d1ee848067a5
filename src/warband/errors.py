class RunStateError(Exception):
    """Base exception for run state errors."""


class RunNotStartedError(RunStateError):
    """Raised when an operation needs an active run but none was started or restored."""


class CorruptRunStateError(RunStateError):
    """Raised when serialized run state cannot be restored.

    The in-memory run is left exactly as it was before the failed call.
    """


class InvalidRunStateError(RunStateError):
    """Raised when a run state object violates its invariants."""
