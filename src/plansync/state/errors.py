"""State management errors."""


class StateError(Exception):
    """Base exception for view state operations."""


class MissingStateError(StateError):
    """Raised when no state file exists for a workspace."""
