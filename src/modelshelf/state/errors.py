"""Record store errors."""


class StateError(Exception):
    """Base exception for record store operations."""


class MissingStateError(StateError):
    """Raised when a requested model record does not exist."""
