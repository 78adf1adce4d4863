"""Errors raised by the library scanner."""

from __future__ import annotations

from pathlib import Path


class ScanError(Exception):
    """Base exception for library scanning."""


class LibraryUnavailable(ScanError):
    """Raised when a library root is missing or cannot be read."""

    def __init__(self, root: Path | str, reason: str) -> None:
        super().__init__(f"Library root {root} is unavailable: {reason}")
        self.root = Path(root)
        self.reason = reason


class EntryUnreadable(ScanError):
    """A single file or directory could not be read during a walk.

    Instances are collected as warnings and never raised out of the walker.
    """

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class InvalidPathKind(ScanError):
    """Raised when a path outside the library root reaches the normalizer."""

    def __init__(self, path: Path | str, root: Path | str) -> None:
        super().__init__(f"{path} is not located under library root {root}")
        self.path = Path(path)
        self.root = Path(root)


class ScanInProgress(ScanError):
    """Raised when another scan of the same library holds the lock too long."""

    def __init__(self, library_id: str, timeout: float) -> None:
        super().__init__(
            f"Library {library_id} is already being scanned (waited {timeout:g}s for the lock)"
        )
        self.library_id = library_id
        self.timeout = timeout


__all__ = [
    "ScanError",
    "LibraryUnavailable",
    "EntryUnreadable",
    "InvalidPathKind",
    "ScanInProgress",
]
