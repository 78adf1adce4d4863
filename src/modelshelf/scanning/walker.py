"""Recursive discovery of regular files beneath a library root."""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from typing import Iterator

from .errors import EntryUnreadable, LibraryUnavailable
from .models import DiscoveredFile

LOGGER = logging.getLogger(__name__)


def _reason(exc: OSError) -> str:
    return exc.strerror or str(exc)


class FilesystemWalker:
    """Lazily list every regular file reachable beneath a directory.

    Entries are visited depth first and sorted by name within each directory,
    so repeated walks of an unchanged tree produce the same order. Problems
    with individual entries are collected in :attr:`warnings` and skipped.
    """

    def __init__(self, *, follow_symlinks: bool = False, include_hidden: bool = True) -> None:
        self.follow_symlinks = follow_symlinks
        self.include_hidden = include_hidden
        self.warnings: list[EntryUnreadable] = []

    def walk(self, root: Path | str) -> Iterator[DiscoveredFile]:
        """Yield a :class:`DiscoveredFile` for every regular file under ``root``.

        Args:
            root: Library root directory.

        Yields:
            DiscoveredFile: Absolute path plus size and modification time.

        Raises:
            LibraryUnavailable: If the root is missing, not a directory, or
                cannot be listed. Raised on first iteration.
        """
        root_path = Path(root).expanduser().resolve()
        self.warnings = []
        if not root_path.exists():
            raise LibraryUnavailable(root_path, "path does not exist")
        if not root_path.is_dir():
            raise LibraryUnavailable(root_path, "path is not a directory")
        try:
            entries = self._list(root_path)
        except OSError as exc:
            raise LibraryUnavailable(root_path, _reason(exc)) from exc

        visited: set[tuple[int, int]] = set()
        if self.follow_symlinks:
            root_stat = root_path.stat()
            visited.add((root_stat.st_dev, root_stat.st_ino))
        yield from self._descend(entries, visited)

    def iter_paths(self, root: Path | str) -> Iterator[Path]:
        """Yield only the absolute file paths found under ``root``."""
        for discovered in self.walk(root):
            yield discovered.path

    def filenames_on_disk(self, root: Path | str) -> list[Path]:
        """Return every file path under ``root`` as a list."""
        return list(self.iter_paths(root))

    def _descend(
        self, entries: list[Path], visited: set[tuple[int, int]]
    ) -> Iterator[DiscoveredFile]:
        for entry in entries:
            if not self.include_hidden and entry.name.startswith("."):
                continue
            try:
                if entry.is_symlink() and not self.follow_symlinks:
                    continue
                info = entry.stat()
            except OSError as exc:
                self._warn(entry, _reason(exc))
                continue

            if stat.S_ISDIR(info.st_mode):
                if self.follow_symlinks:
                    identity = (info.st_dev, info.st_ino)
                    if identity in visited:
                        self._warn(entry, "directory already visited (symbolic link cycle)")
                        continue
                    visited.add(identity)
                try:
                    children = self._list(entry)
                except OSError as exc:
                    self._warn(entry, _reason(exc))
                    continue
                yield from self._descend(children, visited)
            elif stat.S_ISREG(info.st_mode):
                yield DiscoveredFile(
                    path=entry,
                    size_bytes=info.st_size,
                    modified_ns=info.st_mtime_ns,
                )

    def _list(self, directory: Path) -> list[Path]:
        return sorted(directory.iterdir(), key=lambda item: item.name)

    def _warn(self, path: Path, reason: str) -> None:
        warning = EntryUnreadable(path, reason)
        self.warnings.append(warning)
        LOGGER.warning("Skipping unreadable entry %s: %s", path, reason)


__all__ = ["FilesystemWalker"]
