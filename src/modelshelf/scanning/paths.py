"""Path normalization and case-aware comparison helpers."""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePath

from .errors import InvalidPathKind

LOGGER = logging.getLogger(__name__)

PROBE_PREFIX = ".modelshelf-case-probe-"


@dataclass(frozen=True, slots=True)
class PathComparator:
    """Compare relative paths according to the filesystem's case rules."""

    case_sensitive: bool = True

    def key(self, value: str) -> str:
        """Return the lookup key for a path or path segment."""
        return value if self.case_sensitive else value.casefold()

    def same(self, left: str, right: str) -> bool:
        return self.key(left) == self.key(right)


CASE_SENSITIVE = PathComparator(case_sensitive=True)
CASE_INSENSITIVE = PathComparator(case_sensitive=False)


def relative_key(
    path: Path | str,
    root: Path | str,
    *,
    comparator: PathComparator = CASE_SENSITIVE,
) -> str:
    """Return ``path`` relative to ``root`` using forward slashes.

    Both paths are normalized before comparison, and the root prefix is matched
    segment by segment through ``comparator``.

    Args:
        path: Absolute path of an entry beneath the root.
        root: Library root directory.
        comparator: Case rules applied to the root prefix.

    Returns:
        str: Relative path such as ``model_one/part_1.obj``.

    Raises:
        InvalidPathKind: If ``path`` is not located strictly beneath ``root``.
    """
    root_parts = PurePath(os.path.normpath(os.fspath(root))).parts
    path_parts = PurePath(os.path.normpath(os.fspath(path))).parts
    if len(path_parts) <= len(root_parts):
        raise InvalidPathKind(path, root)
    for root_part, path_part in zip(root_parts, path_parts):
        if not comparator.same(root_part, path_part):
            raise InvalidPathKind(path, root)
    return "/".join(path_parts[len(root_parts) :])


def split_key(key: str) -> list[str]:
    """Split a relative key into its segments."""
    return [segment for segment in key.split("/") if segment]


def platform_case_sensitivity() -> bool:
    """Return the usual case behavior for the host platform's default filesystem."""
    return not (sys.platform.startswith("win") or sys.platform == "darwin")


def probe_case_sensitivity(directory: Path | str) -> bool:
    """Detect whether ``directory`` lives on a case-sensitive filesystem.

    A short-lived hidden file is created in the directory and its upper-cased
    name is looked up. When the directory is not writable the platform default
    is returned instead.
    """
    try:
        with tempfile.NamedTemporaryFile(prefix=PROBE_PREFIX, dir=directory) as handle:
            probe = Path(handle.name)
            return not probe.with_name(probe.name.upper()).exists()
    except OSError as exc:
        fallback = platform_case_sensitivity()
        LOGGER.debug(
            "Case sensitivity probe failed in %s (%s); assuming case_sensitive=%s",
            directory,
            exc,
            fallback,
        )
        return fallback


__all__ = [
    "CASE_INSENSITIVE",
    "CASE_SENSITIVE",
    "PROBE_PREFIX",
    "PathComparator",
    "platform_case_sensitivity",
    "probe_case_sensitivity",
    "relative_key",
    "split_key",
]
