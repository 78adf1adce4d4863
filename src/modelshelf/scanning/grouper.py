"""Partition discovered files into model candidates using folder conventions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator

from .models import DiscoveredFile, ModelCandidate
from .paths import CASE_SENSITIVE, PathComparator, relative_key, split_key

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _Folder:
    """In-memory directory node built from relative file keys."""

    name: str
    files: list[tuple[str, DiscoveredFile]] = field(default_factory=list)
    children: dict[str, "_Folder"] = field(default_factory=dict)

    def child(self, name: str, comparator: PathComparator) -> "_Folder":
        lookup = comparator.key(name)
        node = self.children.get(lookup)
        if node is None:
            node = _Folder(name=name)
            self.children[lookup] = node
        return node

    def iter_files(self) -> Iterator[tuple[str, DiscoveredFile]]:
        yield from self.files
        for child in self.children.values():
            yield from child.iter_files()


@dataclass(slots=True)
class GroupingResult:
    """Model candidates produced by a grouping pass.

    Attributes:
        candidates: Candidates keyed by their comparator lookup key.
        unassigned: Relative keys of files that belong to no model.
    """

    candidates: dict[str, ModelCandidate] = field(default_factory=dict)
    unassigned: list[str] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [candidate.path for candidate in self.candidates.values()]


class ModelGrouper:
    """Infer model boundaries from the layout of files beneath a library root.

    A folder becomes a single model when one of its immediate subfolders is a
    known bundle marker (``files``, ``images``, ...) or when it directly holds
    a model file. A folder holding only subfolders is treated as a container
    and each subfolder is resolved on its own. Folders without any model file
    in their subtree never become models.
    """

    def __init__(
        self,
        *,
        model_extensions: Iterable[str],
        bundle_markers: Iterable[str],
        comparator: PathComparator = CASE_SENSITIVE,
    ) -> None:
        self.comparator = comparator
        self._extensions = {ext.strip().lstrip(".").lower() for ext in model_extensions}
        self._markers = {marker.casefold() for marker in bundle_markers}

    def is_model_file(self, name: str) -> bool:
        """Return True when ``name`` has a recognised model extension (any case)."""
        suffix = PurePosixPath(name).suffix
        return bool(suffix) and suffix[1:].lower() in self._extensions

    def group(self, files: Iterable[DiscoveredFile], root: Path | str) -> GroupingResult:
        """Group ``files`` found under ``root`` into model candidates.

        Args:
            files: Files produced by the walker.
            root: Library root the files were discovered under.

        Returns:
            GroupingResult: Candidates keyed by comparator key plus unassigned files.

        Raises:
            InvalidPathKind: If a file is not located under ``root``.
        """
        tree = _Folder(name="")
        seen: set[str] = set()
        for discovered in files:
            key = relative_key(discovered.path, root, comparator=self.comparator)
            lookup = self.comparator.key(key)
            if lookup in seen:
                LOGGER.debug("Collapsing %s onto an existing entry with the same key", key)
                continue
            seen.add(lookup)
            segments = split_key(key)
            node = tree
            for segment in segments[:-1]:
                node = node.child(segment, self.comparator)
            node.files.append((key, discovered))

        result = GroupingResult()
        for key, _ in tree.files:
            LOGGER.debug("File %s sits directly in the library root; not part of a model", key)
            result.unassigned.append(key)
        for folder in tree.children.values():
            self._resolve(folder, [folder.name], result)
        return result

    def _resolve(self, folder: _Folder, segments: list[str], result: GroupingResult) -> None:
        path = "/".join(segments)
        if not self._contains_model(folder):
            LOGGER.debug("Folder %s holds no model files; skipping", path)
            result.unassigned.extend(key for key, _ in folder.iter_files())
            return

        if self._is_bundle(folder) or any(self.is_model_file(key) for key, _ in folder.files):
            members = [discovered for _, discovered in folder.iter_files()]
            result.candidates[self.comparator.key(path)] = ModelCandidate(path=path, files=members)
            return

        result.unassigned.extend(key for key, _ in folder.files)
        for child in folder.children.values():
            self._resolve(child, [*segments, child.name], result)

    def _is_bundle(self, folder: _Folder) -> bool:
        return any(child.name.casefold() in self._markers for child in folder.children.values())

    def _contains_model(self, folder: _Folder) -> bool:
        return any(self.is_model_file(key) for key, _ in folder.iter_files())


__all__ = ["GroupingResult", "ModelGrouper"]
