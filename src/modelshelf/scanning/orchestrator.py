"""Library scan orchestration: walk, group, detect, apply and schedule."""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from modelshelf.config.models import ScanOptions
from modelshelf.jobs import RescanTask, TaskQueue
from modelshelf.state import ModelRecord, RecordStore

from .detector import ChangeDetector
from .errors import LibraryUnavailable, ScanInProgress
from .grouper import GroupingResult, ModelGrouper
from .models import Library, ModelChange, ScanDelta, ScanSummary
from .paths import PathComparator, probe_case_sensitivity, relative_key
from .walker import FilesystemWalker

LOGGER = logging.getLogger(__name__)


class LibraryLockRegistry:
    """Hand out one advisory lock per library identifier."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, library_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(library_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[library_id] = lock
            return lock

    @contextmanager
    def hold(self, library_id: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for ``library_id`` for the duration of the block.

        Raises:
            ScanInProgress: If ``timeout`` elapses before the lock is free.
        """
        lock = self.lock_for(library_id)
        acquired = lock.acquire() if timeout is None else lock.acquire(timeout=timeout)
        if not acquired:
            raise ScanInProgress(library_id, timeout or 0.0)
        try:
            yield
        finally:
            lock.release()


DEFAULT_LOCKS = LibraryLockRegistry()


class LibraryScanner:
    """Reconcile a library's files on disk with its stored model records.

    A scan walks the whole library before touching the record store. Changes
    are then applied in a single record-store transaction, and one rescan task
    is submitted for every added or changed model. Unchanged models are left
    alone and never scheduled.
    """

    def __init__(
        self,
        record_store: RecordStore,
        task_queue: TaskQueue,
        *,
        options: ScanOptions | None = None,
        locks: LibraryLockRegistry | None = None,
        walker_factory: Callable[[], FilesystemWalker] | None = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            record_store: Store holding previously observed models.
            task_queue: Destination for per-model rescan tasks.
            options: Walk and grouping options; defaults apply when omitted.
            locks: Lock registry serializing scans of the same library.
            walker_factory: Builds a fresh walker for each scan.
        """
        self.record_store = record_store
        self.task_queue = task_queue
        self.options = options or ScanOptions()
        self.locks = locks or DEFAULT_LOCKS
        self._walker_factory = walker_factory or self._default_walker

    def scan(self, library: Library) -> ScanSummary:
        """Scan ``library`` and return a summary of what changed.

        Raises:
            LibraryUnavailable: If the root is missing or unreadable. No record
                is modified in that case.
            ScanInProgress: If the library lock cannot be acquired in time.
        """
        with self.locks.hold(library.id, self.options.lock_timeout_seconds):
            return self._scan_locked(library)

    def comparator_for(self, root: Path) -> PathComparator:
        """Return the path comparator to use for ``root``."""
        case_sensitive = self.options.case_sensitive
        if case_sensitive is None:
            case_sensitive = probe_case_sensitivity(root)
        return PathComparator(case_sensitive=case_sensitive)

    def plan(self, library: Library) -> tuple[ScanDelta, ScanSummary, PathComparator]:
        """Compute the delta for ``library`` without mutating anything."""
        grouping, summary, comparator = self._survey(library)
        stored = self.record_store.list_models(library.id)
        delta = ChangeDetector(comparator).detect(
            grouping.candidates, stored, root=summary.root.as_posix()
        )
        return delta, summary, comparator

    def _survey(self, library: Library) -> tuple[GroupingResult, ScanSummary, PathComparator]:
        summary = ScanSummary(library_id=library.id, root=library.path)
        root = self._check_root(library.path)
        summary.root = root
        comparator = self.comparator_for(root)

        walker = self._walker_factory()
        files = list(walker.walk(root))
        summary.warnings.extend(str(warning) for warning in walker.warnings)

        grouper = ModelGrouper(
            model_extensions=self.options.model_extensions,
            bundle_markers=self.options.bundle_markers,
            comparator=comparator,
        )
        grouping = grouper.group(files, root)
        if grouping.unassigned:
            LOGGER.debug(
                "%d file(s) in %s do not belong to any model", len(grouping.unassigned), root
            )
        return grouping, summary, comparator

    def _scan_locked(self, library: Library) -> ScanSummary:
        grouping, summary, comparator = self._survey(library)
        detector = ChangeDetector(comparator)
        root = summary.root
        delta = detector.detect(
            grouping.candidates, self.record_store.list_models(library.id), root=root.as_posix()
        )

        if not delta.is_empty:
            with self.record_store.transaction(library.id) as store:
                # Another process may have committed since the first read.
                delta = detector.detect(
                    grouping.candidates, store.list_models(library.id), root=root.as_posix()
                )
                summary.enqueued = self._apply(store, library, delta, root, comparator)

        summary.added = len(delta.added)
        summary.changed = len(delta.changed)
        summary.removed = len(delta.removed)
        summary.unchanged = delta.unchanged
        summary.finished_at = datetime.now(timezone.utc)
        LOGGER.info(
            "Scanned library %s (%s): added=%d changed=%d removed=%d unchanged=%d warnings=%d",
            library.id,
            summary.root,
            summary.added,
            summary.changed,
            summary.removed,
            summary.unchanged,
            len(summary.warnings),
        )
        return summary

    def _apply(
        self,
        store: RecordStore,
        library: Library,
        delta: ScanDelta,
        root: Path,
        comparator: PathComparator,
    ) -> list[str]:
        for change in delta.added:
            store.create_model(
                ModelRecord(
                    library_id=library.id,
                    path=change.path,
                    fingerprint=change.fingerprint,
                    files=self._member_keys(change, root, comparator),
                )
            )
        for change in delta.changed:
            store.update_model(
                library.id,
                change.path,
                fingerprint=change.fingerprint,
                files=self._member_keys(change, root, comparator),
            )
        for record in delta.removed:
            store.delete_model(library.id, record.path)

        enqueued: list[str] = []
        for reason, changes in (("added", delta.added), ("changed", delta.changed)):
            for change in changes:
                self.task_queue.enqueue(
                    RescanTask(
                        library_id=library.id,
                        model_path=change.path,
                        reason=reason,
                        fingerprint=change.fingerprint,
                    )
                )
                enqueued.append(change.path)
        return enqueued

    def _member_keys(
        self, change: ModelChange, root: Path, comparator: PathComparator
    ) -> list[str]:
        return sorted(
            relative_key(discovered.path, root, comparator=comparator) for discovered in change.files
        )

    def _check_root(self, path: Path) -> Path:
        root = Path(path).expanduser()
        if not root.exists():
            raise LibraryUnavailable(root, "path does not exist")
        if not root.is_dir():
            raise LibraryUnavailable(root, "path is not a directory")
        if not os.access(root, os.R_OK | os.X_OK):
            raise LibraryUnavailable(root, "permission denied")
        return root.resolve()

    def _default_walker(self) -> FilesystemWalker:
        return FilesystemWalker(
            follow_symlinks=self.options.follow_symlinks,
            include_hidden=self.options.include_hidden,
        )


__all__ = ["DEFAULT_LOCKS", "LibraryLockRegistry", "LibraryScanner"]
