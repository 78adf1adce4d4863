"""Filesystem watch service that rescans libraries when their files change."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from modelshelf.config.models import WatchSettings
from modelshelf.scanning import Library, LibraryScanner, ScanError, ScanSummary
from modelshelf.scanning.paths import PROBE_PREFIX
from modelshelf.state import StateError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class WatchBatchResult:
    """Outcome of one debounced rescan.

    Attributes:
        library: Library that was rescanned.
        summary: Scan summary returned by the scanner.
        triggered_paths: Paths whose events caused the rescan.
    """

    library: Library
    summary: ScanSummary
    triggered_paths: list[Path] = field(default_factory=list)


class WatchService:
    """Debounce filesystem events per library and run a scan for each burst."""

    def __init__(
        self,
        scanner: LibraryScanner,
        libraries: Iterable[Library],
        *,
        settings: WatchSettings | None = None,
        debounce_override: Optional[float] = None,
    ) -> None:
        """Initialize the watch service.

        Args:
            scanner: Scanner used for every rescan.
            libraries: Libraries to monitor.
            settings: Debounce and backoff settings.
            debounce_override: Optional debounce interval override in seconds.
        """
        settings = settings or WatchSettings()
        self._scanner = scanner
        self._libraries = {library.id: library for library in libraries}
        self._queue: queue.Queue[tuple[str, Path] | None] = queue.Queue()
        self._stop_event = threading.Event()
        self._observer: Observer | None = None  # type: ignore[valid-type]
        debounce = debounce_override if debounce_override and debounce_override > 0 else None
        self._debounce_seconds = max(0.1, debounce or settings.debounce_seconds)
        self._initial_backoff = max(0.1, settings.error_backoff_seconds)
        self._max_backoff = max(self._initial_backoff, settings.max_error_backoff_seconds)
        self._backoff: dict[str, float] = defaultdict(lambda: self._initial_backoff)

    @property
    def debounce_seconds(self) -> float:
        return self._debounce_seconds

    def process_once(self) -> list[WatchBatchResult]:
        """Scan every monitored library once.

        Returns:
            list[WatchBatchResult]: One result per library that scanned successfully.
        """
        results: list[WatchBatchResult] = []
        for library in self._libraries.values():
            result = self._run_scan(library, [])
            if result is not None:
                results.append(result)
        return results

    def watch(self, callback: Callable[[WatchBatchResult], None]) -> None:
        """Block, rescanning libraries as events arrive, until :meth:`stop` is called.

        Args:
            callback: Called with each completed rescan.
        """
        if self._observer is not None:
            raise RuntimeError("WatchService is already running.")

        self._stop_event.clear()
        observer = Observer()
        for library in self._libraries.values():
            handler = _LibraryEventHandler(library.id, self._queue)
            observer.schedule(handler, str(library.path), recursive=True)
        self._observer = observer
        observer.start()
        try:
            self._run_loop(callback)
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop the observer and unblock the processing loop."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._queue.put(None)

    def notify(self, library_id: str, path: Path) -> None:
        """Record that ``path`` changed inside ``library_id``."""
        self._queue.put((library_id, path))

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _run_loop(self, callback: Callable[[WatchBatchResult], None]) -> None:
        pending: dict[str, set[Path]] = defaultdict(set)
        flush_deadline: Optional[float] = None

        while not self._stop_event.is_set():
            timeout = None
            if flush_deadline is not None:
                timeout = max(0.0, flush_deadline - time.monotonic())

            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                self._flush(pending, callback)
                pending.clear()
                flush_deadline = None
                continue

            if item is None:
                break

            library_id, path = item
            if library_id not in self._libraries:
                continue
            pending[library_id].add(path)
            flush_deadline = time.monotonic() + self._debounce_seconds

    def _flush(
        self,
        pending: dict[str, set[Path]],
        callback: Callable[[WatchBatchResult], None],
    ) -> None:
        for library_id, paths in list(pending.items()):
            result = self._run_scan(self._libraries[library_id], sorted(paths))
            if result is not None:
                callback(result)

    def _run_scan(self, library: Library, triggered: list[Path]) -> Optional[WatchBatchResult]:
        try:
            summary = self._scanner.scan(library)
        except (ScanError, StateError, OSError) as exc:
            backoff = self._backoff[library.id]
            LOGGER.warning(
                "Scan of library %s failed (%s: %s); backing off %.1fs",
                library.id,
                exc.__class__.__name__,
                exc,
                backoff,
            )
            self._stop_event.wait(backoff)
            self._backoff[library.id] = min(backoff * 2, self._max_backoff)
            return None

        self._backoff[library.id] = self._initial_backoff
        return WatchBatchResult(library=library, summary=summary, triggered_paths=triggered)


class _LibraryEventHandler(FileSystemEventHandler):
    """Forward watchdog events for one library into the service queue."""

    def __init__(self, library_id: str, queue_handle: queue.Queue[tuple[str, Path] | None]) -> None:
        self._library_id = library_id
        self._queue = queue_handle

    def on_created(self, event: FileSystemEvent) -> None:
        self._enqueue(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._enqueue(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._enqueue(event)

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - watchdog-specific
        self._enqueue(event)

    def _enqueue(self, event: FileSystemEvent) -> None:
        path = Path(str(event.src_path))
        if path.name.startswith(PROBE_PREFIX):
            return
        self._queue.put((self._library_id, path))


__all__ = ["WatchBatchResult", "WatchService"]
