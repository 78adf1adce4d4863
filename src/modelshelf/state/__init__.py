"""Record stores holding the models previously observed in each library."""

from __future__ import annotations

import json
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import ValidationError

from .errors import MissingStateError, StateError
from .locking import exclusive_lock
from .models import LibraryState, ModelRecord

DEFAULT_STATE_DIR = Path("~/.modelshelf/state")

_LIBRARY_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class RecordStore(ABC):
    """Model records keyed by ``(library_id, path)``.

    Subclasses provide :meth:`_read` and :meth:`_write`; every mutation loads a
    library's state, changes it and writes it back. Inside :meth:`transaction`
    mutations are buffered per thread and written once when the block exits
    cleanly. Transactions on the same library are serialized through
    :meth:`_commit_lock`.
    """

    def __init__(self) -> None:
        self._local = threading.local()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def _pending(self) -> dict[str, LibraryState]:
        pending = getattr(self._local, "pending", None)
        if pending is None:
            pending = self._local.pending = {}
        return pending

    # ------------------------------------------------------------------ #
    # Storage hooks                                                      #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _read(self, library_id: str) -> LibraryState:
        """Return the stored state for ``library_id`` (empty when absent)."""

    @abstractmethod
    def _write(self, state: LibraryState) -> None:
        """Persist ``state``."""

    @abstractmethod
    def _remove(self, library_id: str) -> bool:
        """Delete every record of ``library_id``; return whether anything existed."""

    @abstractmethod
    def list_libraries(self) -> list[str]:
        """Return identifiers of libraries that have stored state."""

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def list_models(self, library_id: str) -> list[ModelRecord]:
        """Return the records of ``library_id`` sorted by path."""
        state = self._current(library_id)
        return [state.models[path] for path in sorted(state.models)]

    def get_model(self, library_id: str, path: str) -> ModelRecord | None:
        return self._current(library_id).models.get(path)

    def create_model(self, record: ModelRecord) -> ModelRecord:
        """Store a new record.

        Raises:
            StateError: If a record with the same key already exists.
        """
        with self._editing(record.library_id) as state:
            if record.path in state.models:
                raise StateError(
                    f"Model {record.path} already exists in library {record.library_id}"
                )
            state.models[record.path] = record
        return record

    def update_model(
        self,
        library_id: str,
        path: str,
        *,
        fingerprint: str | None,
        files: Iterable[str] | None = None,
    ) -> ModelRecord:
        """Replace the fingerprint (and optionally member files) of a record.

        Raises:
            MissingStateError: If the record does not exist.
        """
        with self._editing(library_id) as state:
            record = state.models.get(path)
            if record is None:
                raise MissingStateError(f"Model {path} not found in library {library_id}")
            record.fingerprint = fingerprint
            if files is not None:
                record.files = list(files)
            record.updated_at = datetime.now(timezone.utc)
        return record

    def delete_model(self, library_id: str, path: str) -> bool:
        """Delete a record; returns False when it was already absent."""
        with self._editing(library_id) as state:
            return state.models.pop(path, None) is not None

    def drop_library(self, library_id: str) -> bool:
        """Delete every record belonging to ``library_id``."""
        self._pending.pop(library_id, None)
        return self._remove(library_id)

    @contextmanager
    def transaction(self, library_id: str) -> Iterator["RecordStore"]:
        """Buffer mutations for ``library_id`` and write them once on success.

        The library state is read after the commit lock is taken, so reads
        inside the block see everything committed by earlier transactions.
        Nested transactions for the same library join the outer one. If the
        block raises, nothing is written.
        """
        if library_id in self._pending:
            yield self
            return

        with self._commit_lock(library_id):
            self._pending[library_id] = self._read(library_id)
            try:
                yield self
                self._stamp_and_write(self._pending[library_id])
            finally:
                self._pending.pop(library_id, None)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    @contextmanager
    def _commit_lock(self, library_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(library_id, threading.Lock())
        with lock:
            yield

    def _current(self, library_id: str) -> LibraryState:
        pending = self._pending.get(library_id)
        return pending if pending is not None else self._read(library_id)

    @contextmanager
    def _editing(self, library_id: str) -> Iterator[LibraryState]:
        pending = self._pending.get(library_id)
        if pending is not None:
            yield pending
            return
        state = self._read(library_id)
        yield state
        self._stamp_and_write(state)

    def _stamp_and_write(self, state: LibraryState) -> None:
        state.updated_at = datetime.now(timezone.utc)
        self._write(state)


class JsonRecordStore(RecordStore):
    """Persist each library's records to ``<directory>/<library_id>.json``."""

    def __init__(self, directory: Path | str = DEFAULT_STATE_DIR) -> None:
        """Initialize the store.

        Args:
            directory: Directory holding one JSON file per library.
        """
        super().__init__()
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def state_path(self, library_id: str) -> Path:
        """Return the JSON file used for ``library_id``.

        Raises:
            StateError: If the identifier cannot be used as a file name.
        """
        if not _LIBRARY_ID_PATTERN.match(library_id):
            raise StateError(f"Invalid library identifier: {library_id!r}")
        return self._directory / f"{library_id}.json"

    def lock_path(self, library_id: str) -> Path:
        """Return the lock file guarding transactions on ``library_id``."""
        return self.state_path(library_id).with_suffix(".lock")

    def list_libraries(self) -> list[str]:
        if not self._directory.exists():
            return []
        return sorted(path.stem for path in self._directory.glob("*.json"))

    def _read(self, library_id: str) -> LibraryState:
        path = self.state_path(library_id)
        if not path.exists():
            return LibraryState(library_id=library_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StateError(f"Invalid record data in {path}: {exc}") from exc
        try:
            return LibraryState.model_validate(data)
        except ValidationError as exc:
            raise StateError(f"Invalid record data in {path}: {exc}") from exc

    def _write(self, state: LibraryState) -> None:
        path = self.state_path(state.library_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state.model_dump(mode="json"), indent=2)
        handle, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                stream.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _remove(self, library_id: str) -> bool:
        path = self.state_path(library_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    @contextmanager
    def _commit_lock(self, library_id: str) -> Iterator[None]:
        with super()._commit_lock(library_id), exclusive_lock(self.lock_path(library_id)):
            yield


class MemoryRecordStore(RecordStore):
    """Keep records in process memory; suitable for tests and dry runs."""

    def __init__(self) -> None:
        super().__init__()
        self._states: dict[str, LibraryState] = {}

    def list_libraries(self) -> list[str]:
        return sorted(self._states)

    def _read(self, library_id: str) -> LibraryState:
        state = self._states.get(library_id)
        if state is None:
            return LibraryState(library_id=library_id)
        return state.model_copy(deep=True)

    def _write(self, state: LibraryState) -> None:
        self._states[state.library_id] = state.model_copy(deep=True)

    def _remove(self, library_id: str) -> bool:
        return self._states.pop(library_id, None) is not None


__all__ = [
    "DEFAULT_STATE_DIR",
    "JsonRecordStore",
    "LibraryState",
    "MemoryRecordStore",
    "MissingStateError",
    "ModelRecord",
    "RecordStore",
    "StateError",
]
