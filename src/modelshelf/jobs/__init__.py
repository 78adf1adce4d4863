"""Rescan task submission."""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

LOGGER = logging.getLogger(__name__)

DEFAULT_QUEUE_FILE = Path("~/.modelshelf/rescan-queue.jsonl")


class RescanTask(BaseModel):
    """Request to rescan one model in depth.

    Attributes:
        library_id: Identifier of the owning library.
        model_path: Model path relative to the library root.
        reason: Why the rescan was scheduled.
        fingerprint: Fingerprint observed when the task was created.
        queued_at: Submission timestamp.
    """

    library_id: str
    model_path: str
    reason: Literal["added", "changed"]
    fingerprint: Optional[str] = None
    queued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TaskQueue(ABC):
    """Fire-and-forget destination for rescan tasks."""

    @abstractmethod
    def enqueue(self, task: RescanTask) -> None:
        """Submit ``task``; must not wait for it to run."""


class InMemoryTaskQueue(TaskQueue):
    """Collect submitted tasks in a list."""

    def __init__(self) -> None:
        self.tasks: list[RescanTask] = []
        self._lock = threading.Lock()

    def enqueue(self, task: RescanTask) -> None:
        with self._lock:
            self.tasks.append(task)

    def drain(self) -> list[RescanTask]:
        """Return and clear the collected tasks."""
        with self._lock:
            tasks, self.tasks = self.tasks, []
        return tasks


class JsonlTaskQueue(TaskQueue):
    """Append tasks as JSON lines to an outbox file read by an external worker."""

    def __init__(self, path: Path | str = DEFAULT_QUEUE_FILE) -> None:
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def enqueue(self, task: RescanTask) -> None:
        line = json.dumps(task.model_dump(mode="json"), sort_keys=True)
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as outbox:
                outbox.write(line + "\n")
        LOGGER.debug("Queued %s rescan for %s:%s", task.reason, task.library_id, task.model_path)

    def read_all(self) -> list[RescanTask]:
        """Return every task currently in the outbox."""
        if not self._path.exists():
            return []
        tasks = []
        for line in self._path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                tasks.append(RescanTask.model_validate_json(line))
        return tasks


__all__ = [
    "DEFAULT_QUEUE_FILE",
    "InMemoryTaskQueue",
    "JsonlTaskQueue",
    "RescanTask",
    "TaskQueue",
]
