"""Data models shared by the scanning pipeline."""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from modelshelf.state.models import ModelRecord

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


class Library(BaseModel):
    """A root directory tracked for scanning.

    Attributes:
        id: Stable identifier used to key records and locks.
        path: Root directory of the library.
    """

    id: str
    path: Path

    @classmethod
    def from_path(cls, path: Path | str) -> "Library":
        """Build a library whose id is derived from the resolved root path."""
        root = Path(path).expanduser().resolve()
        slug = _SLUG_PATTERN.sub("-", root.name.lower()).strip("-") or "library"
        digest = hashlib.sha1(root.as_posix().encode("utf-8")).hexdigest()[:8]
        return cls(id=f"{slug}-{digest}", path=root)


class DiscoveredFile(BaseModel):
    """A regular file found beneath a library root.

    Attributes:
        path: Absolute path of the file.
        size_bytes: File size in bytes.
        modified_ns: Modification time in nanoseconds since the epoch.
    """

    path: Path
    size_bytes: int
    modified_ns: int

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.modified_ns / 1_000_000_000, tz=timezone.utc)


class ModelCandidate(BaseModel):
    """A model grouping observed on disk during the current scan.

    Attributes:
        path: Model path relative to the library root, forward slashes, case preserved.
        files: Member files of the model.
    """

    path: str
    files: List[DiscoveredFile] = Field(default_factory=list)


class ModelChange(BaseModel):
    """An added or changed model together with its freshly computed fingerprint."""

    path: str
    files: List[DiscoveredFile] = Field(default_factory=list)
    fingerprint: str
    previous_fingerprint: Optional[str] = None


class ScanDelta(BaseModel):
    """Per-scan difference between disk and the record store.

    Attributes:
        added: Models present on disk but not in the record store.
        changed: Models in both whose fingerprint differs.
        removed: Stored models whose folder no longer groups into a model.
        unchanged: Number of models with identical fingerprints.
    """

    added: List[ModelChange] = Field(default_factory=list)
    changed: List[ModelChange] = Field(default_factory=list)
    removed: List[ModelRecord] = Field(default_factory=list)
    unchanged: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.changed or self.removed)


class ScanSummary(BaseModel):
    """Outcome of scanning one library.

    Attributes:
        library_id: Identifier of the scanned library.
        root: Library root path.
        added: Number of models created.
        removed: Number of models deleted.
        changed: Number of models whose fingerprint changed.
        unchanged: Number of models left untouched.
        enqueued: Model paths for which a rescan task was submitted.
        warnings: Recovered problems such as unreadable entries.
        started_at: When the scan began.
        finished_at: When the scan completed.
    """

    library_id: str
    root: Path
    added: int = 0
    removed: int = 0
    changed: int = 0
    unchanged: int = 0
    enqueued: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def counts(self) -> dict[str, int]:
        """Return the summary counters as an ordered mapping."""
        return {
            "added": self.added,
            "removed": self.removed,
            "changed": self.changed,
            "unchanged": self.unchanged,
            "enqueued": len(self.enqueued),
            "warnings": len(self.warnings),
        }


__all__ = [
    "Library",
    "DiscoveredFile",
    "ModelCandidate",
    "ModelChange",
    "ScanDelta",
    "ScanSummary",
]
