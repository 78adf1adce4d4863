"""Persisted model records and per-library state."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelRecord(BaseModel):
    """A model previously observed in a library.

    Attributes:
        library_id: Identifier of the owning library.
        path: Model path relative to the library root.
        fingerprint: Digest of the member files; ``None`` until first fingerprinted.
        files: Member file paths relative to the library root.
        created_at: When the record was first stored.
        updated_at: When the record was last modified.
    """

    library_id: str
    path: str
    fingerprint: Optional[str] = None
    files: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class LibraryState(BaseModel):
    """All records stored for one library."""

    library_id: str
    root: Optional[str] = None
    models: Dict[str, ModelRecord] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = ["LibraryState", "ModelRecord"]
