"""Fingerprinting and change detection between disk and stored models."""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, Mapping

from modelshelf.state.models import ModelRecord

from .errors import InvalidPathKind
from .models import DiscoveredFile, ModelCandidate, ModelChange, ScanDelta
from .paths import CASE_SENSITIVE, PathComparator, relative_key

LOGGER = logging.getLogger(__name__)


def compute_fingerprint(
    files: Iterable[DiscoveredFile],
    model_root: str = "",
    comparator: PathComparator = CASE_SENSITIVE,
) -> str:
    """Return a digest over member file names, sizes and modification times.

    Names are taken relative to ``model_root`` when they live under it, with the
    root prefix matched through ``comparator``. The lines are sorted so the
    result does not depend on walk order.

    Args:
        files: Member files of a model.
        model_root: Absolute model folder used to shorten member names.
        comparator: Case rules applied when matching ``model_root``.

    Returns:
        str: Hex SHA-256 digest.
    """
    lines = []
    for discovered in files:
        name = discovered.path.as_posix()
        if model_root:
            try:
                name = relative_key(discovered.path, model_root, comparator=comparator)
            except InvalidPathKind:
                pass
        lines.append(f"{name}\0{discovered.size_bytes}\0{discovered.modified_ns}")
    digest = hashlib.sha256()
    for line in sorted(lines):
        digest.update(line.encode("utf-8", "surrogateescape"))
        digest.update(b"\n")
    return digest.hexdigest()


class ChangeDetector:
    """Compare grouped candidates against previously stored model records."""

    def __init__(self, comparator: PathComparator = CASE_SENSITIVE) -> None:
        self.comparator = comparator

    def fingerprint(self, candidate: ModelCandidate, root: str = "") -> str:
        """Return the fingerprint for ``candidate`` located under library ``root``."""
        model_root = f"{root.rstrip('/')}/{candidate.path}" if root else ""
        return compute_fingerprint(candidate.files, model_root, self.comparator)

    def detect(
        self,
        candidates: Mapping[str, ModelCandidate] | Iterable[ModelCandidate],
        stored: Iterable[ModelRecord],
        *,
        root: str = "",
    ) -> ScanDelta:
        """Compute the added, changed and removed models for one scan.

        Stored records whose paths collapse to the same key are reconciled
        against a single candidate: the record spelled exactly like the
        candidate is kept when there is one, otherwise the first, and the rest
        are reported as removed.

        Args:
            candidates: Models grouped from the current walk.
            stored: Records previously saved for the library.
            root: Library root as a POSIX string, used for fingerprint names.

        Returns:
            ScanDelta: Differences; unchanged models only contribute to a count.
        """
        if isinstance(candidates, Mapping):
            candidate_list = list(candidates.values())
        else:
            candidate_list = list(candidates)

        by_key: dict[str, list[ModelRecord]] = {}
        for record in stored:
            by_key.setdefault(self.comparator.key(record.path), []).append(record)
        delta = ScanDelta()

        for candidate in candidate_list:
            records = by_key.pop(self.comparator.key(candidate.path), [])
            fingerprint = self.fingerprint(candidate, root)
            record = self._pick(records, candidate.path)
            for duplicate in records:
                if duplicate is not record:
                    LOGGER.debug(
                        "Model %s duplicates %s; dropping it", duplicate.path, candidate.path
                    )
                    delta.removed.append(duplicate)

            if record is None:
                LOGGER.debug("Model %s is new", candidate.path)
                delta.added.append(
                    ModelChange(path=candidate.path, files=candidate.files, fingerprint=fingerprint)
                )
            elif record.fingerprint != fingerprint:
                LOGGER.debug("Model %s changed", candidate.path)
                delta.changed.append(
                    ModelChange(
                        path=record.path,
                        files=candidate.files,
                        fingerprint=fingerprint,
                        previous_fingerprint=record.fingerprint,
                    )
                )
            else:
                delta.unchanged += 1

        for records in by_key.values():
            for record in records:
                LOGGER.debug("Model %s no longer exists on disk", record.path)
                delta.removed.append(record)

        return delta

    @staticmethod
    def _pick(records: list[ModelRecord], path: str) -> ModelRecord | None:
        for record in records:
            if record.path == path:
                return record
        return records[0] if records else None


__all__ = ["ChangeDetector", "compute_fingerprint"]
