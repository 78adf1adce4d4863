"""Library scanning pipeline: walker, grouper, change detector and orchestrator."""

from .detector import ChangeDetector, compute_fingerprint
from .errors import (
    EntryUnreadable,
    InvalidPathKind,
    LibraryUnavailable,
    ScanError,
    ScanInProgress,
)
from .grouper import GroupingResult, ModelGrouper
from .models import DiscoveredFile, Library, ModelCandidate, ModelChange, ScanDelta, ScanSummary
from .orchestrator import DEFAULT_LOCKS, LibraryLockRegistry, LibraryScanner
from .paths import PathComparator, probe_case_sensitivity, relative_key
from .walker import FilesystemWalker

__all__ = [
    "ChangeDetector",
    "DEFAULT_LOCKS",
    "DiscoveredFile",
    "EntryUnreadable",
    "FilesystemWalker",
    "GroupingResult",
    "InvalidPathKind",
    "Library",
    "LibraryLockRegistry",
    "LibraryScanner",
    "LibraryUnavailable",
    "ModelCandidate",
    "ModelChange",
    "ModelGrouper",
    "PathComparator",
    "ScanDelta",
    "ScanError",
    "ScanInProgress",
    "ScanSummary",
    "compute_fingerprint",
    "probe_case_sensitivity",
    "relative_key",
]
