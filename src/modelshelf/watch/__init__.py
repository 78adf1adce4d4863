"""Watch mode for continuously rescanning libraries."""

from .service import WatchBatchResult, WatchService

__all__ = ["WatchBatchResult", "WatchService"]
