"""Configuration models describing modelshelf settings."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MODEL_EXTENSIONS = [
    "stl",
    "obj",
    "3mf",
    "ply",
    "step",
    "stp",
    "amf",
    "gcode",
    "blend",
    "lys",
    "lychee",
    "chitubox",
    "ctb",
    "scad",
    "fbx",
    "gltf",
    "glb",
    "f3d",
]

DEFAULT_BUNDLE_MARKERS = [
    "files",
    "images",
    "img",
    "assets",
    "renders",
    "photos",
    "pictures",
    "textures",
    "supported",
    "unsupported",
    "presupported",
]


class ShelfBaseModel(BaseModel):
    """Shared configuration for modelshelf settings models."""

    model_config = ConfigDict(extra="forbid")


class ScanOptions(ShelfBaseModel):
    """Options governing how libraries are walked and grouped.

    Attributes:
        model_extensions: File suffixes (without dot) that mark a printable model file.
        bundle_markers: Subfolder names that mark a folder as a single bundled model.
        case_sensitive: Path comparison mode; ``None`` probes the library root.
        follow_symlinks: Whether symbolic links are followed during the walk.
        include_hidden: Whether dot-files and dot-directories are included.
        lock_timeout_seconds: How long to wait for a concurrent scan of the
            same library; ``None`` waits indefinitely.
    """

    model_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_MODEL_EXTENSIONS))
    bundle_markers: List[str] = Field(default_factory=lambda: list(DEFAULT_BUNDLE_MARKERS))
    case_sensitive: Optional[bool] = None
    follow_symlinks: bool = False
    include_hidden: bool = True
    lock_timeout_seconds: Optional[float] = None

    @field_validator("model_extensions")
    @classmethod
    def _strip_extension_dots(cls, value: List[str]) -> List[str]:
        return [item.strip().lstrip(".").lower() for item in value if item.strip()]

    @field_validator("bundle_markers")
    @classmethod
    def _normalize_markers(cls, value: List[str]) -> List[str]:
        return [item.strip() for item in value if item.strip()]


class StorageSettings(ShelfBaseModel):
    """Locations of the record store and the rescan outbox.

    Attributes:
        state_dir: Directory holding one JSON record file per library.
        queue_file: JSON-lines file that receives rescan tasks.
    """

    state_dir: str = "~/.modelshelf/state"
    queue_file: str = "~/.modelshelf/rescan-queue.jsonl"


class WatchSettings(ShelfBaseModel):
    """Settings for the filesystem watch service.

    Attributes:
        debounce_seconds: Quiet period before a dirty library is rescanned.
        error_backoff_seconds: Initial delay after a failed scan.
        max_error_backoff_seconds: Upper bound for the exponential backoff.
    """

    debounce_seconds: float = 2.0
    error_backoff_seconds: float = 1.0
    max_error_backoff_seconds: float = 30.0


class LoggingSettings(ShelfBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Log file location; ``None`` disables file logging.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = "~/.modelshelf/modelshelf.log"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(ShelfBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class ShelfConfig(ShelfBaseModel):
    """Top-level configuration struct for modelshelf.

    Attributes:
        scan: Walk and grouping options.
        storage: Record store and queue locations.
        watch: Watch service settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    scan: ScanOptions = Field(default_factory=ScanOptions)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "DEFAULT_BUNDLE_MARKERS",
    "DEFAULT_MODEL_EXTENSIONS",
    "ShelfBaseModel",
    "ScanOptions",
    "StorageSettings",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "ShelfConfig",
]
