"""Shared fixtures for modelshelf tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import pytest

from modelshelf.scanning.paths import probe_case_sensitivity


@pytest.fixture
def make_library(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory that materializes a library from relative file paths.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        Callable[..., Path]: Factory accepting relative paths and an optional name.
    """

    def _make(files: Iterable[str], name: str = "library") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for relative in files:
            target = root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(f"contents of {relative}\n", encoding="utf-8")
        return root

    return _make


@pytest.fixture
def case_sensitive_fs(tmp_path: Path) -> None:
    """Skip the test unless ``tmp_path`` is on a case-sensitive filesystem."""
    if not probe_case_sensitivity(tmp_path):
        pytest.skip("temporary directory is on a case-insensitive filesystem")
