"""Tests for path normalization and case-aware comparison."""

from __future__ import annotations

from pathlib import Path

import pytest

from modelshelf.scanning.errors import InvalidPathKind
from modelshelf.scanning.paths import (
    CASE_INSENSITIVE,
    CASE_SENSITIVE,
    PROBE_PREFIX,
    PathComparator,
    platform_case_sensitivity,
    probe_case_sensitivity,
    relative_key,
    split_key,
)


def test_relative_key_uses_forward_slashes(tmp_path: Path) -> None:
    root = tmp_path / "library"
    path = root / "subfolder" / "model_two" / "part_one.stl"

    assert relative_key(path, root) == "subfolder/model_two/part_one.stl"


def test_relative_key_accepts_strings_and_normalizes(tmp_path: Path) -> None:
    root = tmp_path / "library"
    messy = f"{root}/model_one/./extras/../part_1.obj"

    assert relative_key(messy, str(root)) == "model_one/part_1.obj"


def test_relative_key_rejects_paths_outside_root(tmp_path: Path) -> None:
    root = tmp_path / "library"

    with pytest.raises(InvalidPathKind):
        relative_key(tmp_path / "elsewhere" / "part.stl", root)
    with pytest.raises(InvalidPathKind):
        relative_key(root / ".." / "escape.stl", root)


def test_relative_key_rejects_the_root_itself(tmp_path: Path) -> None:
    with pytest.raises(InvalidPathKind):
        relative_key(tmp_path, tmp_path)


def test_relative_key_prefix_follows_comparator(tmp_path: Path) -> None:
    root = tmp_path / "Library"
    path = tmp_path / "library" / "Model" / "part.STL"

    assert relative_key(path, root, comparator=CASE_INSENSITIVE) == "Model/part.STL"
    with pytest.raises(InvalidPathKind):
        relative_key(path, root, comparator=CASE_SENSITIVE)


def test_path_comparator_modes() -> None:
    assert CASE_SENSITIVE.key("Model/File.OBJ") == "Model/File.OBJ"
    assert CASE_INSENSITIVE.key("Model/File.OBJ") == "model/file.obj"
    assert not PathComparator(case_sensitive=True).same("file.obj", "file.OBJ")
    assert PathComparator(case_sensitive=False).same("file.obj", "file.OBJ")


def test_split_key_drops_empty_segments() -> None:
    assert split_key("parent//child/") == ["parent", "child"]


def test_probe_case_sensitivity_cleans_up(tmp_path: Path) -> None:
    result = probe_case_sensitivity(tmp_path)

    assert isinstance(result, bool)
    assert not [item for item in tmp_path.iterdir() if item.name.startswith(PROBE_PREFIX)]


def test_probe_falls_back_to_platform_default(tmp_path: Path) -> None:
    assert probe_case_sensitivity(tmp_path / "missing") is platform_case_sensitivity()
