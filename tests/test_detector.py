"""Tests for fingerprinting and change detection."""

from __future__ import annotations

from pathlib import Path

from modelshelf.scanning import ChangeDetector, DiscoveredFile, ModelCandidate, compute_fingerprint
from modelshelf.scanning.paths import CASE_INSENSITIVE
from modelshelf.state import ModelRecord

ROOT = "/srv/library"


def _file(relative: str, size: int = 10, mtime: int = 1_000) -> DiscoveredFile:
    return DiscoveredFile(path=Path(ROOT) / relative, size_bytes=size, modified_ns=mtime)


def _candidate(path: str, *files: DiscoveredFile) -> ModelCandidate:
    return ModelCandidate(path=path, files=list(files))


def _record(path: str, fingerprint: str | None) -> ModelRecord:
    return ModelRecord(library_id="lib", path=path, fingerprint=fingerprint)


def test_fingerprint_is_order_independent() -> None:
    first = [_file("m/a.stl"), _file("m/b.stl", size=20)]

    assert compute_fingerprint(first) == compute_fingerprint(list(reversed(first)))


def test_fingerprint_tracks_name_size_and_mtime() -> None:
    base = compute_fingerprint([_file("m/a.stl")])

    assert compute_fingerprint([_file("m/a.stl", size=11)]) != base
    assert compute_fingerprint([_file("m/a.stl", mtime=2_000)]) != base
    assert compute_fingerprint([_file("m/c.stl")]) != base


def test_fingerprint_is_relative_to_model_root() -> None:
    """Moving a library elsewhere does not change model fingerprints."""
    here = compute_fingerprint([_file("m/a.stl")], f"{ROOT}/m")
    moved = compute_fingerprint(
        [DiscoveredFile(path=Path("/mnt/other/m/a.stl"), size_bytes=10, modified_ns=1_000)],
        "/mnt/other/m",
    )

    assert here == moved


def test_detect_classifies_added_changed_removed_and_unchanged() -> None:
    detector = ChangeDetector()
    steady = _candidate("steady", _file("steady/a.stl"))
    edited = _candidate("edited", _file("edited/a.stl", size=99))
    fresh = _candidate("fresh", _file("fresh/a.stl"))
    stored = [
        _record("steady", detector.fingerprint(steady, ROOT)),
        _record("edited", "outdated"),
        _record("gone", "whatever"),
    ]

    delta = detector.detect([steady, edited, fresh], stored, root=ROOT)

    assert [change.path for change in delta.added] == ["fresh"]
    assert [change.path for change in delta.changed] == ["edited"]
    assert delta.changed[0].previous_fingerprint == "outdated"
    assert [record.path for record in delta.removed] == ["gone"]
    assert delta.unchanged == 1
    assert not delta.is_empty


def test_unscanned_record_counts_as_changed() -> None:
    delta = ChangeDetector().detect([_candidate("m", _file("m/a.stl"))], [_record("m", None)])

    assert [change.path for change in delta.changed] == ["m"]
    assert not delta.added


def test_identical_state_yields_empty_delta() -> None:
    detector = ChangeDetector()
    candidate = _candidate("m", _file("m/a.stl"), _file("m/b.stl"))
    stored = [_record("m", detector.fingerprint(candidate, ROOT))]

    delta = detector.detect({"m": candidate}, stored, root=ROOT)

    assert delta.is_empty
    assert delta.unchanged == 1


def test_case_insensitive_matching_pairs_spellings() -> None:
    detector = ChangeDetector(CASE_INSENSITIVE)
    candidate = _candidate("model_one", _file("model_one/a.stl"))
    stored = [_record("Model_One", "stale")]

    delta = detector.detect([candidate], stored, root=ROOT)

    assert not delta.added
    assert not delta.removed
    assert [change.path for change in delta.changed] == ["Model_One"]


def test_case_sensitive_matching_treats_spellings_as_distinct() -> None:
    candidate = _candidate("model_one", _file("model_one/a.stl"))

    delta = ChangeDetector().detect([candidate], [_record("Model_One", "stale")], root=ROOT)

    assert [change.path for change in delta.added] == ["model_one"]
    assert [record.path for record in delta.removed] == ["Model_One"]


def test_case_insensitive_duplicate_records_are_reconciled() -> None:
    detector = ChangeDetector(CASE_INSENSITIVE)
    candidate = _candidate("model", _file("model/a.stl"))
    stored = [
        _record("Model", "stale"),
        _record("model", detector.fingerprint(candidate, ROOT)),
    ]

    delta = detector.detect([candidate], stored, root=ROOT)

    assert delta.unchanged == 1
    assert not delta.added and not delta.changed
    assert [record.path for record in delta.removed] == ["Model"]


def test_duplicate_records_without_exact_spelling_keep_the_first() -> None:
    detector = ChangeDetector(CASE_INSENSITIVE)
    candidate = _candidate("model", _file("model/a.stl"))

    delta = detector.detect(
        [candidate], [_record("MODEL", None), _record("Model", None)], root=ROOT
    )

    assert [change.path for change in delta.changed] == ["MODEL"]
    assert [record.path for record in delta.removed] == ["Model"]


def test_duplicate_records_without_candidate_are_all_removed() -> None:
    stored = [_record("Gone", "x"), _record("gone", "y")]

    delta = ChangeDetector(CASE_INSENSITIVE).detect([], stored)

    assert sorted(record.path for record in delta.removed) == ["Gone", "gone"]


def test_merged_folder_spellings_fingerprint_relative_to_model() -> None:
    """Members spelled differently from the model folder still hash by relative name."""
    detector = ChangeDetector(CASE_INSENSITIVE)
    here = _candidate("Model", _file("Model/a.stl"), _file("model/b.stl"))
    moved = _candidate(
        "Model",
        DiscoveredFile(path=Path("/mnt/other/Model/a.stl"), size_bytes=10, modified_ns=1_000),
        DiscoveredFile(path=Path("/mnt/other/model/b.stl"), size_bytes=10, modified_ns=1_000),
    )

    assert detector.fingerprint(here, ROOT) == detector.fingerprint(moved, "/mnt/other")
