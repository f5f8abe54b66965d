"""
Tests for the diff engine.
"""

from pathlib import Path

import pytest
from hypothesis import given
from hypothesis import strategies as st

from inventory_py.diff import (
    DiffResult,
    SnapshotFormatError,
    diff_names,
    diff_snapshots,
    load_snapshot,
)
from inventory_py.record import Record, Snapshot
from inventory_py.serializer import to_csv, to_tsv


def _snapshot(*names: str) -> Snapshot:
    return Snapshot.of(Record(name, "Repo", "apt") for name in names)


def test_added_and_removed_scenario() -> None:
    """old {A, B, C} vs new {B, C, D}: D added, A removed."""
    result = diff_snapshots(_snapshot("A", "B", "C"), _snapshot("B", "C", "D"))
    assert result.added == ("D",)
    assert result.removed == ("A",)
    assert not result.unchanged


def test_version_changes_are_not_reported() -> None:
    old = Snapshot.of([Record("vim", "Repo", "apt", version="9.0")])
    new = Snapshot.of([Record("vim", "Flatpak", "flatpak/user", version="9.1")])
    assert diff_snapshots(old, new).unchanged


def test_lines_layout() -> None:
    lines = DiffResult(added=("D",), removed=("A", "B")).lines()
    assert lines == [
        "=== Added packages (by name) ===",
        "+ D",
        "",
        "=== Removed packages (by name) ===",
        "- A",
        "- B",
    ]


def test_output_is_sorted_by_code_point() -> None:
    result = diff_names([], ["b", "B", "a"])
    assert result.added == ("B", "a", "b")


@given(st.sets(st.text(min_size=1, max_size=6)), st.sets(st.text(min_size=1, max_size=6)))
def test_diff_is_symmetric_and_complete(old: set, new: set) -> None:
    forward = diff_names(old, new)
    backward = diff_names(new, old)
    assert forward.added == backward.removed
    assert forward.removed == backward.added
    assert set(forward.added) | set(forward.removed) == old ^ new
    assert not (set(forward.added) | set(forward.removed)) & (old & new)


def test_load_snapshot_reads_tsv(tmp_path: Path) -> None:
    path = tmp_path / "old.tsv"
    path.write_text(to_tsv([Record("vim", "Repo", "apt"), Record("gimp", "Snap", "snap")]))
    snapshot = load_snapshot(path)
    assert snapshot.names() == ["vim", "gimp"]


def test_load_snapshot_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SnapshotFormatError, match="not found"):
        load_snapshot(tmp_path / "nope.tsv")


@pytest.mark.parametrize("suffix", [".csv", ".json", ".JSON"])
def test_load_snapshot_rejects_projections(tmp_path: Path, suffix: str) -> None:
    path = tmp_path / f"old{suffix}"
    path.write_text(to_csv([Record("vim", "Repo", "apt")]))
    with pytest.raises(SnapshotFormatError):
        load_snapshot(path)


def test_load_snapshot_rejects_csv_content_with_tsv_name(tmp_path: Path) -> None:
    path = tmp_path / "old.tsv"
    path.write_text(to_csv([Record("vim", "Repo", "apt")]))
    with pytest.raises(SnapshotFormatError, match="not a tab-separated"):
        load_snapshot(path)


def test_load_snapshot_rejects_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "old.tsv"
    path.write_text("")
    with pytest.raises(SnapshotFormatError):
        load_snapshot(path)


def test_load_snapshot_rejects_short_rows(tmp_path: Path) -> None:
    path = tmp_path / "old.tsv"
    path.write_text(to_tsv([]) + "vim\tRepo\n")
    with pytest.raises(SnapshotFormatError):
        load_snapshot(path)
