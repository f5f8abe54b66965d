"""
Tests for the rank/sort engine.
"""

import random

from hypothesis import given
from hypothesis import strategies as st

from inventory_py.ranking import OTHER_BUCKET, REPO_BUCKET, rank_bucket, sort_records
from inventory_py.record import Record
from inventory_py.serializer import to_tsv

text = st.text(
    alphabet=st.characters(blacklist_categories=("Cc", "Cs")), min_size=1, max_size=8
)
records = st.builds(
    Record,
    name=text,
    type=st.sampled_from(["Repo", "Flatpak", "Snap", "AUR/Foreign"]),
    source=st.sampled_from(["apt", "APT ", "flatpak/system", "snap/stable", "Zeta"]),
    details=st.just(""),
    version=text,
    size=st.just("-"),
    orphaned=st.booleans(),
)


def test_rank_bucket() -> None:
    assert rank_bucket(Record("vim", "Repo", "apt")) == REPO_BUCKET
    assert rank_bucket(Record("gimp", "Flatpak", "flatpak/system")) == OTHER_BUCKET


def test_repo_records_come_first() -> None:
    ordered = sort_records(
        [
            Record("aaa", "Flatpak", "aaa"),
            Record("zzz", "Repo", "zzz"),
        ]
    )
    assert [r.name for r in ordered] == ["zzz", "aaa"]


def test_source_is_case_insensitive_and_ignores_trailing_space() -> None:
    ordered = sort_records(
        [
            Record("b", "Snap", "Snap/stable "),
            Record("a", "Snap", "snap/stable"),
            Record("c", "Flatpak", "Flatpak/system"),
        ]
    )
    assert [r.name for r in ordered] == ["c", "a", "b"]


def test_name_sorts_by_code_point() -> None:
    ordered = sort_records(
        [
            Record("beta", "Repo", "apt"),
            Record("Zed", "Repo", "apt"),
            Record("alpha", "Repo", "apt"),
        ]
    )
    # Uppercase sorts before lowercase, as under LC_ALL=C.
    assert [r.name for r in ordered] == ["Zed", "alpha", "beta"]


def test_scenario_repo_then_source_then_name() -> None:
    """Two Repo entries and one Flatpak: Repo block first, then by source."""
    ordered = sort_records(
        [
            Record("zsh", "Repo", "pacman/repo"),
            Record("gimp", "Flatpak", "flatpak/system"),
            Record("bash", "Repo", "pacman/repo"),
        ]
    )
    assert [r.name for r in ordered] == ["bash", "zsh", "gimp"]


@given(st.lists(records, max_size=30), st.randoms())
def test_sort_is_deterministic_for_any_input_order(
    items: list, rnd: random.Random
) -> None:
    """Any permutation of the same records serializes byte-identically."""
    shuffled = list(items)
    rnd.shuffle(shuffled)
    assert to_tsv(sort_records(items)) == to_tsv(sort_records(shuffled))


@given(st.lists(records, max_size=30))
def test_sort_keeps_every_record(items: list) -> None:
    assert sorted(map(Record.to_row, sort_records(items))) == sorted(
        map(Record.to_row, items)
    )
