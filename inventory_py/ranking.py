"""
Rank/sort engine.

Produces the one total order used for display and persistence:

1. ``Repo`` records before every other type
2. source, case-insensitive, trailing whitespace ignored
3. name, by code point (the same order as ``LC_ALL=C`` on UTF-8 bytes)

Records equal on all three keys fall back to their remaining fields, so the
output never depends on arrival order.
"""

from typing import Iterable, List, Tuple

from inventory_py.record import REPO_TYPE, Record

REPO_BUCKET = 1
OTHER_BUCKET = 2


def rank_bucket(record: Record) -> int:
    return REPO_BUCKET if record.type == REPO_TYPE else OTHER_BUCKET


def sort_key(record: Record) -> Tuple:
    return (
        rank_bucket(record),
        record.source.rstrip().lower(),
        record.name,
        record.to_row(),
    )


def sort_records(records: Iterable[Record]) -> List[Record]:
    """Return *records* in report order.

    ``sorted`` is stable, so exact duplicates keep their arrival order.
    """
    return sorted(records, key=sort_key)
