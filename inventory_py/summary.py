"""
Summary engine.

All counts are recomputed from the final sorted records in one pass;
interim counters kept during collection are never trusted.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Sequence

from inventory_py.record import Record


@dataclass(frozen=True)
class Summary:
    """Derived totals for one report."""

    total: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    orphans_by_type: Dict[str, int] = field(default_factory=dict)

    @property
    def orphan_total(self) -> int:
        return sum(self.orphans_by_type.values())

    def count(self, type_: str) -> int:
        return self.by_type.get(type_, 0)

    def orphans(self, type_: str) -> int:
        return self.orphans_by_type.get(type_, 0)


def summarize(records: Sequence[Record]) -> Summary:
    by_type: Counter = Counter()
    orphans: Counter = Counter()
    for record in records:
        by_type[record.type] += 1
        if record.orphaned:
            orphans[record.type] += 1
    return Summary(
        total=len(records),
        by_type=dict(by_type),
        orphans_by_type=dict(orphans),
    )
