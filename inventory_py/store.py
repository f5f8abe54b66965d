"""
Aggregation store for accepted records.

Collectors finish on worker threads in any order; ``accept`` is the only
write path and is guarded by a lock so the live per-type counters always
match the stored records.
"""

import threading
from collections import Counter
from typing import Dict, Iterable, List, Tuple

from inventory_py.record import Record


class AggregationStore:
    """Append-only, thread-safe collection of records."""

    def __init__(self) -> None:
        self._records: List[Record] = []
        self._type_counts: Counter = Counter()
        self._lock = threading.Lock()

    def accept(self, record: Record) -> None:
        with self._lock:
            self._records.append(record)
            self._type_counts[record.type] += 1

    def extend(self, records: Iterable[Record]) -> int:
        """Accept a batch atomically and return how many were added."""
        batch = list(records)
        with self._lock:
            self._records.extend(batch)
            self._type_counts.update(r.type for r in batch)
        return len(batch)

    def snapshot(self) -> Tuple[Record, ...]:
        """Return an immutable copy of the records accepted so far."""
        with self._lock:
            return tuple(self._records)

    def type_counts(self) -> Dict[str, int]:
        """Live counters; informational only, never used for the summary."""
        with self._lock:
            return dict(self._type_counts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
