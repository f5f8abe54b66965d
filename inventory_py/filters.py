"""
Filter chain applied to every record before it reaches the store.

Both predicates depend only on the record and the static filter settings,
so the accepted set does not depend on scan order.
"""

from dataclasses import dataclass

from inventory_py.record import Record


@dataclass(frozen=True)
class FilterChain:
    """Orphan-only and case-insensitive name filters."""

    search: str = ""
    orphans_only: bool = False

    @property
    def active(self) -> bool:
        return bool(self.search) or self.orphans_only

    def accepts_orphan(self, record: Record) -> bool:
        return record.orphaned or not self.orphans_only

    def accepts_name(self, record: Record) -> bool:
        if not self.search:
            return True
        return self.search.casefold() in record.name.casefold()

    def accepts(self, record: Record) -> bool:
        return self.accepts_orphan(record) and self.accepts_name(record)
