"""
Canonical record schema for app-inventory.

Every collector emits raw field tuples; this module turns them into
immutable ``Record`` objects whose fields are safe to write into the
tab-separated snapshot format.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Sequence, Tuple

HEADER: Tuple[str, ...] = (
    "Name",
    "Type",
    "Source",
    "Details",
    "Version",
    "Size",
    "Orphaned",
)

UNKNOWN = "-"
REPO_TYPE = "Repo"

# Control characters except tab (0x09) and newline (0x0A).
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_FIELD_BREAKS = re.compile(r"[\t\r\n]+")


class InvalidRecordError(ValueError):
    """Raised when raw fields cannot form a valid record."""


class RawEntry(NamedTuple):
    """Unvalidated fields as emitted by a collector."""

    name: str
    type: str
    source: str
    details: str = ""
    version: str = UNKNOWN
    size: str = UNKNOWN
    orphaned: bool = False


def clean_field(value: object) -> str:
    """Strip control characters and field separators from a text field."""
    if value is None:
        return ""
    text = _CONTROL_CHARS.sub("", str(value))
    return _FIELD_BREAKS.sub(" ", text).strip()


@dataclass(frozen=True)
class Record:
    """One installed item, normalized across sources."""

    name: str
    type: str
    source: str
    details: str = ""
    version: str = UNKNOWN
    size: str = UNKNOWN
    orphaned: bool = False

    @classmethod
    def from_raw(cls, entry: RawEntry) -> "Record":
        """
        Build a record from a collector's raw entry.

        Raises:
            InvalidRecordError: If the name or type is empty after cleaning.
        """
        name = clean_field(entry.name)
        type_ = clean_field(entry.type)
        if not name:
            raise InvalidRecordError(f"Empty name in entry from {entry.source!r}")
        if not type_:
            raise InvalidRecordError(f"Empty type for {name!r}")

        return cls(
            name=name,
            type=type_,
            source=clean_field(entry.source),
            details=clean_field(entry.details),
            version=clean_field(entry.version) or UNKNOWN,
            size=clean_field(entry.size) or UNKNOWN,
            orphaned=bool(entry.orphaned),
        )

    def to_row(self) -> Tuple[str, ...]:
        """Return the canonical string fields, in header order."""
        return (
            self.name,
            self.type,
            self.source,
            self.details,
            self.version,
            self.size,
            "yes" if self.orphaned else "no",
        )

    @classmethod
    def from_row(cls, row: Sequence[str]) -> "Record":
        """Inverse of ``to_row``."""
        if len(row) != len(HEADER):
            raise InvalidRecordError(
                f"Expected {len(HEADER)} fields, got {len(row)}: {list(row)!r}"
            )
        name, type_, source, details, version, size, orphaned = row
        if not name or not type_:
            raise InvalidRecordError(f"Row is missing name or type: {list(row)!r}")
        return cls(
            name=name,
            type=type_,
            source=source,
            details=details,
            version=version,
            size=size,
            orphaned=orphaned == "yes",
        )


@dataclass(frozen=True)
class Snapshot:
    """An ordered, persisted set of records in canonical schema."""

    header: Tuple[str, ...]
    records: Tuple[Record, ...]

    @classmethod
    def of(cls, records: Iterable[Record]) -> "Snapshot":
        return cls(header=HEADER, records=tuple(records))

    def names(self) -> List[str]:
        return [record.name for record in self.records]

    def __len__(self) -> int:
        return len(self.records)
