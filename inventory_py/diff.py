"""
Diff engine for app-inventory snapshots.

Two snapshots are compared by the ``Name`` column only: a package that
changed version or type but kept its name is not a change.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple

from inventory_py.config import ConfigurationError
from inventory_py.record import InvalidRecordError, Snapshot
from inventory_py.serializer import parse_tsv

logger = logging.getLogger("inventory.diff")

_PROJECTED_SUFFIXES = (".csv", ".json")


class SnapshotFormatError(ConfigurationError):
    """The diff input is not a canonical tab-separated snapshot."""


@dataclass(frozen=True)
class DiffResult:
    """Names present only in the new snapshot, and only in the old one."""

    added: Tuple[str, ...]
    removed: Tuple[str, ...]

    @property
    def unchanged(self) -> bool:
        return not self.added and not self.removed

    def lines(self) -> List[str]:
        out = ["=== Added packages (by name) ==="]
        out.extend(f"+ {name}" for name in self.added)
        out.append("")
        out.append("=== Removed packages (by name) ===")
        out.extend(f"- {name}" for name in self.removed)
        return out


def load_snapshot(path: Path) -> Snapshot:
    """
    Read a canonical TSV snapshot from *path*.

    Raises:
        SnapshotFormatError: If the file is missing, unreadable, or a CSV/JSON
            projection instead of canonical TSV.
    """
    if not path.is_file():
        raise SnapshotFormatError(f"Diff file not found: {path}")
    if path.suffix.lower() in _PROJECTED_SUFFIXES:
        raise SnapshotFormatError(
            f"{path} looks like a {path.suffix[1:].upper()} export; "
            "diff needs a tab-separated snapshot"
        )
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotFormatError(f"Cannot read diff file {path}: {e}") from e

    try:
        records = parse_tsv(text)
    except (ValueError, InvalidRecordError) as e:
        raise SnapshotFormatError(
            f"{path} is not a tab-separated app-inventory snapshot: {e}"
        ) from e
    logger.debug(f"Loaded {len(records)} records from {path}")
    return Snapshot.of(records)


def _names(names: Iterable[str]) -> List[str]:
    # Code point order equals C collation over UTF-8 bytes.
    return sorted(set(names))


def diff_names(old: Iterable[str], new: Iterable[str]) -> DiffResult:
    old_names = set(old)
    new_names = set(new)
    return DiffResult(
        added=tuple(_names(new_names - old_names)),
        removed=tuple(_names(old_names - new_names)),
    )


def diff_snapshots(old: Snapshot, new: Snapshot) -> DiffResult:
    """Compare two snapshots by record name."""
    return diff_names(old.names(), new.names())
