"""
Report persistence and terminal presentation.

The report itself goes to stdout; the summary, orphan notes and log lines
go to the stderr console so the report stays pipeable.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table

from inventory_py.collectors.distro import FOREIGN_TYPE
from inventory_py.record import REPO_TYPE, Record
from inventory_py.summary import Summary

logger = logging.getLogger("inventory.output")

NAME_WIDTH = 50
DETAILS_WIDTH = 60
ORPHAN_TYPES = (REPO_TYPE, FOREIGN_TYPE)


def write_report(data: bytes, path: Path, fmt: str) -> Path:
    """
    Write *data* to *path*, falling back to a private temporary file.

    Returns:
        The path the report was actually written to.

    Raises:
        OSError: If neither *path* nor the temporary fallback is writable.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path
    except OSError as e:
        logger.warning(f"Cannot write {path}: {e}; saving to a temporary file")

    fd, tmp_name = tempfile.mkstemp(prefix="app-inventory.", suffix=f".{fmt}")
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return Path(tmp_name)


def truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: max(width - 3, 0)] + "..."


def records_table(records: Sequence[Record], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Details")
    table.add_column("Version")
    table.add_column("Size", justify="right")
    table.add_column("Orphaned")

    for record in records:
        table.add_row(
            truncate(record.name, NAME_WIDTH),
            record.type,
            record.source,
            truncate(record.details, DETAILS_WIDTH),
            record.version,
            record.size,
            "[yellow]yes[/yellow]" if record.orphaned else "no",
        )
    return table


def orphan_table(records: Sequence[Record]) -> Optional[Table]:
    """Build a table of orphaned records, or None when there are none."""
    orphans = [record for record in records if record.orphaned]
    if not orphans:
        return None
    table = Table(title=f"Orphaned packages ({len(orphans)})")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Version")
    for record in orphans:
        table.add_row(
            truncate(record.name, NAME_WIDTH), record.type, record.source, record.version
        )
    return table


def print_report(
    records: Sequence[Record], fmt: str, data: bytes, console: Console
) -> None:
    """Print the report on *console*.

    A terminal gets a table for TSV; anything else gets the serialized text.
    """
    if fmt == "tsv" and console.is_terminal:
        console.print(records_table(records, title="Installed applications"))
        orphans = orphan_table(records)
        if orphans is not None:
            console.print(orphans)
        return
    console.file.write(data.decode("utf-8"))
    console.file.flush()


def print_summary(
    summary: Summary,
    console: Console,
    *,
    include_all_packages: bool = False,
    orphans_only: bool = False,
    duration: float = 0.0,
    skipped: Sequence[str] = (),
    failed: Sequence[str] = (),
    saved_to: Optional[Path] = None,
) -> None:
    """Print the scan summary; every count comes from *summary*."""
    mode = "all packages" if include_all_packages else "apps only"
    console.print()
    console.print("[bold]Summary[/bold]")
    console.print(f"  Mode: {mode}")
    console.print(f"  Orphans only: {'yes' if orphans_only else 'no'}")
    console.print(f"  Duration: {duration:.1f}s")

    for type_ in sorted(summary.by_type):
        line = f"  {type_}: {summary.count(type_)}"
        if type_ in ORPHAN_TYPES:
            line += f" ({summary.orphans(type_)} orphaned)"
        console.print(line)

    if skipped:
        console.print(f"  Skipped (not available): {', '.join(skipped)}")
    if failed:
        console.print(f"  [red]Failed:[/red] {', '.join(failed)}")

    console.print(f"  [bold]Total: {summary.total}[/bold]")
    console.print(f"  Orphaned: {summary.orphan_total}")
    if saved_to is not None:
        console.print(f"  Saved to: {saved_to}")
