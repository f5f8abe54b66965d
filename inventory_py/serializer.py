"""
Serializers for the final, sorted record sequence.

The canonical form is tab-separated with a fixed header; CSV and JSON are
projections of it. Every function here is a pure function of its input and
never filters, sorts or counts.
"""

import csv
import io
from typing import Iterable, List, Sequence

import orjson

from inventory_py.record import HEADER, Record

FORMATS = ("tsv", "csv", "json")


def to_tsv(records: Iterable[Record]) -> str:
    lines = ["\t".join(HEADER)]
    lines.extend("\t".join(record.to_row()) for record in records)
    return "\n".join(lines) + "\n"


def parse_tsv(text: str) -> List[Record]:
    """
    Parse canonical TSV back into records.

    Raises:
        ValueError: If the header does not match the canonical schema.
    """
    lines = [line.rstrip("\r") for line in text.split("\n")]
    if not lines or tuple(lines[0].split("\t")) != HEADER:
        raise ValueError("Missing or non-canonical header row")
    return [Record.from_row(line.split("\t")) for line in lines[1:] if line]


def to_csv(records: Iterable[Record]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADER)
    for record in records:
        writer.writerow(record.to_row())
    return buffer.getvalue()


def to_json(records: Sequence[Record]) -> bytes:
    """Render ``{"packages": [...]}`` with ``orphaned`` as a real boolean."""
    packages = [
        {
            "name": record.name,
            "type": record.type,
            "source": record.source,
            "details": record.details,
            "version": record.version,
            "size": record.size,
            "orphaned": record.orphaned,
        }
        for record in records
    ]
    return orjson.dumps({"packages": packages})


def render(records: Sequence[Record], fmt: str) -> bytes:
    """Serialize *records* in *fmt* (``tsv``, ``csv`` or ``json``)."""
    if fmt == "tsv":
        return to_tsv(records).encode("utf-8")
    if fmt == "csv":
        return to_csv(records).encode("utf-8")
    if fmt == "json":
        return to_json(records)
    raise ValueError(f"Unknown output format: {fmt}")
