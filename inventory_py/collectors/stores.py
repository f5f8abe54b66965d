"""Application store collectors: Flatpak and Snap."""

import logging
from typing import Iterator

from inventory_py.collectors import BaseCollector, run
from inventory_py.config import CollectorOptions
from inventory_py.record import UNKNOWN, RawEntry

logger = logging.getLogger("inventory.collectors.stores")

_FLATPAK_COLUMNS = "--columns=application,name,branch,installation,version,size,ref"


class FlatpakCollector(BaseCollector):
    """Flatpak applications, plus runtimes in include-all mode."""

    source_id = "flatpak"
    label = "Flatpak"
    commands = ("flatpak",)
    record_types = ("Flatpak",)

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        args = ["flatpak", "list", _FLATPAK_COLUMNS]
        if not options.include_all_packages:
            args.insert(2, "--app")

        for line in run(args, options).splitlines():
            fields = line.split("\t")
            fields += [""] * (7 - len(fields))
            app_id, name, branch, installation, version, size, ref = fields[:7]
            if not app_id or app_id == "Application ID":
                continue

            details = f"ID: {app_id}, Branch: {branch}, Installation: {installation}"
            if ref:
                details += f", Type: {ref.split('/', 1)[0]}, Ref: {ref}"
            if not size.strip() or size.strip() == "0":
                size = UNKNOWN
            yield RawEntry(
                name=name or app_id,
                type="Flatpak",
                source=f"flatpak/{installation or 'system'}",
                details=details,
                version=version or UNKNOWN,
                size=size.replace("\xa0", " "),
            )


class SnapCollector(BaseCollector):
    source_id = "snap"
    label = "Snap"
    commands = ("snap",)
    record_types = ("Snap",)

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        lines = run(["snap", "list"], options).splitlines()
        # Columns: Name Version Rev Tracking Publisher Notes
        for line in lines[1:]:
            parts = line.split()
            if len(parts) < 5:
                continue
            name, version, _rev, track, publisher = parts[:5]
            notes = " ".join(parts[5:])
            details = f"Publisher: {publisher}"
            if notes and notes != "-":
                details += f", Notes: {notes}"
            yield RawEntry(name, "Snap", f"snap/{track}", details, version)
