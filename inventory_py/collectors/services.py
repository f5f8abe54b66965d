"""systemd user service collector."""

from typing import Iterator

from inventory_py.collectors import BaseCollector, run
from inventory_py.config import CollectorOptions
from inventory_py.record import RawEntry


class SystemdUserCollector(BaseCollector):
    source_id = "systemd"
    label = "systemd"
    commands = ("systemctl",)
    record_types = ("User Service",)

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        output = run(
            [
                "systemctl",
                "--user",
                "list-unit-files",
                "--type=service",
                "--no-legend",
                "--no-pager",
            ],
            options,
            env={"SYSTEMD_PAGER": "", "SYSTEMD_COLORS": "0"},
        )
        for line in output.splitlines():
            parts = line.split()
            if not parts:
                continue
            unit = parts[0]
            state = parts[1] if len(parts) > 1 else "unknown"
            name = unit[: -len(".service")] if unit.endswith(".service") else unit
            yield RawEntry(name, "User Service", "systemd/user", f"State: {state}")
