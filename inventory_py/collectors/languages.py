"""
Language and user-level package manager collectors.

Covers global pip installs, pipx, cargo, npm, Nix profiles and Homebrew.
"""

import logging
import os
import re
from typing import Iterator, List, Tuple

import orjson

from inventory_py import platform
from inventory_py.collectors import BaseCollector, CollectorError, run
from inventory_py.config import CollectorOptions
from inventory_py.record import UNKNOWN, RawEntry

logger = logging.getLogger("inventory.collectors.languages")


def parse_freeze_line(line: str) -> Tuple[str, str]:
    """Split a ``pip list --format=freeze`` line into (name, version)."""
    for separator in (" @ ", "===", "=="):
        if separator in line:
            name, _, version = line.partition(separator)
            return name.strip(), version.strip() or UNKNOWN
    return line.strip(), UNKNOWN


class PipCollector(BaseCollector):
    """Globally visible Python packages, once per distinct pip binary."""

    source_id = "pip"
    label = "Pip"
    commands = ("pip3", "pip")
    record_types = ("Python Package",)
    default_enabled = False

    def pip_commands(self) -> List[str]:
        seen = set()
        candidates = []
        for candidate in ("pip3", "pip"):
            path = platform.which(candidate)
            if not path:
                continue
            resolved = os.path.realpath(path)
            if resolved in seen:
                continue
            seen.add(resolved)
            candidates.append(candidate)
        return candidates

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        for pip in self.pip_commands():
            output = run(
                [pip, "list", "--format=freeze", "--disable-pip-version-check"],
                options,
            )
            for line in output.splitlines():
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                name, version = parse_freeze_line(line)
                if not name:
                    continue
                yield RawEntry(
                    name, "Python Package", f"pip/{pip}", f"Installed via {pip}", version
                )


class PipxCollector(BaseCollector):
    source_id = "pipx"
    label = "Pipx"
    commands = ("pipx",)
    record_types = ("Pipx Package",)

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        for line in run(["pipx", "list", "--short"], options).splitlines():
            parts = line.split(maxsplit=1)
            if not parts:
                continue
            version = UNKNOWN
            if len(parts) > 1:
                match = re.search(r"\d\S*", parts[1])
                if match:
                    version = match.group(0)
            yield RawEntry(parts[0], "Pipx Package", "pipx", "pipx installed app", version)


class CargoCollector(BaseCollector):
    source_id = "cargo"
    label = "Cargo"
    commands = ("cargo",)
    record_types = ("Rust Binary",)

    _CRATE_LINE = re.compile(r"^(\S+) v(\d\S*?):?(?:\s|$)")

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        # Crate lines look like "ripgrep v14.1.0:"; binaries are indented below.
        for line in run(["cargo", "install", "--list"], options).splitlines():
            match = self._CRATE_LINE.match(line)
            if match:
                yield RawEntry(
                    match.group(1),
                    "Rust Binary",
                    "cargo",
                    "cargo install --list",
                    match.group(2),
                )


class NpmCollector(BaseCollector):
    source_id = "npm"
    label = "npm"
    commands = ("npm",)
    record_types = ("Node Package",)

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        # npm exits 1 on ELSPROBLEMS but still prints the full tree.
        output = run(
            ["npm", "list", "-g", "--depth=0", "--json"], options, keep_output=True
        )
        try:
            data = orjson.loads(output or "{}")
        except orjson.JSONDecodeError as e:
            raise CollectorError(f"Malformed npm output: {e}") from e

        dependencies = data.get("dependencies") if isinstance(data, dict) else None
        for name, meta in (dependencies or {}).items():
            version = meta.get("version", UNKNOWN) if isinstance(meta, dict) else UNKNOWN
            yield RawEntry(name, "Node Package", "npm/global", "npm -g package", version)


class NixCollector(BaseCollector):
    source_id = "nix"
    label = "Nix"
    commands = ("nix-env",)
    record_types = ("Nix Package",)

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        try:
            output = run(["nix-env", "-q", "--installed", "--json"], options)
            items = orjson.loads(output or "[]")
        except (CollectorError, orjson.JSONDecodeError) as e:
            logger.debug(f"nix-env --json unusable, falling back to plain output: {e}")
            yield from self._plain(options)
            return

        if isinstance(items, dict):
            entries = list(items.values())
        elif isinstance(items, list):
            entries = items
        else:
            raise CollectorError("Unexpected nix-env JSON layout")
        for item in entries:
            if not isinstance(item, dict):
                continue
            name = item.get("pname") or item.get("name") or item.get("attrPath")
            if not name:
                continue
            meta = item.get("meta") if isinstance(item.get("meta"), dict) else {}
            version = item.get("version") or meta.get("version") or UNKNOWN
            yield RawEntry(
                name, "Nix Package", "nix-env", "nix-env installed package", version
            )

    def _plain(self, options: CollectorOptions) -> Iterator[RawEntry]:
        for line in run(["nix-env", "-q", "--installed"], options).splitlines():
            name = line.strip()
            if name:
                yield RawEntry(
                    name, "Nix Package", "nix-env", "nix-env installed package"
                )


class BrewCollector(BaseCollector):
    source_id = "brew"
    label = "Brew"
    aliases = ("homebrew", "linuxbrew")
    commands = ("brew",)
    record_types = ("Homebrew Package",)

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        output = run(["brew", "list", "--versions"], options)
        for line in output.splitlines():
            parts = line.split()
            if not parts:
                continue
            version = parts[1] if len(parts) > 1 else UNKNOWN
            yield RawEntry(
                parts[0], "Homebrew Package", "brew", "brew installed package", version
            )
