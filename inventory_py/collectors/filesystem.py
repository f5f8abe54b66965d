"""
Filesystem scan collectors: AppImages, local binaries and Go binaries.

Version metadata for discovered executables is only obtained by running
them when unsafe introspection is enabled, and every probe is bounded by
``CollectorOptions.probe_timeout``.
"""

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Callable, Iterator, List

from inventory_py import platform
from inventory_py.collectors import BaseCollector, CollectorError, format_size, run
from inventory_py.config import CollectorOptions
from inventory_py.record import UNKNOWN, RawEntry

logger = logging.getLogger("inventory.collectors.filesystem")

PROBE_FLAGS = ("--version", "-V", "-v", "version")
_PROBE_VERSION = re.compile(r"\d+[._-]\d+(?:[._-]\d+)*")
_FILENAME_VERSION = re.compile(r"\d+(?:\.\d+)*")
_APPIMAGE_SUFFIX = ".appimage"


def probe_version(path: Path, options: CollectorOptions) -> str:
    """
    Run *path* with common version flags and parse the first line of output.

    Returns "-" without executing anything unless ``run_binaries`` is set.
    """
    if not options.run_binaries or not os.access(path, os.X_OK):
        return UNKNOWN

    for flag in PROBE_FLAGS:
        timeout = min(options.probe_timeout, options.time_left())
        if timeout <= 0:
            return UNKNOWN
        try:
            output = platform.run_command(
                [str(path), flag], timeout=timeout, check=False
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"{path} {flag} timed out after {options.probe_timeout}s")
            continue
        except OSError as e:
            logger.debug(f"Could not execute {path}: {e}")
            return UNKNOWN
        first_line = output.splitlines()[0] if output else ""
        match = _PROBE_VERSION.search(first_line)
        if match:
            return match.group(0)
    return UNKNOWN


def version_from_filename(path: Path) -> str:
    match = _FILENAME_VERSION.search(path.name[: -len(_APPIMAGE_SUFFIX)])
    return match.group(0) if match else UNKNOWN


def file_size(path: Path) -> str:
    try:
        return format_size(path.stat().st_size)
    except OSError:
        return UNKNOWN


def find_files(
    root: Path, max_depth: int, predicate: Callable[[os.DirEntry], bool]
) -> Iterator[Path]:
    """Yield regular files under *root* (depth 1 is *root* itself) matching *predicate*."""
    if not root.is_dir():
        return
    pending = [(root, 1)]
    while pending:
        directory, depth = pending.pop()
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            logger.debug(f"Cannot read {directory}: {e}")
            continue
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    if depth < max_depth:
                        pending.append((Path(entry.path), depth + 1))
                elif entry.is_file(follow_symlinks=False) and predicate(entry):
                    yield Path(entry.path)
            except OSError:
                continue


def _is_executable(entry: os.DirEntry) -> bool:
    return os.access(entry.path, os.X_OK)


class AppImageCollector(BaseCollector):
    """AppImage bundles in the usual download and install locations."""

    source_id = "appimage"
    label = "AppImage"
    record_types = ("AppImage",)

    def search_dirs(self, options: CollectorOptions) -> List[Path]:
        home = options.home
        return [
            home / "Applications",
            home / ".local" / "share" / "applications",
            home / "AppImages",
            home / "Downloads",
            home / ".local" / "bin",
            home / "bin",
            Path("/opt"),
        ]

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        seen = set()
        for directory in self.search_dirs(options):
            matches = find_files(
                directory,
                max_depth=2,
                predicate=lambda e: e.name.lower().endswith(_APPIMAGE_SUFFIX),
            )
            for path in matches:
                if path in seen:
                    continue
                seen.add(path)
                version = probe_version(path, options)
                if version == UNKNOWN:
                    version = version_from_filename(path)
                yield RawEntry(
                    name=path.name[: -len(_APPIMAGE_SUFFIX)],
                    type="AppImage",
                    source="appimage",
                    details=f"Location: {path}",
                    version=version,
                    size=file_size(path),
                )


class LocalBinaryCollector(BaseCollector):
    """Executables dropped into user and local bin directories."""

    source_id = "local"
    label = "Local"
    record_types = ("Local Binary",)
    default_enabled = False

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        home = options.home
        for directory in (home / ".local" / "bin", home / "bin", Path("/usr/local/bin")):
            for path in find_files(directory, max_depth=1, predicate=_is_executable):
                yield RawEntry(
                    name=path.name,
                    type="Local Binary",
                    source="filesystem",
                    details=f"Path: {path}",
                    version=probe_version(path, options),
                    size=file_size(path),
                )


class GoBinaryCollector(BaseCollector):
    """Binaries installed with ``go install``."""

    source_id = "go"
    label = "Go"
    commands = ("go",)
    record_types = ("Go Binary",)

    def bin_dirs(self, options: CollectorOptions) -> List[Path]:
        dirs: List[Path] = []
        for var, suffix in (("GOBIN", ""), ("GOPATH", "bin")):
            try:
                value = run(["go", "env", var], options).strip()
            except CollectorError as e:
                logger.debug(f"go env {var} failed: {e}")
                continue
            if value:
                # GOPATH may hold several entries.
                first = value.split(os.pathsep)[0]
                dirs.append(Path(first) / suffix if suffix else Path(first))
        dirs.append(options.home / "go" / "bin")

        unique: List[Path] = []
        for d in dirs:
            if d not in unique:
                unique.append(d)
        return unique

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        for directory in self.bin_dirs(options):
            for path in find_files(directory, max_depth=1, predicate=_is_executable):
                yield RawEntry(
                    name=path.name,
                    type="Go Binary",
                    source="go/bin",
                    details=f"Path: {path}",
                    size=file_size(path),
                )
