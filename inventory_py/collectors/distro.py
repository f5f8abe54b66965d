"""
Distro package manager collectors.

The ``repo`` source covers pacman, APT, DNF/YUM and Zypper; ``aur`` lists
pacman's foreign packages. Both flag orphans when pacman is the manager.
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set

from inventory_py import platform
from inventory_py.collectors import BaseCollector, CollectorError, format_size, run
from inventory_py.config import CollectorOptions, ConfigurationError
from inventory_py.record import REPO_TYPE, UNKNOWN, RawEntry

logger = logging.getLogger("inventory.collectors.distro")

FOREIGN_TYPE = "AUR/Foreign"


@dataclass(frozen=True)
class PackageManager:
    """A distro package manager detected on the host."""

    id: str
    label: str
    command: str
    version: str = "n/a"


_MANAGER_SPECS = (
    ("pacman", "Pacman (Arch)", "pacman", ["pacman", "-V"]),
    ("apt", "APT (Debian/Ubuntu)", "dpkg-query", ["apt", "--version"]),
    ("dnf", "DNF (Fedora/RHEL)", "dnf", ["dnf", "--version"]),
    ("yum", "YUM (Old RHEL)", "yum", ["yum", "--version"]),
    ("zypper", "Zypper (openSUSE)", "zypper", ["zypper", "--version"]),
)


def extract_version_number(text: str) -> str:
    """Return the first dotted version number in *text*, or an empty string."""
    match = re.search(r"\d+(?:\.\d+)+", text)
    if match:
        return match.group(0)
    match = re.search(r"\d+", text)
    return match.group(0) if match else ""


def detect_package_managers(with_versions: bool = False) -> List[PackageManager]:
    """
    List the distro package managers present on this host.

    DNF shadows YUM when both are installed.

    Args:
        with_versions: Query each manager for its version string
    """
    found: List[PackageManager] = []
    for manager_id, label, command, version_cmd in _MANAGER_SPECS:
        if manager_id == "yum" and any(m.id == "dnf" for m in found):
            continue
        if not platform.command_exists(command):
            continue
        version = "n/a"
        if with_versions and platform.command_exists(version_cmd[0]):
            try:
                output = platform.run_command(version_cmd, timeout=5)
                first = next((ln.strip() for ln in output.splitlines() if ln.strip()), "")
                version = extract_version_number(first) or "n/a"
            except Exception as e:
                logger.debug(f"Could not read {manager_id} version: {e}")
        found.append(PackageManager(manager_id, label, command, version))
    return found


class PacmanMetadata:
    """
    Orphan and size lookups shared by the ``repo`` and ``aur`` collectors.

    Each query runs at most once per scan; the first caller pays for it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._orphans: Optional[Set[str]] = None
        self._sizes: Optional[Dict[str, str]] = None

    def orphans(self, options: CollectorOptions) -> Set[str]:
        with self._lock:
            if self._orphans is None:
                self._orphans = _pacman_orphans(options)
            return self._orphans

    def sizes(self, options: CollectorOptions) -> Dict[str, str]:
        with self._lock:
            if self._sizes is None:
                self._sizes = _pacman_sizes(options)
            return self._sizes


def _pacman_orphans(options: CollectorOptions) -> Set[str]:
    # pacman exits 1 when there are no orphans.
    try:
        output = run(["pacman", "-Qtdq"], options)
    except CollectorError:
        return set()
    return {line.strip() for line in output.splitlines() if line.strip()}


def _pacman_sizes(options: CollectorOptions) -> Dict[str, str]:
    if not platform.command_exists("expac"):
        return {}
    try:
        output = run(["expac", "-Q", "%n\t%m"], options)
    except CollectorError as e:
        logger.debug(f"expac failed: {e}")
        return {}
    sizes: Dict[str, str] = {}
    for line in output.splitlines():
        name, _, size_bytes = line.partition("\t")
        if name:
            sizes[name] = format_size(size_bytes)
    return sizes


def _pacman_entries(
    args: List[str],
    type_: str,
    source: str,
    details: str,
    metadata: PacmanMetadata,
    options: CollectorOptions,
) -> Iterator[RawEntry]:
    output = run(["pacman", *args], options)
    orphans = metadata.orphans(options)
    sizes = metadata.sizes(options)
    if not platform.command_exists("expac"):
        details += " (expac unavailable)"
    for line in output.splitlines():
        parts = line.split()
        if not parts:
            continue
        name = parts[0]
        version = parts[1] if len(parts) > 1 else UNKNOWN
        yield RawEntry(
            name=name,
            type=type_,
            source=source,
            details=details,
            version=version,
            size=sizes.get(name, UNKNOWN),
            orphaned=name in orphans,
        )


class RepoCollector(BaseCollector):
    """Packages from the official distro repositories."""

    source_id = "repo"
    label = "Repo"
    commands = ("pacman", "dpkg-query", "dnf", "yum", "zypper")
    record_types = (REPO_TYPE,)
    orphan_capable = True

    def __init__(self, pacman: Optional[PacmanMetadata] = None):
        self.pacman = pacman or PacmanMetadata()

    def selected_managers(self, options: CollectorOptions) -> List[PackageManager]:
        detected = detect_package_managers()
        if options.managers is None:
            return detected
        return [m for m in detected if m.id in options.managers]

    def supports_orphans(self, options: CollectorOptions) -> bool:
        return any(m.id == "pacman" for m in self.selected_managers(options))

    def validate(self, options: CollectorOptions) -> None:
        if options.managers is None:
            return
        detected = {m.id for m in detect_package_managers()}
        missing = [m for m in options.managers if m not in detected]
        if missing:
            raise ConfigurationError(
                f"Package manager(s) not found on this host: {', '.join(missing)}"
            )

    def collect(self, options: CollectorOptions) -> List[RawEntry]:
        """
        Read every selected package manager.

        A manager that fails is reported and skipped; the source only fails
        when all of them did.
        """
        managers = self.selected_managers(options)
        entries: List[RawEntry] = []
        errors: List[str] = []
        for manager in managers:
            logger.debug(f"Reading {manager.label} packages")
            try:
                entries.extend(self._read(manager, options))
            except CollectorError as e:
                errors.append(f"{manager.label}: {e}")

        if managers and len(errors) == len(managers):
            raise CollectorError("; ".join(errors))
        for message in errors:
            logger.warning(f"Repo: {message}")
        return entries

    def _read(self, manager: PackageManager, options: CollectorOptions) -> List[RawEntry]:
        if manager.id == "pacman":
            return list(self._pacman(options))
        if manager.id == "apt":
            return list(self._apt(options))
        if manager.id in ("dnf", "yum"):
            return list(self._dnf(manager.command, options))
        if manager.id == "zypper":
            return list(self._zypper(options))
        return []

    def _pacman(self, options: CollectorOptions) -> Iterator[RawEntry]:
        args = ["-Qn"] if options.include_all_packages else ["-Qen"]
        return _pacman_entries(
            args, REPO_TYPE, "pacman/repo", "Official repository", self.pacman, options
        )

    def _apt(self, options: CollectorOptions) -> Iterator[RawEntry]:
        output = run(
            [
                "dpkg-query",
                "-W",
                "-f=${db:Status-Abbrev}\t${Package}\t${Version}\t${Installed-Size}\n",
            ],
            options,
        )
        for line in output.splitlines():
            fields = line.split("\t")
            if len(fields) < 4 or not fields[0].startswith("ii"):
                continue
            _, name, version, kib = fields[:4]
            size = UNKNOWN
            if kib.strip().isdigit():
                size = format_size(int(kib) * 1024)
            yield RawEntry(name, REPO_TYPE, "apt", "dpkg/apt package", version, size)

    def _dnf(self, command: str, options: CollectorOptions) -> Iterator[RawEntry]:
        output = run([command, "list", "installed", "--quiet"], options)
        for line in output.splitlines():
            parts = line.split()
            # Skip the "Installed Packages" banner and wrapped continuation lines.
            if len(parts) != 3 or parts[0] == "Installed":
                continue
            pkg, version, repo = parts
            yield RawEntry(
                pkg, REPO_TYPE, f"{command}/{repo}", "dnf/yum package", version
            )

    def _zypper(self, options: CollectorOptions) -> Iterator[RawEntry]:
        output = run(
            ["zypper", "--quiet", "search", "-i", "-s", "--type", "package"], options
        )
        for line in output.splitlines():
            columns = [col.strip() for col in line.split("|")]
            if len(columns) < 4 or not columns[0].startswith("i"):
                continue
            name, version = columns[1], columns[3]
            yield RawEntry(name, REPO_TYPE, "zypper", "Zypper package", version)


class AurCollector(BaseCollector):
    """Foreign pacman packages (AUR or installed by hand)."""

    source_id = "aur"
    label = "AUR/Foreign"
    commands = ("pacman",)
    record_types = (FOREIGN_TYPE,)
    orphan_capable = True

    def __init__(self, pacman: Optional[PacmanMetadata] = None):
        self.pacman = pacman or PacmanMetadata()

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        return _pacman_entries(
            ["-Qm"],
            FOREIGN_TYPE,
            "pacman/foreign",
            "Foreign (AUR or manual)",
            self.pacman,
            options,
        )
