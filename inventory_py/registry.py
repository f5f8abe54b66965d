"""
Collector registry for app-inventory.

Holds the catalog of known collectors keyed by source identifier, decides
which of them a configuration enables on this host, and resolves presets.
New sources register here without touching the pipeline.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from inventory_py.collectors import BaseCollector
from inventory_py.collectors.containers import (
    DockerCollector,
    OllamaCollector,
    PodmanCollector,
)
from inventory_py.collectors.distro import AurCollector, PacmanMetadata, RepoCollector
from inventory_py.collectors.filesystem import (
    AppImageCollector,
    GoBinaryCollector,
    LocalBinaryCollector,
)
from inventory_py.collectors.languages import (
    BrewCollector,
    CargoCollector,
    NixCollector,
    NpmCollector,
    PipCollector,
    PipxCollector,
)
from inventory_py.collectors.services import SystemdUserCollector
from inventory_py.collectors.stores import FlatpakCollector, SnapCollector
from inventory_py.config import CollectorOptions, ConfigurationError, InventoryConfig

logger = logging.getLogger("inventory.registry")


@dataclass(frozen=True)
class Preset:
    """A named bundle of sources.

    ``sources=None`` means every registered source; ``exclude`` is removed
    afterwards.
    """

    name: str
    number: int
    label: str
    sources: Optional[Tuple[str, ...]] = None
    exclude: Tuple[str, ...] = ()


PRESETS: Tuple[Preset, ...] = (
    Preset("minimal", 1, "Minimal (Repo only)", ("repo",)),
    Preset(
        "desktop",
        2,
        "Desktop Store (Repo + AUR + Flatpak + AppImage)",
        ("repo", "aur", "flatpak", "appimage"),
    ),
    Preset(
        "workstation",
        3,
        "Workstation + Containers",
        ("repo", "aur", "flatpak", "appimage", "local", "docker", "podman"),
    ),
    Preset("full", 4, "Full Scan (Repo + stores + Dev + Containers + Services)"),
    Preset(
        "no-repo",
        5,
        "Everything Except Repo (stores + Dev + Containers)",
        exclude=("repo", "aur"),
    ),
)


@dataclass(frozen=True)
class SourceSelection:
    """Sources that will run, and requested sources missing from this host."""

    enabled: Tuple[str, ...]
    skipped: Tuple[str, ...] = ()


class CollectorRegistry:
    """Catalog of collectors keyed by source identifier."""

    def __init__(self, collectors: Iterable[BaseCollector] = ()):
        self._collectors: Dict[str, BaseCollector] = {}
        self._aliases: Dict[str, str] = {}
        for collector in collectors:
            self.register(collector)

    def register(self, collector: BaseCollector) -> None:
        """Add *collector* to the catalog.

        Raises:
            ValueError: If its identifier or an alias is already taken.
        """
        names = (collector.source_id, *collector.aliases)
        if not collector.source_id:
            raise ValueError(f"{collector!r} has no source_id")
        for name in names:
            if name in self._collectors or name in self._aliases:
                raise ValueError(f"Source name '{name}' is already registered")
        self._collectors[collector.source_id] = collector
        for alias in collector.aliases:
            self._aliases[alias] = collector.source_id

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._collectors

    def __len__(self) -> int:
        return len(self._collectors)

    def get(self, source_id: str) -> BaseCollector:
        return self._collectors[self.resolve(source_id)]

    def collectors(self) -> List[BaseCollector]:
        return list(self._collectors.values())

    def sources(self) -> List[str]:
        return list(self._collectors)

    def resolve(self, name: str) -> str:
        """Map an identifier or alias to the canonical source identifier.

        Raises:
            ConfigurationError: If *name* is not a known source.
        """
        key = name.strip().lower()
        if key in self._collectors:
            return key
        if key in self._aliases:
            return self._aliases[key]
        raise ConfigurationError(
            f"Unknown source '{name}' (known: {', '.join(self.sources())})"
        )

    def available_sources(self) -> List[str]:
        return [sid for sid, c in self._collectors.items() if c.is_available()]

    def only(self, names: Iterable[str]) -> Dict[str, bool]:
        """Build an inclusion mapping that enables exactly *names*."""
        mapping = {sid: False for sid in self._collectors}
        for name in names:
            if name.strip():
                mapping[self.resolve(name)] = True
        return mapping

    def find_preset(self, name: str) -> Preset:
        key = str(name).strip().lower()
        if key[:1] == "p" and key[1:].isdigit():
            key = key[1:]
        for preset in PRESETS:
            if key == preset.name or key == str(preset.number):
                return preset
        raise ConfigurationError(
            f"Unknown preset '{name}' (known: {', '.join(p.name for p in PRESETS)})"
        )

    def preset_sources(self, preset: Preset) -> List[str]:
        requested = self.sources() if preset.sources is None else list(preset.sources)
        return [
            sid for sid in requested if sid in self._collectors and sid not in preset.exclude
        ]

    def _split_available(self, requested: Iterable[str]) -> SourceSelection:
        wanted = set(requested)
        enabled: List[str] = []
        skipped: List[str] = []
        for sid, collector in self._collectors.items():
            if sid not in wanted:
                continue
            if collector.is_available():
                enabled.append(sid)
            else:
                skipped.append(sid)
        return SourceSelection(tuple(enabled), tuple(skipped))

    def preset_selection(self, name: str) -> SourceSelection:
        """Resolve a preset against the sources present on this host."""
        return self._split_available(self.preset_sources(self.find_preset(name)))

    def enabled_sources(self, config: InventoryConfig) -> SourceSelection:
        """
        Decide which sources run for *config*.

        Starts from the configured preset (or every collector's default),
        applies the explicit inclusion/exclusion mapping, then moves sources
        that are unavailable on this host into ``skipped``.

        Raises:
            ConfigurationError: For an unknown source or preset name.
        """
        if config.preset:
            requested = self.preset_sources(self.find_preset(config.preset))
        else:
            requested = [c.source_id for c in self.collectors() if c.default_enabled]

        for name, enabled in config.sources.items():
            sid = self.resolve(name)
            if enabled and sid not in requested:
                requested.append(sid)
            elif not enabled and sid in requested:
                requested.remove(sid)

        selection = self._split_available(requested)
        for sid in selection.skipped:
            logger.info(f"Skipped source '{sid}': not available on this host")
        return selection

    def orphan_sources(
        self, selection: SourceSelection, options: CollectorOptions
    ) -> List[str]:
        """Return the enabled sources able to flag orphaned packages."""
        return [
            sid
            for sid in selection.enabled
            if self._collectors[sid].supports_orphans(options)
        ]


def default_registry() -> CollectorRegistry:
    """Build the registry of every built-in collector, in report order."""
    pacman = PacmanMetadata()
    return CollectorRegistry(
        [
            RepoCollector(pacman),
            AurCollector(pacman),
            FlatpakCollector(),
            SnapCollector(),
            AppImageCollector(),
            LocalBinaryCollector(),
            PipCollector(),
            DockerCollector(),
            PodmanCollector(),
            OllamaCollector(),
            NixCollector(),
            CargoCollector(),
            NpmCollector(),
            BrewCollector(),
            GoBinaryCollector(),
            PipxCollector(),
            SystemdUserCollector(),
        ]
    )
