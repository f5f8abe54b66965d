"""
Configuration file support for app-inventory.

Loads settings from ``~/.config/app-inventory/config.yaml`` (or
``$XDG_CONFIG_HOME/app-inventory/config.yaml``) and exposes them as typed
dataclasses that the CLI can merge with command-line flags.
"""

import logging
import os
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger("inventory.config")

OUTPUT_FORMATS = ("tsv", "csv", "json")
PACKAGE_MANAGERS = ("pacman", "apt", "dnf", "yum", "zypper")
DEFAULT_TIMEOUT = 120.0
DEFAULT_PROBE_TIMEOUT = 1.0
DEFAULT_OUTPUT_BASENAME = "installed-apps"


class ConfigurationError(ValueError):
    """Invalid configuration, detected before any collector runs."""


def default_config_path() -> Path:
    """Return the default configuration file path.

    Uses ``$XDG_CONFIG_HOME/app-inventory/config.yaml`` when set, otherwise
    falls back to ``~/.config/app-inventory/config.yaml``.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "app-inventory" / "config.yaml"
    return Path.home() / ".config" / "app-inventory" / "config.yaml"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "0").strip() not in ("", "0")


def _seconds(data: Dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        logger.warning("Ignoring invalid %s: %r (using %ss)", key, value, default)
        return default
    return float(value)


@dataclass
class OutputConfig:
    """Where and how the report is written."""

    format: str = "tsv"
    path: Optional[Path] = None

    def resolved_path(self) -> Optional[Path]:
        """Return the report path with the extension matching ``format``.

        TSV reports are only saved when a path was given; CSV and JSON
        default to ``~/installed-apps.<ext>``.
        """
        if self.path is None:
            if self.format == "tsv":
                return None
            return Path.home() / f"{DEFAULT_OUTPUT_BASENAME}.{self.format}"

        if self.format == "tsv":
            return self.path
        base = self.path
        if base.suffix.lower() in (".tsv", ".csv", ".json"):
            base = base.with_suffix("")
        return base.with_name(f"{base.name}.{self.format}")


@dataclass
class InventoryConfig:
    """Top-level configuration for a scan."""

    sources: Dict[str, bool] = field(default_factory=dict)
    preset: Optional[str] = None
    managers: Optional[List[str]] = None
    search: str = ""
    orphans_only: bool = False
    include_all_packages: bool = False
    run_binaries: bool = False
    timeout: float = DEFAULT_TIMEOUT
    timeouts: Dict[str, float] = field(default_factory=dict)
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventoryConfig":
        """Construct an ``InventoryConfig`` from a parsed YAML dictionary."""
        if not isinstance(data, dict):
            return cls()

        sources: Dict[str, bool] = {}
        raw_sources = data.get("sources") or {}
        if isinstance(raw_sources, dict):
            for name, enabled in raw_sources.items():
                if not isinstance(enabled, bool):
                    logger.warning("Skipping invalid sources entry: %s=%r", name, enabled)
                    continue
                sources[str(name).strip().lower()] = enabled
        else:
            logger.warning("Ignoring 'sources': expected a mapping of name to bool")

        timeouts: Dict[str, float] = {}
        raw_timeouts = data.get("timeouts") or {}
        if not isinstance(raw_timeouts, dict):
            logger.warning("Ignoring 'timeouts': expected a mapping of name to seconds")
            raw_timeouts = {}
        for name, seconds in raw_timeouts.items():
            if not isinstance(seconds, (int, float)) or isinstance(seconds, bool):
                logger.warning("Skipping invalid timeouts entry: %s=%r", name, seconds)
                continue
            timeouts[str(name).strip().lower()] = float(seconds)

        managers = data.get("managers")
        if isinstance(managers, str):
            managers = [m for m in managers.split(",")]
        if managers is not None:
            managers = [str(m).strip().lower() for m in managers if str(m).strip()]

        output_data = data.get("output") or {}
        if not isinstance(output_data, dict):
            logger.warning("Ignoring 'output': expected a mapping")
            output_data = {}
        output_path = output_data.get("path")
        output = OutputConfig(
            format=str(output_data.get("format", "tsv")).lower(),
            path=Path(output_path).expanduser() if output_path else None,
        )

        return cls(
            sources=sources,
            preset=data.get("preset"),
            managers=managers or None,
            search=str(data.get("search") or ""),
            orphans_only=bool(data.get("orphans_only", False)),
            include_all_packages=bool(
                data.get("include_all_packages", _env_flag("APP_INVENTORY_INCLUDE_ALL"))
            ),
            run_binaries=bool(data.get("run_binaries", False)),
            timeout=_seconds(data, "timeout", DEFAULT_TIMEOUT),
            timeouts=timeouts,
            probe_timeout=_seconds(data, "probe_timeout", DEFAULT_PROBE_TIMEOUT),
            output=output,
        )

    @classmethod
    def from_file(cls, path: Path) -> "InventoryConfig":
        """Read a YAML file and return an ``InventoryConfig``.

        Returns the default config on any error.
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f.read())
            if data is None:
                return cls.defaults()
            return cls.from_dict(data)
        except (IOError, yaml.YAMLError) as e:
            logger.error("Failed to load config from %s: %s", path, e)
            return cls.defaults()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "InventoryConfig":
        """Main entry point - load config from *config_path* or the default location.

        Returns the default config if the file does not exist.
        """
        path = config_path or default_config_path()
        if not path.exists():
            return cls.defaults()
        return cls.from_file(path)

    @classmethod
    def defaults(cls) -> "InventoryConfig":
        return cls(include_all_packages=_env_flag("APP_INVENTORY_INCLUDE_ALL"))

    def merge(self, **overrides: Any) -> "InventoryConfig":
        """Return a copy with every non-None override applied.

        ``output_format`` and ``output_path`` update the nested output config.
        """
        output = self.output
        fmt = overrides.pop("output_format", None)
        out_path = overrides.pop("output_path", None)
        if fmt is not None or out_path is not None:
            output = OutputConfig(
                format=(fmt or output.format).lower(),
                path=Path(out_path).expanduser() if out_path else output.path,
            )
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, output=output, **changes)

    def timeout_for(self, source: str) -> float:
        return self.timeouts.get(source, self.timeout)

    def validate(self) -> None:
        """Raise ``ConfigurationError`` for settings no scan can honor."""
        if self.output.format not in OUTPUT_FORMATS:
            raise ConfigurationError(
                f"Unknown output format '{self.output.format}' "
                f"(expected one of: {', '.join(OUTPUT_FORMATS)})"
            )
        for name, seconds in [("timeout", self.timeout), *self.timeouts.items()]:
            if seconds <= 0:
                raise ConfigurationError(f"Timeout for '{name}' must be positive")
        if self.probe_timeout <= 0:
            raise ConfigurationError("probe_timeout must be positive")
        for manager in self.managers or []:
            if manager != "all" and manager not in PACKAGE_MANAGERS:
                raise ConfigurationError(
                    f"Unknown package manager '{manager}' "
                    f"(expected one of: {', '.join(PACKAGE_MANAGERS)}, all)"
                )


@dataclass(frozen=True)
class CollectorOptions:
    """Read-only view of the configuration handed to every collector."""

    include_all_packages: bool = False
    run_binaries: bool = False
    command_timeout: float = DEFAULT_TIMEOUT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    managers: Optional[Tuple[str, ...]] = None
    enabled_sources: Tuple[str, ...] = ()
    home: Path = field(default_factory=Path.home)
    #: ``time.monotonic()`` value after which the pipeline stops waiting
    deadline: Optional[float] = None

    @classmethod
    def from_config(
        cls, config: InventoryConfig, enabled_sources: Tuple[str, ...] = ()
    ) -> "CollectorOptions":
        managers = None
        if config.managers and "all" not in config.managers:
            managers = tuple(config.managers)
        return cls(
            include_all_packages=config.include_all_packages,
            run_binaries=config.run_binaries,
            command_timeout=config.timeout,
            probe_timeout=config.probe_timeout,
            managers=managers,
            enabled_sources=enabled_sources,
        )

    def for_source(
        self, timeout: float, deadline: Optional[float] = None
    ) -> "CollectorOptions":
        return replace(self, command_timeout=timeout, deadline=deadline)

    def time_left(self) -> float:
        """Seconds the next command may run, capped by the source deadline."""
        if self.deadline is None:
            return self.command_timeout
        return min(self.command_timeout, max(0.0, self.deadline - time.monotonic()))
