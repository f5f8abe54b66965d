"""
Collector package for app-inventory.

This module provides the base class every inventory source implements,
plus the helpers collectors share for running commands and formatting
sizes. Collectors only return raw entries; the pipeline validates,
filters and stores them.
"""

import abc
import logging
import math
import subprocess
from typing import Dict, Iterable, List, Optional, Tuple

from inventory_py import platform
from inventory_py.config import CollectorOptions
from inventory_py.record import UNKNOWN, RawEntry

logger = logging.getLogger("inventory.collectors")

_IEC_UNITS = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei")


class CollectorError(RuntimeError):
    """A source could not be queried; the pipeline treats it as zero records."""


def format_size(num_bytes: Optional[object]) -> str:
    """
    Format a byte count the way ``numfmt --to=iec-i --suffix=B`` does.

    Returns "-" for empty, zero or unparsable input.
    """
    if num_bytes in (None, ""):
        return UNKNOWN
    try:
        value = float(str(num_bytes).strip())
    except ValueError:
        return UNKNOWN
    if value <= 0:
        return UNKNOWN
    if value < 1024:
        return f"{int(math.ceil(value))}B"

    unit = ""
    for unit in _IEC_UNITS:
        value /= 1024
        if value < 1024:
            break
    if value < 10:
        return f"{math.ceil(value * 10) / 10:.1f}{unit}B"
    return f"{int(math.ceil(value))}{unit}B"


def run(
    args: List[str],
    options: CollectorOptions,
    env: Optional[Dict[str, str]] = None,
    keep_output: bool = False,
) -> str:
    """
    Run a collector command, converting every failure to ``CollectorError``.

    With *keep_output*, a non-zero exit that still printed something to
    stdout returns that output instead of failing.
    """
    timeout = options.time_left()
    if timeout <= 0:
        raise CollectorError(f"`{args[0]}` not started: source deadline passed")
    try:
        return platform.run_command(args, timeout=timeout, env=env)
    except subprocess.TimeoutExpired as e:
        raise CollectorError(f"`{args[0]}` timed out after {e.timeout}s") from e
    except subprocess.CalledProcessError as e:
        if keep_output and (e.stdout or "").strip():
            logger.debug(f"`{args[0]}` exited {e.returncode}; using its output")
            return e.stdout
        stderr = (e.stderr or "").strip().splitlines()
        reason = stderr[-1] if stderr else f"exit code {e.returncode}"
        raise CollectorError(f"`{' '.join(args[:3])}` failed: {reason}") from e
    except FileNotFoundError as e:
        raise CollectorError(f"`{args[0]}` command not found") from e


class BaseCollector(abc.ABC):
    """Base class for inventory sources."""

    #: Source identifier used in configuration (``repo``, ``flatpak``, ...)
    source_id: str = ""
    #: Human label for summaries and listings
    label: str = ""
    #: Alternative names accepted in source lists
    aliases: Tuple[str, ...] = ()
    #: The source is available when any of these commands exists.
    #: An empty tuple means the source is always available.
    commands: Tuple[str, ...] = ()
    #: Record types this collector emits, in summary order
    record_types: Tuple[str, ...] = ()
    default_enabled: bool = True
    orphan_capable: bool = False

    def is_available(self) -> bool:
        """Return True when the underlying tool exists on this host."""
        if not self.commands:
            return True
        return any(platform.command_exists(cmd) for cmd in self.commands)

    def supports_orphans(self, options: CollectorOptions) -> bool:
        """Return True when this collector can flag orphaned packages."""
        return self.orphan_capable

    def validate(self, options: CollectorOptions) -> None:
        """Raise ``ConfigurationError`` if *options* cannot be honored."""
        return None

    @abc.abstractmethod
    def collect(self, options: CollectorOptions) -> Iterable[RawEntry]:
        """
        Query the source.

        Args:
            options: Read-only scan options

        Returns:
            Raw entries, one per installed item

        Raises:
            CollectorError: If the source could not be queried
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(source_id={self.source_id!r})"
