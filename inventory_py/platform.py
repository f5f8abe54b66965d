"""
Host helpers for app-inventory.

Centralizes the sanitized subprocess environment and the memoized
"command exists" lookup so collectors never touch ``shutil.which`` or
``os.environ`` directly.
"""

import logging
import os
import shlex
import shutil
import subprocess
import threading
from typing import Dict, List, Optional

logger = logging.getLogger("inventory.platform")

SAFE_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"


class CommandCache:
    """Thread-safe memo of ``shutil.which`` lookups for one process run."""

    def __init__(self, path: str = SAFE_PATH):
        self.path = path
        self._paths: Dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

    def which(self, command: str) -> Optional[str]:
        with self._lock:
            if command in self._paths:
                return self._paths[command]
        resolved = shutil.which(command, path=self.path)
        with self._lock:
            # First writer wins; the lookup is deterministic within a run.
            return self._paths.setdefault(command, resolved)

    def exists(self, command: str) -> bool:
        return self.which(command) is not None

    def clear(self) -> None:
        with self._lock:
            self._paths.clear()


_cache = CommandCache()


def command_exists(command: str) -> bool:
    """Return True when *command* is on the sanitized PATH."""
    return _cache.exists(command)


def which(command: str) -> Optional[str]:
    """Return the resolved path of *command* on the sanitized PATH."""
    return _cache.which(command)


def reset_command_cache() -> None:
    """Forget every memoized lookup."""
    _cache.clear()


def sanitized_env(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Return a copy of the environment with ``PATH`` pinned to ``SAFE_PATH``."""
    env = os.environ.copy()
    env["PATH"] = SAFE_PATH
    env.setdefault("LC_ALL", "C")
    if extra:
        env.update(extra)
    return env


def run_command(
    args: List[str],
    timeout: float,
    env: Optional[Dict[str, str]] = None,
    check: bool = True,
) -> str:
    """
    Run an external command and return its stdout.

    Args:
        args: Command and arguments
        timeout: Seconds before the process is killed
        env: Extra environment variables on top of the sanitized environment
        check: Raise on a non-zero exit

    Raises:
        subprocess.CalledProcessError: On a non-zero exit when *check* is set
        subprocess.TimeoutExpired: When *timeout* elapses
        FileNotFoundError: When the command is missing
    """
    cmd_str = " ".join(shlex.quote(str(arg)) for arg in args)
    logger.debug(f"Running command: {cmd_str}")

    result = subprocess.run(
        args,
        capture_output=True,
        text=True,
        check=check,
        timeout=timeout,
        env=sanitized_env(env),
        stdin=subprocess.DEVNULL,
        errors="replace",
    )
    return result.stdout or ""
