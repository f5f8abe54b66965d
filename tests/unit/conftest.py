"""Shared fixtures for the unit tests."""

import threading
from typing import Callable, Iterable, List, Optional, Sequence

import pytest

from inventory_py.collectors import BaseCollector
from inventory_py.config import CollectorOptions
from inventory_py.record import RawEntry


class FakeCollector(BaseCollector):
    """In-memory collector with scripted entries, failures and delays."""

    def __init__(
        self,
        source_id: str,
        entries: Sequence[RawEntry] = (),
        available: bool = True,
        default_enabled: bool = True,
        orphan_capable: bool = False,
        aliases: Sequence[str] = (),
        error: Optional[BaseException] = None,
        block: Optional[threading.Event] = None,
        delay: float = 0.0,
    ):
        self.source_id = source_id
        self.label = source_id.title()
        self.entries = list(entries)
        self.available = available
        self.default_enabled = default_enabled
        self.orphan_capable = orphan_capable
        self.aliases = tuple(aliases)
        self.record_types = tuple(sorted({e.type for e in self.entries}))
        self.error = error
        self.block = block
        self.delay = delay
        self.calls: List[CollectorOptions] = []

    def is_available(self) -> bool:
        return self.available

    def collect(self, options: CollectorOptions) -> Iterable[RawEntry]:
        self.calls.append(options)
        if self.block is not None:
            self.block.wait(10)
        if self.delay:
            threading.Event().wait(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.entries)


@pytest.fixture
def make_collector() -> Callable[..., FakeCollector]:
    """Factory fixture building ``FakeCollector`` instances."""
    return FakeCollector


@pytest.fixture
def release() -> Iterable[threading.Event]:
    """An event that unblocks abandoned collectors when the test ends."""
    event = threading.Event()
    yield event
    event.set()
