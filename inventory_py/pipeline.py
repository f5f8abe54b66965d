"""
Aggregation pipeline for app-inventory.

Validates the configuration, runs every enabled collector concurrently
under its own deadline, funnels their output through the filter chain into
the aggregation store, then sorts and summarizes the settled result on the
calling thread.
"""

import concurrent.futures
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from inventory_py.collectors import BaseCollector, CollectorError
from inventory_py.config import CollectorOptions, ConfigurationError, InventoryConfig
from inventory_py.filters import FilterChain
from inventory_py.ranking import sort_records
from inventory_py.record import InvalidRecordError, Record, Snapshot
from inventory_py.registry import CollectorRegistry, SourceSelection
from inventory_py.store import AggregationStore
from inventory_py.summary import Summary, summarize

logger = logging.getLogger("inventory.pipeline")


@dataclass(frozen=True)
class CollectorFailure:
    """A source that yielded zero records because it failed or timed out."""

    source: str
    reason: str


@dataclass(frozen=True)
class InventoryResult:
    """Outcome of one pipeline run."""

    records: Tuple[Record, ...]
    summary: Summary
    selection: SourceSelection
    failures: Tuple[CollectorFailure, ...] = ()
    duration: float = 0.0

    def snapshot(self) -> Snapshot:
        return Snapshot.of(self.records)


def normalize(collector: BaseCollector, options: CollectorOptions) -> List[Record]:
    """Run *collector* and convert its raw entries into records.

    Entries that fail validation are dropped.
    """
    records: List[Record] = []
    for entry in collector.collect(options):
        try:
            records.append(Record.from_raw(entry))
        except InvalidRecordError as e:
            logger.debug(f"Dropped entry from '{collector.source_id}': {e}")
    return records


class InventoryPipeline:
    """Runs one inventory scan for a registry and configuration."""

    def __init__(self, registry: CollectorRegistry, config: InventoryConfig):
        self.registry = registry
        self.config = config
        self.filters = FilterChain(
            search=config.search, orphans_only=config.orphans_only
        )

    def prepare(self) -> Tuple[SourceSelection, CollectorOptions]:
        """
        Validate the configuration and resolve the enabled sources.

        Raises:
            ConfigurationError: Before any collector has run.
        """
        self.config.validate()
        selection = self.registry.enabled_sources(self.config)
        options = CollectorOptions.from_config(self.config, selection.enabled)

        for source_id in selection.enabled:
            self.registry.get(source_id).validate(options)

        if self.config.orphans_only and not self.registry.orphan_sources(
            selection, options
        ):
            raise ConfigurationError(
                "Orphans-only mode requires an orphan-capable source "
                "(pacman repo or AUR) to be enabled"
            )
        return selection, options

    def collect(
        self,
        selection: SourceSelection,
        options: CollectorOptions,
        store: AggregationStore,
    ) -> List[CollectorFailure]:
        """
        Run the enabled collectors concurrently and fill *store*.

        Worker threads cannot be killed. A collector that misses its deadline
        is abandoned, and its remaining commands are refused once the deadline
        passes, so the process can exit shortly after the last deadline.
        """
        if not selection.enabled:
            logger.warning("No sources enabled; nothing to scan")
            return []

        failures: List[CollectorFailure] = []
        futures: Dict[concurrent.futures.Future, str] = {}
        deadlines: Dict[concurrent.futures.Future, float] = {}
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=len(selection.enabled), thread_name_prefix="collector"
        )
        try:
            for source_id in selection.enabled:
                timeout = self.config.timeout_for(source_id)
                deadline = time.monotonic() + timeout
                future = executor.submit(
                    normalize,
                    self.registry.get(source_id),
                    options.for_source(timeout, deadline),
                )
                futures[future] = source_id
                deadlines[future] = deadline
                logger.debug(f"Started collector '{source_id}' (timeout {timeout}s)")

            for future in sorted(futures, key=lambda f: deadlines[f]):
                source_id = futures[future]
                failure = self._settle(future, source_id, deadlines[future], store)
                if failure:
                    logger.warning(f"Source '{source_id}' skipped: {failure.reason}")
                    failures.append(failure)
        finally:
            # Abandoned collectors keep running in the background; their
            # output is never read.
            executor.shutdown(wait=False, cancel_futures=True)

        logger.debug(f"Live counters after collection: {store.type_counts()}")
        return failures

    def _settle(
        self,
        future: concurrent.futures.Future,
        source_id: str,
        deadline: float,
        store: AggregationStore,
    ) -> Optional[CollectorFailure]:
        remaining = max(0.0, deadline - time.monotonic())
        try:
            records = future.result(timeout=remaining)
        except concurrent.futures.TimeoutError:
            future.cancel()
            timeout = self.config.timeout_for(source_id)
            return CollectorFailure(source_id, f"timed out after {timeout:g}s")
        except CollectorError as e:
            return CollectorFailure(source_id, str(e))
        except Exception as e:
            logger.debug(f"Collector '{source_id}' raised", exc_info=True)
            return CollectorFailure(source_id, f"unexpected error: {e}")

        accepted = [record for record in records if self.filters.accepts(record)]
        store.extend(accepted)
        logger.debug(
            f"Source '{source_id}': {len(records)} found, {len(accepted)} accepted"
        )
        return None

    def run(self) -> InventoryResult:
        """Scan every enabled source and return the sorted, summarized result."""
        started = time.monotonic()
        selection, options = self.prepare()
        logger.info(f"Scanning sources: {', '.join(selection.enabled) or '(none)'}")

        store = AggregationStore()
        failures = self.collect(selection, options, store)

        records = tuple(sort_records(store.snapshot()))
        summary = summarize(records)
        if summary.total == 0:
            logger.warning("No packages found after filtering")

        return InventoryResult(
            records=records,
            summary=summary,
            selection=selection,
            failures=tuple(failures),
            duration=time.monotonic() - started,
        )
