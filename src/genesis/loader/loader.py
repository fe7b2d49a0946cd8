"""Replay a finished graph into a store.

Ordering contract:
- Collections are processed one at a time, in declaration order. A
  collection's properties are saved before any of its records.
- Within a collection at most ``concurrency`` records are in flight; no
  order is promised between them.
- Within a record, one read fetches the causal context, then every
  variant is written strictly in declaration order, each carrying that
  same vclock and its own links.

Store failures are logged and collected on the returned
:class:`LoadReport`; processing continues unless ``fail_fast`` is set.
Stopping (on failure or timeout) happens at record boundaries: a record
that has started always attempts all of its variants.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from genesis.loader.batching import run_bounded
from genesis.observability.logging import get_logger
from genesis.store.base import ObjectNotFoundError, SaveMeta

if TYPE_CHECKING:
    from genesis.graph.model import Collection, Graph, Record
    from genesis.store.base import StoreClient

log = get_logger(__name__)

DEFAULT_CONCURRENCY = 4

FailureStage = Literal["configure", "read", "save", "record"]


@dataclass
class LoadOptions:
    """Knobs for one load run.

    Attributes:
        verbose: Log every variant write at INFO instead of DEBUG.
        concurrency: Records in flight per collection (minimum 1).
        fail_fast: Stop starting new records after the first failure and
            raise LoadAbortedError once in-flight records finish.
        timeout: Seconds after which no new records are started.
    """

    verbose: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    fail_fast: bool = False
    timeout: float | None = None


@dataclass(frozen=True)
class LoadFailure:
    """One store failure observed during a load."""

    collection: str
    key: str | None
    variant_index: int | None
    stage: FailureStage
    error: Exception

    def describe(self) -> str:
        target = self.collection if self.key is None else f"{self.collection}/{self.key}"
        if self.variant_index is not None:
            target += f"#{self.variant_index}"
        return f"{self.stage} {target}: {self.error}"


@dataclass
class LoadReport:
    """Outcome of a load run."""

    collections_configured: int = 0
    collections_processed: int = 0
    records_read: int = 0
    variants_saved: int = 0
    records_skipped: int = 0
    timed_out: bool = False
    aborted: bool = False
    failures: list[LoadFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class LoadAbortedError(Exception):
    """Raised by a fail-fast load after its first store failure."""

    def __init__(self, report: LoadReport) -> None:
        self.report = report
        first = report.failures[0].describe() if report.failures else "unknown failure"
        super().__init__(f"Load aborted after failure: {first}")


class _Run:
    """Mutable state shared by the tasks of one load."""

    def __init__(self, store: StoreClient, options: LoadOptions) -> None:
        self.store = store
        self.options = options
        self.report = LoadReport()
        self._loop = asyncio.get_running_loop()
        self._deadline = (
            self._loop.time() + options.timeout if options.timeout is not None else None
        )

    def should_stop(self) -> bool:
        if self.report.aborted:
            return True
        if self._deadline is not None and self._loop.time() >= self._deadline:
            self.report.timed_out = True
            return True
        return False

    def fail(self, failure: LoadFailure) -> None:
        self.report.failures.append(failure)
        log.error(
            "store_failure",
            stage=failure.stage,
            collection=failure.collection,
            key=failure.key,
            variant=failure.variant_index,
            error=str(failure.error),
        )
        if self.options.fail_fast:
            self.report.aborted = True

    async def configure(self, collection: Collection) -> None:
        try:
            await self.store.save_collection(collection.name, collection.properties)
        except Exception as e:
            self.fail(LoadFailure(collection.name, None, None, "configure", e))
            return
        self.report.collections_configured += 1

    async def load_record(self, record: Record) -> None:
        try:
            stored = await self.store.get(record.collection, record.key)
            vclock = stored.vclock
        except ObjectNotFoundError:
            vclock = None
        except Exception as e:
            self.fail(LoadFailure(record.collection, record.key, None, "read", e))
            return
        self.report.records_read += 1

        for index, variant in enumerate(record.variants):
            event = log.info if self.options.verbose else log.debug
            event(
                "saving_variant",
                collection=record.collection,
                key=record.key,
                variant=index,
                links=len(variant.links),
            )
            meta = SaveMeta(links=tuple(variant.links), vclock=vclock)
            try:
                await self.store.save(record.collection, record.key, variant.payload, meta)
            except Exception as e:
                self.fail(LoadFailure(record.collection, record.key, index, "save", e))
                continue
            self.report.variants_saved += 1


async def load(
    graph: Graph,
    store: StoreClient,
    options: LoadOptions | None = None,
) -> LoadReport:
    """Write every collection, record and variant of *graph* into *store*.

    Returns:
        LoadReport with counters and every store failure observed.

    Raises:
        LoadAbortedError: If ``options.fail_fast`` is set and any store
            call failed. The partial report is attached to the error.
    """
    options = options or LoadOptions()
    run = _Run(store, options)
    report = run.report

    for collection in graph.collections.values():
        records = list(collection.records.values())
        if run.should_stop():
            report.records_skipped += len(records)
            continue

        log.info("loading_collection", collection=collection.name, records=len(records))
        if collection.properties:
            await run.configure(collection)

        _, skipped, errors = await run_bounded(
            records,
            run.load_record,
            options.concurrency,
            should_stop=run.should_stop,
        )
        # load_record reports store errors itself; anything left escaped it.
        for index, error in errors:
            record = records[index]
            run.fail(LoadFailure(record.collection, record.key, None, "record", error))
        report.records_skipped += len(skipped)
        report.collections_processed += 1

    log.info(
        "load_complete",
        collections=report.collections_processed,
        records=report.records_read,
        variants=report.variants_saved,
        failures=len(report.failures),
        skipped=report.records_skipped,
    )

    if report.aborted:
        raise LoadAbortedError(report)
    return report
