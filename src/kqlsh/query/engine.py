"""KQL query engine.

Executes parsed queries against a MessageSource:

- Planning: resolve partitions and offset bounds, build the codec
- Scanning: read each partition sequentially from start to end offset,
  decode every message and evaluate the predicate
- Aggregating: merge per-partition buffers in partition order

Partitions are scanned concurrently, bounded by ``max_workers``. Each scan
keeps its own ordered buffer, so the merged result is ordered by
(partition, offset) whatever order the scans finish in.

A fetch error stops only the partition it happened on; the partition is
reported in the result's ``partition_errors``. Cancellation (or an expired
timeout) stops new fetches and returns what was found so far.

Usage:
    from kqlsh.query.engine import QueryEngine

    engine = QueryEngine(source, CodecRegistry())
    result = await engine.execute("select * from quotes where symbol = 'AAPL'")

    # or, to keep a handle for cancellation
    execution = engine.start(query, timeout=30)
    result = await execution.run()
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from kqlsh.codecs import Codec, CodecRegistry, decode_message
from kqlsh.common.config import config
from kqlsh.common.errors import FetchError, QueryValidationError
from kqlsh.common.io_counter import IOCounter
from kqlsh.common.logging import get_logger
from kqlsh.common.metrics import create_component_metrics
from kqlsh.messages.source import MessageSource
from kqlsh.query.ast import KQLQuery
from kqlsh.query.parser import parse_query
from kqlsh.query.predicates import evaluate, project
from kqlsh.query.result import DecodeFailure, KQLResult, MatchedRecord

logger = get_logger(__name__, component="query")
metrics = create_component_metrics("query")


class QueryState(str, Enum):
    """Lifecycle of a query execution."""

    PLANNING = "planning"
    SCANNING = "scanning"
    AGGREGATING = "aggregating"
    COMPLETE = "complete"
    FAILED = "failed"


class CancellationToken:
    """Cooperative cancellation flag checked by scan workers between fetches."""

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True)
class PartitionPlan:
    """Offsets ``[start, end)`` to scan on one partition."""

    partition: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class QueryPlan:
    query: KQLQuery
    codec: Codec
    partitions: tuple[PartitionPlan, ...]
    unavailable: dict[int, str] = field(default_factory=dict)

    @property
    def expected_messages(self) -> int:
        return sum(p.size for p in self.partitions)


@dataclass
class _PartitionScan:
    """Mutable per-partition state, owned by exactly one worker."""

    partition: int
    scanned: int = 0
    matched: int = 0
    records: list[MatchedRecord] = field(default_factory=list)
    decode_failures: list[DecodeFailure] = field(default_factory=list)
    error: Optional[str] = None


class QueryExecution:
    """A single run of a query.

    Created by QueryEngine.start(); ``run()`` may be awaited once.
    """

    def __init__(
        self,
        query: KQLQuery,
        source: MessageSource,
        codecs: CodecRegistry,
        counter: IOCounter,
        token: CancellationToken,
        max_workers: int,
        format_spec: str,
        timeout: Optional[float] = None,
        max_decode_failures: int = 100,
    ):
        self.query = query
        self.source = source
        self.codecs = codecs
        self.counter = counter
        self.token = token
        self.max_workers = max_workers
        self.format_spec = format_spec
        self.timeout = timeout
        self.max_decode_failures = max_decode_failures
        self.state = QueryState.PLANNING
        self.query_id = uuid.uuid4().hex[:8]
        self.plan: Optional[QueryPlan] = None
        self._timed_out = False
        self._logger = logger.bind(query_id=self.query_id, topic=query.topic)

    def cancel(self, reason: str = "cancelled") -> None:
        """Stop issuing fetches; ``run()`` returns the partial result."""
        self.token.cancel(reason)

    def _expire(self) -> None:
        self._timed_out = True
        self._logger.info("Query timed out", timeout_seconds=self.timeout)
        self.token.cancel("timeout")

    async def run(self) -> KQLResult:
        started = time.perf_counter()
        try:
            self.plan = await self._plan()
            self.state = QueryState.SCANNING
            self._logger.info(
                "Scanning partitions",
                partitions=[p.partition for p in self.plan.partitions],
                expected_messages=self.plan.expected_messages,
                codec=repr(self.plan.codec),
            )

            expiry = None
            if self.timeout is not None:
                expiry = asyncio.get_running_loop().call_later(self.timeout, self._expire)

            semaphore = asyncio.Semaphore(self.max_workers)
            try:
                scans = await asyncio.gather(*(self._scan(p, semaphore) for p in self.plan.partitions))
            finally:
                if expiry is not None:
                    expiry.cancel()

            self.state = QueryState.AGGREGATING
            result = self._aggregate(scans, time.perf_counter() - started)
        except Exception:
            self.state = QueryState.FAILED
            metrics.increment("kql_queries_total", labels={"status": "failed"})
            raise

        self.state = QueryState.COMPLETE
        status = "cancelled" if result.cancelled else "complete"
        metrics.increment("kql_queries_total", labels={"status": status})
        metrics.histogram("kql_query_duration_seconds", result.elapsed_seconds)
        metrics.increment("messages_scanned_total", value=result.scanned_count, labels={"topic": self.query.topic})
        self._logger.info(
            "Query finished",
            status=status,
            scanned=result.scanned_count,
            matched=result.matched_count,
            partial_partitions=sorted(result.partial_partitions),
            elapsed_ms=round(result.elapsed_seconds * 1000, 1),
        )
        return result

    async def _plan(self) -> QueryPlan:
        query = self.query
        available = await self.source.list_partitions(query.topic)
        if not available:
            raise QueryValidationError(f"Topic '{query.topic}' not found")

        selected = query.partitions.resolve(available)
        unknown = sorted(set(selected) - available)
        if unknown:
            raise QueryValidationError(
                f"Unknown partition(s) {', '.join(map(str, unknown))} for topic '{query.topic}' "
                f"(partitions: {', '.join(map(str, sorted(available)))})"
            )

        codec = self.codecs.create(self.format_spec)

        plans = []
        unavailable: dict[int, str] = {}
        for partition in selected:
            try:
                earliest, latest = await self.source.offset_bounds(query.topic, partition)
            except FetchError as e:
                # a partition outage does not stop the rest of the query
                self.counter.increment_errors()
                unavailable[partition] = str(e)
                self._logger.warning("Cannot read partition offsets", partition=partition, error=str(e))
                continue

            # latest is captured here; messages produced during the scan are not chased
            start = earliest if query.offsets.start is None else max(query.offsets.start, earliest)
            end = latest if query.offsets.end is None else min(query.offsets.end, latest)
            plans.append(PartitionPlan(partition, start, max(start, end)))

        return QueryPlan(query, codec, tuple(plans), unavailable)

    async def _scan(self, plan: PartitionPlan, semaphore: asyncio.Semaphore) -> _PartitionScan:
        scan = _PartitionScan(plan.partition)
        query = self.query
        codec = self.plan.codec
        limit = query.limit

        async with semaphore:
            offset = plan.start
            while offset < plan.end:
                if self.token.cancelled:
                    break
                if limit is not None and scan.matched >= limit:
                    # later matches on this partition sort after these
                    break

                try:
                    message = await self.source.fetch(query.topic, plan.partition, offset)
                except FetchError as e:
                    self.counter.increment_errors()
                    scan.error = str(e)
                    metrics.increment("partition_fetch_errors_total", labels={"topic": query.topic})
                    self._logger.warning(
                        "Partition fetch failed", partition=plan.partition, offset=offset, error=str(e)
                    )
                    break

                if message is None or message.offset >= plan.end:
                    break

                self.counter.increment_messages()
                scan.scanned += 1

                decoded = decode_message(codec, message.value, self.counter)
                if not decoded.ok:
                    if len(scan.decode_failures) < self.max_decode_failures:
                        scan.decode_failures.append(
                            DecodeFailure(plan.partition, message.offset, decoded.format.value, decoded.error)
                        )
                else:
                    record = decoded.as_record()
                    if query.predicate is None or evaluate(query.predicate, record):
                        scan.matched += 1
                        scan.records.append(
                            MatchedRecord(
                                partition=plan.partition,
                                offset=message.offset,
                                format=decoded.format.value,
                                fields=project(record, query.fields),
                            )
                        )

                offset = max(message.next_offset, offset + 1)

        return scan

    def _aggregate(self, scans: list[_PartitionScan], elapsed: float) -> KQLResult:
        ordered = sorted(scans, key=lambda s: s.partition)

        records = [record for scan in ordered for record in scan.records]
        if self.query.limit is not None:
            records = records[: self.query.limit]

        partition_errors = dict(self.plan.unavailable)
        partition_errors.update({s.partition: s.error for s in ordered if s.error is not None})

        failures = [f for scan in ordered for f in scan.decode_failures][: self.max_decode_failures]

        return KQLResult(
            topic=self.query.topic,
            records=tuple(records),
            scanned_count=sum(s.scanned for s in ordered),
            matched_count=sum(s.matched for s in ordered),
            elapsed_seconds=elapsed,
            counters=self.counter.snapshot(),
            partition_errors=dict(sorted(partition_errors.items())),
            decode_failures=tuple(failures),
            cancelled=self.token.cancelled,
            timed_out=self._timed_out,
            limit=self.query.limit,
        )


class QueryEngine:
    """Plans and runs KQL queries against one message source.

    Args:
        source: Message source to read from
        codecs: Codec registry used to build each query's decoder
        max_workers: Partitions scanned concurrently (defaults to config)
        default_format: Format spec for queries without a ``with`` clause
        max_decode_failures: Decode failures listed per result
    """

    def __init__(
        self,
        source: MessageSource,
        codecs: Optional[CodecRegistry] = None,
        max_workers: Optional[int] = None,
        default_format: Optional[str] = None,
        max_decode_failures: Optional[int] = None,
    ):
        self.source = source
        self.codecs = codecs or CodecRegistry()
        self.max_workers = max_workers or config.query.max_workers
        self.default_format = default_format or config.query.default_format
        self.max_decode_failures = (
            config.query.max_decode_failures if max_decode_failures is None else max_decode_failures
        )

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    @staticmethod
    def parse(text: str) -> KQLQuery:
        return parse_query(text)

    def start(
        self,
        query: KQLQuery | str,
        counter: Optional[IOCounter] = None,
        token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
        default_format: Optional[str] = None,
    ) -> QueryExecution:
        """Prepare an execution without running it.

        Args:
            query: Parsed query or KQL text
            counter: Counter to accumulate I/O into (a new one by default)
            token: Cancellation token (a new one by default)
            timeout: Wall-clock budget in seconds; expiry acts as cancellation
            default_format: Format for this query when it has no ``with`` clause
        """
        if isinstance(query, str):
            query = parse_query(query)

        format_spec = query.format or default_format or self.default_format
        return QueryExecution(
            query=query,
            source=self.source,
            codecs=self.codecs,
            counter=counter or IOCounter(),
            token=token or CancellationToken(),
            max_workers=self.max_workers,
            format_spec=format_spec,
            timeout=timeout if timeout is not None else config.query.timeout_seconds,
            max_decode_failures=self.max_decode_failures,
        )

    async def execute(
        self,
        query: KQLQuery | str,
        counter: Optional[IOCounter] = None,
        token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
        default_format: Optional[str] = None,
    ) -> KQLResult:
        """Run a query to completion (or cancellation) and return its result."""
        execution = self.start(query, counter, token, timeout, default_format)
        return await execution.run()
