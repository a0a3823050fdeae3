"""KQL query results."""

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping, Optional

from kqlsh.common.io_counter import IOSnapshot


@dataclass(frozen=True)
class MatchedRecord:
    """A matching message, after projection."""

    partition: int
    offset: int
    format: str
    fields: Mapping[str, Any]

    def to_row(self) -> dict[str, Any]:
        return {"partition": self.partition, "offset": self.offset, **self.fields}


@dataclass(frozen=True)
class DecodeFailure:
    """A scanned message whose payload did not decode."""

    partition: int
    offset: int
    format: str
    error: str


@dataclass(frozen=True)
class KQLResult:
    """Outcome of one query execution.

    Records are ordered by partition, then offset. ``partition_errors`` maps
    each partition that could not be fully scanned to the error that stopped
    it. A cancelled (or timed-out) query still carries every record found
    before it stopped.
    """

    topic: str
    records: tuple[MatchedRecord, ...]
    scanned_count: int
    matched_count: int
    elapsed_seconds: float
    counters: IOSnapshot
    partition_errors: Mapping[int, str] = field(default_factory=dict)
    decode_failures: tuple[DecodeFailure, ...] = ()
    cancelled: bool = False
    timed_out: bool = False
    limit: Optional[int] = None

    @property
    def partial_partitions(self) -> frozenset[int]:
        return frozenset(self.partition_errors)

    @property
    def complete(self) -> bool:
        return not (self.cancelled or self.partition_errors)

    def rows(self) -> list[dict[str, Any]]:
        return [record.to_row() for record in self.records]

    def summary(self) -> str:
        parts = [
            f"{len(self.records)} record(s)",
            f"{self.matched_count} matched of {self.scanned_count} scanned",
            f"{self.elapsed_seconds * 1000:.1f} ms",
        ]
        if self.counters.errors:
            parts.append(f"{self.counters.errors} error(s)")
        if self.partition_errors:
            parts.append("partial partitions: " + ", ".join(str(p) for p in sorted(self.partition_errors)))
        if self.timed_out:
            parts.append("timed out")
        elif self.cancelled:
            parts.append("cancelled")
        return "; ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "records": self.rows(),
            "scanned_count": self.scanned_count,
            "matched_count": self.matched_count,
            "elapsed_seconds": self.elapsed_seconds,
            "counters": self.counters.to_dict(),
            "partial_partitions": {str(p): e for p, e in sorted(self.partition_errors.items())},
            "decode_failures": [asdict(f) for f in self.decode_failures],
            "cancelled": self.cancelled,
            "timed_out": self.timed_out,
            "limit": self.limit,
        }
