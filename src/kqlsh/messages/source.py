"""Message source contract.

A message source is the query engine's only view of the log. All calls may
suspend on external I/O.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class FetchedMessage:
    """A message read from one partition at one offset."""

    partition: int
    offset: int
    value: bytes
    next_offset: int
    key: Optional[bytes] = None
    timestamp_ms: Optional[int] = None


class MessageSource(Protocol):
    """Capability interface over a partitioned log."""

    async def list_partitions(self, topic: str) -> set[int]:
        """Partition IDs of ``topic`` (empty when the topic does not exist)."""
        ...

    async def offset_bounds(self, topic: str, partition: int) -> tuple[int, int]:
        """``(earliest, latest)`` where latest is the high-water mark (exclusive)."""
        ...

    async def fetch(self, topic: str, partition: int, offset: int) -> Optional[FetchedMessage]:
        """Read the message at ``offset``, or the next one after a gap.

        Returns None at the end of the partition.

        Raises:
            FetchError: If the partition cannot be read
        """
        ...
