"""Thread-safe I/O accounting for message scans.

An IOCounter is shared by every partition worker of a single query. Each
field only ever increases; ``snapshot()`` gives a point-in-time copy that
can be rendered or handed to the observation surface.
"""

import threading
import time
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class IOSnapshot:
    """Point-in-time copy of an IOCounter."""

    messages: int
    bytes: int
    errors: int
    elapsed_seconds: float

    @property
    def rate(self) -> float:
        """Messages read per second since the counter was created."""
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.messages / self.elapsed_seconds

    def to_dict(self) -> dict:
        data = asdict(self)
        data["rate"] = round(self.rate, 2)
        return data


class IOCounter:
    """Accumulates messages read, bytes read and errors.

    All operations take the same lock, so increments from concurrent
    scan workers are never lost.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages = 0
        self._bytes = 0
        self._errors = 0
        self._started = time.perf_counter()

    def increment_messages(self, n: int = 1) -> None:
        self._check(n)
        with self._lock:
            self._messages += n

    def increment_bytes(self, n: int) -> None:
        self._check(n)
        with self._lock:
            self._bytes += n

    def increment_errors(self, n: int = 1) -> None:
        self._check(n)
        with self._lock:
            self._errors += n

    def snapshot(self) -> IOSnapshot:
        with self._lock:
            return IOSnapshot(
                messages=self._messages,
                bytes=self._bytes,
                errors=self._errors,
                elapsed_seconds=time.perf_counter() - self._started,
            )

    @staticmethod
    def _check(n: int) -> None:
        # counters are monotonic
        if n < 0:
            raise ValueError(f"Counter increments must be non-negative, got {n}")
