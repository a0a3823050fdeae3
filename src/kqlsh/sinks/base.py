"""Output sink contract."""

import json
from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from kqlsh.common.logging import get_logger
from kqlsh.common.metrics import create_component_metrics

logger = get_logger(__name__, component="sinks")
metrics = create_component_metrics("sinks")


def json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return str(value)


def to_text(value: Any) -> str:
    """Flat text form of a cell value."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, default=json_default)
    return str(value)


class OutputSink(ABC):
    """Writes rows to an external target."""

    kind: str = ""

    def write_rows(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Write all rows, or none of them.

        Returns:
            Number of rows written

        Raises:
            SinkError: If the rows could not be written
        """
        rows = list(rows)
        written = self._write(rows)
        metrics.increment("rows_exported_total", value=written, labels={"sink": self.kind})
        logger.info("Rows exported", sink=self.kind, target=self.target, rows=written)
        return written

    @property
    @abstractmethod
    def target(self) -> str:
        ...

    @abstractmethod
    def _write(self, rows: list[Mapping[str, Any]]) -> int:
        ...
