"""File sinks.

Both sinks write to a temporary file next to the target and rename it into
place, so a failed export never leaves a truncated file behind.
"""

import csv
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Mapping, TextIO

from kqlsh.common.errors import SinkError
from kqlsh.render import headers_of
from kqlsh.sinks.base import OutputSink, json_default, to_text


def _atomic_write(path: Path, write: Callable[[TextIO], None]) -> None:
    directory = path.parent
    if not directory.is_dir():
        raise SinkError(f"Directory '{directory}' does not exist")

    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            write(handle)
        os.replace(temp_name, path)
    except (OSError, TypeError, ValueError) as e:
        Path(temp_name).unlink(missing_ok=True)
        raise SinkError(f"Cannot write '{path}': {e}") from e


class JsonLinesSink(OutputSink):
    kind = "jsonl"

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @property
    def target(self) -> str:
        return str(self.path)

    def _write(self, rows: list[Mapping[str, Any]]) -> int:
        def write(handle: TextIO) -> None:
            for row in rows:
                handle.write(json.dumps(dict(row), default=json_default))
                handle.write("\n")

        _atomic_write(self.path, write)
        return len(rows)


class CsvSink(OutputSink):
    kind = "csv"

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @property
    def target(self) -> str:
        return str(self.path)

    def _write(self, rows: list[Mapping[str, Any]]) -> int:
        headers = headers_of(rows)

        def write(handle: TextIO) -> None:
            writer = csv.writer(handle)
            writer.writerow(headers)
            for row in rows:
                writer.writerow([to_text(row.get(h)) for h in headers])

        _atomic_write(self.path, write)
        return len(rows)
