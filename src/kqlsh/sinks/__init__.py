"""Output sinks for exporting query results.

Every sink writes a batch of rows all-or-nothing: a failed export leaves the
target as it was.

- JsonLinesSink: one JSON document per line (``*.jsonl``, ``*.json``)
- CsvSink: header plus rows (``*.csv``)
- DuckDBSink: rows appended to a table (``duckdb:<path>``)

Usage:
    from kqlsh.sinks import open_sink

    sink = open_sink("quotes.csv")
    written = sink.write_rows(result.rows())
"""

from typing import Optional

from kqlsh.common.errors import SinkError
from kqlsh.sinks.base import OutputSink
from kqlsh.sinks.duckdb_sink import DuckDBSink
from kqlsh.sinks.files import CsvSink, JsonLinesSink

DEFAULT_TABLE = "kql_results"


def open_sink(target: str, table: Optional[str] = None) -> OutputSink:
    """Pick a sink for an export target.

    Raises:
        SinkError: If the target type is not recognized
    """
    if target.startswith("duckdb:"):
        path = target[len("duckdb:"):]
        if not path:
            raise SinkError("duckdb target needs a database path, e.g. duckdb:results.db")
        return DuckDBSink(path, table or DEFAULT_TABLE)

    if table is not None:
        raise SinkError("A table name only applies to duckdb targets")

    lowered = target.lower()
    if lowered.endswith((".jsonl", ".json")):
        return JsonLinesSink(target)
    if lowered.endswith(".csv"):
        return CsvSink(target)
    raise SinkError(f"Unsupported export target '{target}' (use *.jsonl, *.csv or duckdb:<path>)")


__all__ = ["CsvSink", "DuckDBSink", "JsonLinesSink", "OutputSink", "open_sink"]
