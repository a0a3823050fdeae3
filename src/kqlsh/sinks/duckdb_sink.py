"""DuckDB table sink.

Rows are appended to a table, created on first export with column types
inferred from the rows. A whole batch is inserted in one transaction.
"""

import re
from typing import Any, Mapping

import duckdb

from kqlsh.common.errors import SinkError
from kqlsh.render import headers_of
from kqlsh.sinks.base import OutputSink, to_text

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def _column_type(values: list[Any]) -> str:
    kinds = set()
    for value in values:
        if value is None:
            continue
        if isinstance(value, bool):
            kinds.add("BOOLEAN")
        elif isinstance(value, int):
            kinds.add("BIGINT")
        elif isinstance(value, float):
            kinds.add("DOUBLE")
        elif isinstance(value, (bytes, bytearray)):
            kinds.add("BLOB")
        else:
            kinds.add("VARCHAR")

    if kinds == {"BIGINT", "DOUBLE"}:
        return "DOUBLE"
    if len(kinds) == 1:
        return kinds.pop()
    return "VARCHAR"


def _cell(value: Any, column_type: str) -> Any:
    if value is None:
        return None
    if column_type == "VARCHAR":
        return value if isinstance(value, str) else to_text(value)
    if column_type == "BLOB":
        return bytes(value)
    return value


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class DuckDBSink(OutputSink):
    """Appends rows to a DuckDB table.

    Args:
        database: DuckDB database file (``:memory:`` for an in-memory database)
        table: Table name
        connection: Existing connection to use instead of opening ``database``
    """

    kind = "duckdb"

    def __init__(self, database: str, table: str, connection: duckdb.DuckDBPyConnection | None = None):
        if not _IDENTIFIER.fullmatch(table):
            raise SinkError(f"Invalid table name '{table}'")
        self.database = database
        self.table = table
        self._connection = connection

    @property
    def target(self) -> str:
        return f"duckdb:{self.database}#{self.table}"

    def _write(self, rows: list[Mapping[str, Any]]) -> int:
        if not rows:
            return 0

        headers = headers_of(rows)
        types = {h: _column_type([row.get(h) for row in rows]) for h in headers}
        columns = ", ".join(f"{_quote(h)} {types[h]}" for h in headers)
        names = ", ".join(_quote(h) for h in headers)
        placeholders = ", ".join("?" for _ in headers)
        values = [[_cell(row.get(h), types[h]) for h in headers] for row in rows]

        owned = self._connection is None
        try:
            conn = self._connection or duckdb.connect(self.database)
        except duckdb.Error as e:
            raise SinkError(f"Cannot open DuckDB database '{self.database}': {e}") from e

        try:
            conn.begin()
            try:
                conn.execute(f"CREATE TABLE IF NOT EXISTS {_quote(self.table)} ({columns})")
                conn.executemany(
                    f"INSERT INTO {_quote(self.table)} ({names}) VALUES ({placeholders})", values,
                )
                conn.commit()
            except duckdb.Error as e:
                conn.rollback()
                raise SinkError(f"Cannot write to table '{self.table}': {e}") from e
        finally:
            if owned:
                conn.close()

        return len(rows)
