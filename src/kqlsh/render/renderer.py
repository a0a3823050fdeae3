"""Console rendering of command results (rich)."""

import json
from typing import Any, Mapping, Optional, Sequence, assert_never

from rich import box
from rich.console import Console
from rich.table import Table as RichTable

from kqlsh.render.shapes import (
    Failure,
    Lines,
    Maybe,
    Nothing,
    Records,
    Scalar,
    Success,
    Table,
    classify,
    to_row,
)


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex(" ")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def headers_of(rows: Sequence[Mapping[str, Any]]) -> list[str]:
    """Union of field names across rows, in first-seen order."""
    headers: dict[str, None] = {}
    for row in rows:
        for key in row:
            headers.setdefault(key, None)
    return list(headers)


class Renderer:
    """Prints command results to a rich console.

    Args:
        console: Target console (stdout by default)
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def render(self, value: Any) -> None:
        shape = classify(value)
        match shape:
            case Nothing():
                pass
            case Scalar(value=scalar):
                self._line(format_cell(scalar))
            case Lines(values=values):
                for item in values:
                    self._line(format_cell(item))
            case Records(rows=rows):
                self._table(rows)
            case Success(value=inner):
                self.render(inner)
            case Failure(error=error):
                raise error
            case Maybe(value=inner):
                if inner is not None:
                    self.render(inner)
            case Table(rows=rows, caption=caption):
                self._table([to_row(row) for row in rows], caption)
            case _:
                assert_never(shape)

    def _line(self, text: str) -> None:
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def _table(self, rows: Sequence[Mapping[str, Any]], caption: str = "") -> None:
        table = RichTable(box=box.SIMPLE_HEAVY)
        headers = headers_of(rows)
        for header in headers:
            table.add_column(header, overflow="fold")
        for row in rows:
            table.add_row(*(format_cell(row.get(header)) for header in headers))
        self.console.print(table)
        # printed separately: rich folds captions to the table width
        if caption:
            self._line(caption)
