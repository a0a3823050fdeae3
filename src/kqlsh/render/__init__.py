"""Result rendering."""

from kqlsh.render.renderer import Renderer, format_cell, headers_of
from kqlsh.render.shapes import Failure, Maybe, Success, Table, classify

__all__ = [
    "Failure",
    "Maybe",
    "Renderer",
    "Success",
    "Table",
    "classify",
    "format_cell",
    "headers_of",
]
