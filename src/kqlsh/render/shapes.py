"""Result shapes understood by the renderer.

Command handlers return plain values; ``classify`` maps them onto a closed
set of shapes. Handlers may also return the wrapper shapes directly:

- Success(value): an explicit successful outcome, rendered as its value
- Failure(error): an outcome carrying an exception, re-raised on render
- Maybe(value): an optional value, rendered only when present
- Table(rows, caption): records with a caption line
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from pydantic import BaseModel


@dataclass(frozen=True)
class Nothing:
    pass


@dataclass(frozen=True)
class Scalar:
    value: Any


@dataclass(frozen=True)
class Lines:
    values: tuple[Any, ...]


@dataclass(frozen=True)
class Records:
    rows: tuple[Mapping[str, Any], ...]


@dataclass(frozen=True)
class Success:
    value: Any


@dataclass(frozen=True)
class Failure:
    error: BaseException


@dataclass(frozen=True)
class Maybe:
    value: Optional[Any] = None


@dataclass(frozen=True)
class Table:
    rows: Sequence[Any]
    caption: str = ""


Shape = Union[Nothing, Scalar, Lines, Records, Success, Failure, Maybe, Table]

_SHAPES = (Nothing, Scalar, Lines, Records, Success, Failure, Maybe, Table)


def is_structured(value: Any) -> bool:
    return (
        isinstance(value, (Mapping, BaseModel))
        or (dataclasses.is_dataclass(value) and not isinstance(value, type))
    )


def to_row(value: Any) -> dict[str, Any]:
    """Field view of a structured value (mapping, dataclass or pydantic model)."""
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, BaseModel):
        return value.model_dump()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        # shallow: nested values render as cells
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    raise TypeError(f"Not a structured value: {type(value).__name__}")


def classify(value: Any) -> Shape:
    """Map an arbitrary handler result onto a shape."""
    if isinstance(value, _SHAPES):
        return value
    if value is None:
        return Nothing()
    if isinstance(value, (str, bytes, bytearray, int, float)):
        return Scalar(value)
    if is_structured(value):
        return Records((to_row(value),))
    if isinstance(value, Iterable):
        items = tuple(value)
        if not items:
            return Nothing()
        if all(is_structured(item) for item in items):
            return Records(tuple(to_row(item) for item in items))
        return Lines(items)
    return Scalar(value)
