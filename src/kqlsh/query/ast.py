"""KQL query model.

A parsed query is immutable. Partition selection and offset bounds are kept
symbolic (``earliest``/``latest``, all partitions) until the engine plans the
query against the live partition list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


@dataclass(frozen=True)
class AllPartitions:
    """Every partition of the topic."""

    def resolve(self, available: set[int]) -> list[int]:
        return sorted(available)


@dataclass(frozen=True)
class PartitionSet:
    """An explicit list of partitions."""

    partitions: frozenset[int]

    def resolve(self, available: set[int]) -> list[int]:
        return sorted(self.partitions)


@dataclass(frozen=True)
class PartitionRange:
    """Partitions ``first`` through ``last`` inclusive."""

    first: int
    last: int

    def resolve(self, available: set[int]) -> list[int]:
        return list(range(self.first, self.last + 1))


PartitionSelector = Union[AllPartitions, PartitionSet, PartitionRange]


@dataclass(frozen=True)
class OffsetBounds:
    """Offset range ``[start, end)``; None means earliest / latest."""

    start: Optional[int] = None
    end: Optional[int] = None

    def __str__(self) -> str:
        start = "earliest" if self.start is None else str(self.start)
        end = "latest" if self.end is None else str(self.end)
        return f"{start}..{end}"


class Operator(str, Enum):
    """Comparison operators."""

    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    LIKE = "like"


@dataclass(frozen=True)
class Comparison:
    """``field op literal``."""

    field: str
    op: Operator
    value: Any

    def __str__(self) -> str:
        return f"{self.field} {self.op.value} {self.value!r}"


@dataclass(frozen=True)
class And:
    left: Predicate
    right: Predicate

    def __str__(self) -> str:
        return f"({self.left} and {self.right})"


@dataclass(frozen=True)
class Or:
    left: Predicate
    right: Predicate

    def __str__(self) -> str:
        return f"({self.left} or {self.right})"


@dataclass(frozen=True)
class Not:
    operand: Predicate

    def __str__(self) -> str:
        return f"not {self.operand}"


Predicate = Union[Comparison, And, Or, Not]


@dataclass(frozen=True)
class KQLQuery:
    """A parsed ``select`` statement.

    Attributes:
        topic: Source topic
        fields: Projected field paths; empty means every field (``*``)
        partitions: Partition selector
        offsets: Offset bounds applied to every selected partition
        predicate: Filter expression (None matches everything)
        format: Declared message format spec (None uses the session default)
        limit: Maximum records returned
    """

    topic: str
    fields: tuple[str, ...] = ()
    partitions: PartitionSelector = field(default_factory=AllPartitions)
    offsets: OffsetBounds = field(default_factory=OffsetBounds)
    predicate: Optional[Predicate] = None
    format: Optional[str] = None
    limit: Optional[int] = None

    @property
    def select_all(self) -> bool:
        return not self.fields
