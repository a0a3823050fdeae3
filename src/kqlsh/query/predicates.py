"""Predicate evaluation and projection over decoded records.

Comparisons are typed: both sides must be the same scalar kind (number,
string or boolean), otherwise the comparison is false. There is no coercion,
so ``price = '100'`` never matches a numeric price. A field missing from the
record makes every comparison on it false.
"""

import re
from decimal import Decimal
from functools import lru_cache
from typing import Any, Mapping, Optional

from kqlsh.query.ast import And, Comparison, Not, Operator, Or, Predicate

_MISSING = object()


def lookup(record: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted field path, returning ``_MISSING`` when absent.

    A key containing the literal path (dots included) takes precedence over
    descending into nested records.
    """
    if path in record:
        return record[path]

    value: Any = record
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _kind(value: Any) -> Optional[str]:
    # bool is an int subclass and must be checked first
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, str):
        return "string"
    return None


@lru_cache(maxsize=256)
def _like_pattern(pattern: str) -> re.Pattern:
    regex = "".join(
        ".*" if c == "%" else "." if c == "_" else re.escape(c)
        for c in pattern
    )
    return re.compile(regex, re.DOTALL)


def _compare(comparison: Comparison, record: Mapping[str, Any]) -> bool:
    actual = lookup(record, comparison.field)
    if actual is _MISSING:
        return False

    expected = comparison.value
    op = comparison.op

    if expected is None:
        if op is Operator.EQ:
            return actual is None
        if op is Operator.NE:
            return actual is not None
        return False

    kind = _kind(actual)
    if kind is None or kind != _kind(expected):
        return False

    if op is Operator.LIKE:
        return kind == "string" and _like_pattern(expected).fullmatch(actual) is not None
    if op is Operator.EQ:
        return actual == expected
    if op is Operator.NE:
        return actual != expected
    if kind == "bool":
        # booleans have equality only
        return False
    if op is Operator.LT:
        return actual < expected
    if op is Operator.LE:
        return actual <= expected
    if op is Operator.GT:
        return actual > expected
    if op is Operator.GE:
        return actual >= expected
    raise ValueError(f"Unsupported operator: {op}")


def evaluate(predicate: Predicate, record: Mapping[str, Any]) -> bool:
    """Evaluate a predicate tree against a record (short-circuiting)."""
    match predicate:
        case Comparison():
            return _compare(predicate, record)
        case And(left=left, right=right):
            return evaluate(left, record) and evaluate(right, record)
        case Or(left=left, right=right):
            return evaluate(left, record) or evaluate(right, record)
        case Not(operand=operand):
            return not evaluate(operand, record)
    raise TypeError(f"Not a predicate: {predicate!r}")


def project(record: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    """Select fields from a record; an empty selection keeps every field.

    Projected fields missing from the record are returned as None.
    """
    if not fields:
        return dict(record)

    projected = {}
    for path in fields:
        value = lookup(record, path)
        projected[path] = None if value is _MISSING else value
    return projected
