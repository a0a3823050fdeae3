"""KQL - query language for selecting and filtering messages.

Components:
- parse_query: KQL text to an immutable KQLQuery
- QueryEngine: plans and runs queries against a MessageSource
- KQLResult: ordered matches plus scan statistics

Usage:
    from kqlsh.query import QueryEngine

    engine = QueryEngine(source)
    result = await engine.execute("select * from quotes where price > 100 limit 5")
    for row in result.rows():
        print(row)
"""

from kqlsh.query.ast import KQLQuery
from kqlsh.query.engine import CancellationToken, QueryEngine, QueryExecution, QueryState
from kqlsh.query.parser import parse_query
from kqlsh.query.result import DecodeFailure, KQLResult, MatchedRecord

__all__ = [
    "CancellationToken",
    "DecodeFailure",
    "KQLQuery",
    "KQLResult",
    "MatchedRecord",
    "QueryEngine",
    "QueryExecution",
    "QueryState",
    "parse_query",
]
