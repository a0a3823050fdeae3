"""KQL parser.

Grammar (keywords are case-insensitive, clauses after ``from`` may appear in
any order, each at most once):

    select <field[, field...] | *> from <topic>
        [with <format>]
        [partitions <n>[, <n>...] | partitions <a>..<b>]
        [offsets <start|earliest>..<end|latest>]
        [where <expr>]
        [limit <n>]

    expr    := term ("or" term)*
    term    := factor ("and" factor)*
    factor  := "not" factor | "(" expr ")" | field op literal
    op      := = | == | != | <> | < | <= | > | >= | like
    literal := integer | float | 'string' | "string" | true | false | null

Examples:
    select * from quotes where symbol = 'AAPL' and lastTrade >= 100 limit 10
    select symbol, price from "shocktrade.quotes" with avro:file:quote.avsc
        partitions 0..3 offsets 1000..latest
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from kqlsh.common.errors import QueryValidationError
from kqlsh.query.ast import (
    AllPartitions,
    And,
    Comparison,
    KQLQuery,
    Not,
    OffsetBounds,
    Operator,
    Or,
    PartitionRange,
    PartitionSet,
    PartitionSelector,
    Predicate,
)

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>'(?:[^'\\]|\\.|'')*'|"(?:[^"\\]|\\.|"")*")
  | (?P<quoted_ident>`[^`]*`)
  | (?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<range>\.\.)
  | (?P<op><=|>=|<>|!=|==|=|<|>)
  | (?P<punct>[(),*])
  | (?P<ident>[A-Za-z_](?:[\w\-:/]|\.(?!\.))*)
    """,
    re.VERBOSE,
)

_OPERATORS = {
    "=": Operator.EQ,
    "==": Operator.EQ,
    "!=": Operator.NE,
    "<>": Operator.NE,
    "<": Operator.LT,
    "<=": Operator.LE,
    ">": Operator.GT,
    ">=": Operator.GE,
}

_CLAUSES = ("with", "partitions", "offsets", "where", "limit")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int

    def keyword(self) -> Optional[str]:
        return self.text.lower() if self.kind == "ident" else None


def tokenize(text: str) -> list[Token]:
    tokens = []
    position = 0
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            raise QueryValidationError(f"Unexpected character {text[position]!r} at position {position}")
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), position))
        position = match.end()
    return tokens


def _unquote(text: str) -> str:
    quote = text[0]
    body = text[1:-1]
    if quote == "`":
        return body
    body = body.replace(quote * 2, quote)
    return re.sub(r"\\(.)", r"\1", body)


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    # token helpers

    def peek(self) -> Optional[Token]:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise QueryValidationError("Unexpected end of query")
        self.index += 1
        return token

    def at_keyword(self, *keywords: str) -> bool:
        token = self.peek()
        return token is not None and token.keyword() in keywords

    def expect_keyword(self, keyword: str) -> Token:
        token = self.peek()
        if token is None or token.keyword() != keyword:
            raise self.error(f"Expected '{keyword}'", token)
        return self.advance()

    def at_punct(self, symbol: str) -> bool:
        token = self.peek()
        return token is not None and token.kind == "punct" and token.text == symbol

    def expect_punct(self, symbol: str) -> Token:
        if not self.at_punct(symbol):
            raise self.error(f"Expected '{symbol}'", self.peek())
        return self.advance()

    def error(self, message: str, token: Optional[Token]) -> QueryValidationError:
        if token is None:
            return QueryValidationError(f"{message} but the query ended")
        return QueryValidationError(f"{message} near '{token.text}' (position {token.position})")

    # grammar

    def parse(self) -> KQLQuery:
        self.expect_keyword("select")
        fields = self.parse_projection()
        self.expect_keyword("from")
        topic = self.parse_name("topic")

        clauses: dict[str, Any] = {}
        while self.peek() is not None:
            token = self.peek()
            clause = token.keyword()
            if clause not in _CLAUSES:
                raise self.error("Expected one of " + ", ".join(_CLAUSES), token)
            if clause in clauses:
                raise self.error(f"Duplicate '{clause}' clause", token)
            self.advance()
            clauses[clause] = getattr(self, f"parse_{clause}")()

        return KQLQuery(
            topic=topic,
            fields=fields,
            partitions=clauses.get("partitions", AllPartitions()),
            offsets=clauses.get("offsets", OffsetBounds()),
            predicate=clauses.get("where"),
            format=clauses.get("with"),
            limit=clauses.get("limit"),
        )

    def parse_projection(self) -> tuple[str, ...]:
        if self.at_punct("*"):
            self.advance()
            return ()

        fields = [self.parse_name("field")]
        while self.at_punct(","):
            self.advance()
            fields.append(self.parse_name("field"))
        return tuple(fields)

    def parse_name(self, what: str) -> str:
        token = self.peek()
        if token is None:
            raise self.error(f"Expected a {what} name", token)
        if token.kind == "ident":
            return self.advance().text
        if token.kind in ("string", "quoted_ident"):
            return _unquote(self.advance().text)
        raise self.error(f"Expected a {what} name", token)

    def parse_with(self) -> str:
        return self.parse_name("format")

    def parse_limit(self) -> int:
        limit = self.parse_int("limit")
        if limit < 0:
            raise QueryValidationError("limit must not be negative")
        return limit

    def parse_int(self, what: str) -> int:
        token = self.peek()
        if token is None or token.kind != "number" or not re.fullmatch(r"-?\d+", token.text):
            raise self.error(f"Expected an integer {what}", token)
        return int(self.advance().text)

    def parse_partitions(self) -> PartitionSelector:
        first = self.parse_int("partition")
        if self.peek() is not None and self.peek().kind == "range":
            self.advance()
            last = self.parse_int("partition")
            if first < 0 or last < first:
                raise QueryValidationError(f"Invalid partition range {first}..{last}")
            return PartitionRange(first, last)

        partitions = [first]
        while self.at_punct(","):
            self.advance()
            partitions.append(self.parse_int("partition"))
        if any(p < 0 for p in partitions):
            raise QueryValidationError("Partitions must not be negative")
        return PartitionSet(frozenset(partitions))

    def parse_offsets(self) -> OffsetBounds:
        if self.at_keyword("earliest"):
            self.advance()
            start = None
        else:
            start = self.parse_int("start offset")

        token = self.peek()
        if token is None or token.kind != "range":
            raise self.error("Expected '..' in offset range", token)
        self.advance()

        if self.at_keyword("latest"):
            self.advance()
            end = None
        else:
            end = self.parse_int("end offset")

        if start is not None and start < 0:
            raise QueryValidationError("Start offset must not be negative")
        if start is not None and end is not None and end < start:
            raise QueryValidationError(f"Invalid offset range {start}..{end}")
        return OffsetBounds(start, end)

    def parse_where(self) -> Predicate:
        return self.parse_or()

    def parse_or(self) -> Predicate:
        node = self.parse_and()
        while self.at_keyword("or"):
            self.advance()
            node = Or(node, self.parse_and())
        return node

    def parse_and(self) -> Predicate:
        node = self.parse_factor()
        while self.at_keyword("and"):
            self.advance()
            node = And(node, self.parse_factor())
        return node

    def parse_factor(self) -> Predicate:
        if self.at_keyword("not"):
            self.advance()
            return Not(self.parse_factor())

        if self.at_punct("("):
            self.advance()
            node = self.parse_or()
            self.expect_punct(")")
            return node

        field = self.parse_name("field")
        op = self.parse_operator()
        return Comparison(field, op, self.parse_literal())

    def parse_operator(self) -> Operator:
        token = self.peek()
        if token is not None and token.kind == "op":
            return _OPERATORS[self.advance().text]
        if token is not None and token.keyword() == "like":
            self.advance()
            return Operator.LIKE
        raise self.error("Expected a comparison operator", token)

    def parse_literal(self) -> Any:
        token = self.peek()
        if token is None:
            raise self.error("Expected a value", token)

        if token.kind == "string":
            return _unquote(self.advance().text)

        if token.kind == "number":
            text = self.advance().text
            if re.fullmatch(r"-?\d+", text):
                return int(text)
            return float(text)

        keyword = token.keyword()
        if keyword in ("true", "false"):
            self.advance()
            return keyword == "true"
        if keyword == "null":
            self.advance()
            return None

        raise self.error("Expected a value", token)


def parse_query(text: str) -> KQLQuery:
    """Parse a KQL ``select`` statement.

    Raises:
        QueryValidationError: If the text is not a valid query
    """
    if not text or not text.strip():
        raise QueryValidationError("Empty query")
    return _Parser(text).parse()
