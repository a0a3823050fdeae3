"""Unit tests for the KQL parser."""

import pytest

from kqlsh.common.errors import QueryValidationError
from kqlsh.query import parse_query
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
)


@pytest.mark.unit
class TestSelectClause:
    """Test projection and topic parsing."""

    def test_minimal_query(self):
        """Test select * with no clauses uses every default."""
        query = parse_query("select * from quotes")

        assert query == KQLQuery(topic="quotes")
        assert query.select_all
        assert query.partitions == AllPartitions()
        assert query.offsets == OffsetBounds()

    def test_field_list(self):
        query = parse_query("select symbol, price, meta.venue from quotes")

        assert query.fields == ("symbol", "price", "meta.venue")
        assert not query.select_all

    def test_dotted_and_dashed_topic(self):
        assert parse_query("select * from shocktrade.quotes-v2").topic == "shocktrade.quotes-v2"

    def test_quoted_names(self):
        query = parse_query("select `last trade` from \"my topic\"")

        assert query.fields == ("last trade",)
        assert query.topic == "my topic"

    def test_keywords_are_case_insensitive(self):
        query = parse_query("SELECT * FROM quotes WHERE price > 1 LIMIT 5")

        assert query.limit == 5
        assert query.predicate == Comparison("price", Operator.GT, 1)

    def test_topic_case_is_preserved(self):
        assert parse_query("select * from Quotes").topic == "Quotes"


@pytest.mark.unit
class TestClauses:
    """Test with/partitions/offsets/limit clauses."""

    def test_with_format_and_schema(self):
        query = parse_query("select * from quotes with avro:file:schemas/quote.avsc")

        assert query.format == "avro:file:schemas/quote.avsc"

    def test_partition_list(self):
        assert parse_query("select * from t partitions 0, 2").partitions == PartitionSet(frozenset({0, 2}))

    def test_partition_range(self):
        assert parse_query("select * from t partitions 1..3").partitions == PartitionRange(1, 3)

    def test_offsets_to_latest(self):
        assert parse_query("select * from t offsets 10..latest").offsets == OffsetBounds(10, None)

    def test_offsets_from_earliest(self):
        assert parse_query("select * from t offsets earliest..100").offsets == OffsetBounds(None, 100)

    def test_explicit_offsets(self):
        assert parse_query("select * from t offsets 5..20").offsets == OffsetBounds(5, 20)

    def test_clauses_in_any_order(self):
        query = parse_query("select * from t limit 3 where x = 1 partitions 0 with json")

        assert query.limit == 3
        assert query.format == "json"
        assert query.partitions == PartitionSet(frozenset({0}))
        assert query.predicate == Comparison("x", Operator.EQ, 1)

    def test_partition_range_resolution(self):
        assert PartitionRange(1, 3).resolve({0, 1, 2, 3, 4}) == [1, 2, 3]


@pytest.mark.unit
class TestWhereClause:
    """Test predicate parsing and precedence."""

    def test_and_binds_tighter_than_or(self):
        query = parse_query("select * from t where a = 1 or b = 2 and c = 3")

        assert query.predicate == Or(
            Comparison("a", Operator.EQ, 1),
            And(Comparison("b", Operator.EQ, 2), Comparison("c", Operator.EQ, 3)),
        )

    def test_parentheses_override_precedence(self):
        query = parse_query("select * from t where (a = 1 or b = 2) and c = 3")

        assert query.predicate == And(
            Or(Comparison("a", Operator.EQ, 1), Comparison("b", Operator.EQ, 2)),
            Comparison("c", Operator.EQ, 3),
        )

    def test_not(self):
        query = parse_query("select * from t where not symbol = 'AAPL'")

        assert query.predicate == Not(Comparison("symbol", Operator.EQ, "AAPL"))

    @pytest.mark.parametrize(
        "text,op",
        [("=", Operator.EQ), ("==", Operator.EQ), ("!=", Operator.NE), ("<>", Operator.NE),
         ("<", Operator.LT), ("<=", Operator.LE), (">", Operator.GT), (">=", Operator.GE),
         ("like", Operator.LIKE)],
    )
    def test_operators(self, text, op):
        query = parse_query(f"select * from t where x {text} 'v'")

        assert query.predicate.op == op

    @pytest.mark.parametrize(
        "literal,value",
        [("42", 42), ("-3", -3), ("1.5", 1.5), ("'it''s'", "it's"), ('"AAPL"', "AAPL"),
         ("true", True), ("FALSE", False), ("null", None)],
    )
    def test_literals(self, literal, value):
        query = parse_query(f"select * from t where x = {literal}")

        assert query.predicate.value == value
        assert type(query.predicate.value) is type(value)


@pytest.mark.unit
class TestParseErrors:
    """Test that malformed queries raise QueryValidationError."""

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "select *",
            "select from t",
            "delete * from t",
            "select * from t where",
            "select * from t where x",
            "select * from t where x = ",
            "select * from t where (x = 1",
            "select * from t where x = 1;",
            "select * from t limit 1 limit 2",
            "select * from t limit -1",
            "select * from t limit 1.5",
            "select * from t partitions 3..1",
            "select * from t partitions -1",
            "select * from t offsets 10..5",
            "select * from t offsets 10",
            "select * from t order by x",
        ],
    )
    def test_invalid_queries(self, text):
        with pytest.raises(QueryValidationError):
            parse_query(text)

    def test_error_names_the_offending_token(self):
        with pytest.raises(QueryValidationError, match="Duplicate 'where' clause"):
            parse_query("select * from t where x = 1 where y = 2")
