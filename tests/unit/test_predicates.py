"""Unit tests for predicate evaluation and projection."""

import pytest

from kqlsh.query.ast import And, Comparison, Not, Operator, Or
from kqlsh.query.predicates import evaluate, lookup, project


def eq(field, value):
    return Comparison(field, Operator.EQ, value)


@pytest.mark.unit
class TestLookup:
    """Test field path resolution."""

    def test_nested_path(self):
        assert lookup({"meta": {"venue": "XNAS"}}, "meta.venue") == "XNAS"

    def test_literal_dotted_key_wins(self):
        record = {"meta.venue": "literal", "meta": {"venue": "nested"}}

        assert lookup(record, "meta.venue") == "literal"

    def test_project_missing_field_is_none(self):
        assert project({"a": 1}, ("a", "b", "c.d")) == {"a": 1, "b": None, "c.d": None}

    def test_project_all_copies(self):
        record = {"a": 1}
        projected = project(record, ())

        assert projected == record
        assert projected is not record


@pytest.mark.unit
class TestComparisons:
    """Test typed comparisons."""

    RECORD = {"symbol": "AAPL", "price": 100, "ratio": 0.5, "active": True, "note": None}

    def test_string_equality(self):
        assert evaluate(eq("symbol", "AAPL"), self.RECORD)
        assert not evaluate(eq("symbol", "MSFT"), self.RECORD)

    def test_no_coercion_between_kinds(self):
        """A numeric field never equals a string literal."""
        assert not evaluate(eq("price", "100"), self.RECORD)
        assert not evaluate(Comparison("price", Operator.NE, "100"), self.RECORD)

    def test_int_and_float_compare_as_numbers(self):
        assert evaluate(eq("price", 100.0), self.RECORD)
        assert evaluate(Comparison("ratio", Operator.LT, 1), self.RECORD)

    @pytest.mark.parametrize(
        "op,value,expected",
        [(Operator.LT, 101, True), (Operator.LE, 100, True), (Operator.GT, 100, False),
         (Operator.GE, 100, True), (Operator.NE, 99, True)],
    )
    def test_ordering(self, op, value, expected):
        assert evaluate(Comparison("price", op, value), self.RECORD) is expected

    def test_boolean_is_not_a_number(self):
        assert not evaluate(eq("active", 1), self.RECORD)
        assert evaluate(eq("active", True), self.RECORD)
        assert not evaluate(Comparison("active", Operator.GT, False), self.RECORD)

    def test_missing_field_never_matches(self):
        assert not evaluate(eq("volume", 1), self.RECORD)
        assert not evaluate(Comparison("volume", Operator.NE, 1), self.RECORD)

    def test_null_comparisons(self):
        assert evaluate(eq("note", None), self.RECORD)
        assert not evaluate(Comparison("note", Operator.NE, None), self.RECORD)
        assert evaluate(Comparison("symbol", Operator.NE, None), self.RECORD)
        assert not evaluate(eq("volume", None), self.RECORD)

    @pytest.mark.parametrize(
        "pattern,expected",
        [("AA%", True), ("_APL", True), ("%PL", True), ("A", False), ("XAAPL", False), ("a%", False)],
    )
    def test_like(self, pattern, expected):
        assert evaluate(Comparison("symbol", Operator.LIKE, pattern), self.RECORD) is expected

    def test_like_escapes_regex_characters(self):
        assert evaluate(Comparison("s", Operator.LIKE, "a.c"), {"s": "a.c"})
        assert not evaluate(Comparison("s", Operator.LIKE, "a.c"), {"s": "abc"})

    def test_like_on_number_is_false(self):
        assert not evaluate(Comparison("price", Operator.LIKE, "1%"), self.RECORD)


@pytest.mark.unit
class TestBooleanOperators:
    """Test and/or/not combination."""

    RECORD = {"symbol": "AAPL", "qty": 10}

    def test_and(self):
        assert evaluate(And(eq("symbol", "AAPL"), eq("qty", 10)), self.RECORD)
        assert not evaluate(And(eq("symbol", "AAPL"), eq("qty", 11)), self.RECORD)

    def test_or(self):
        assert evaluate(Or(eq("symbol", "MSFT"), eq("qty", 10)), self.RECORD)
        assert not evaluate(Or(eq("symbol", "MSFT"), eq("qty", 11)), self.RECORD)

    def test_not_of_missing_field(self):
        """Negating a comparison on a missing field matches."""
        assert evaluate(Not(eq("volume", 1)), self.RECORD)

    def test_not_a_predicate(self):
        with pytest.raises(TypeError):
            evaluate("symbol = 'AAPL'", self.RECORD)
