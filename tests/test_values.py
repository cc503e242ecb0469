"""
Tests for the value model and coercion table.
"""

import operator

import pytest

from surveylogic.errors import EvalError, EvalErrorKind
from surveylogic.values import (
    ValueKind,
    compare,
    is_empty,
    is_truthy,
    kind_of,
    normalize_number,
    parse_number,
    to_number,
    to_text,
    values_equal,
)


class TestKinds:

    @pytest.mark.parametrize("value,kind", [
        (None, ValueKind.UNDEFINED),
        (True, ValueKind.BOOLEAN),
        (3, ValueKind.NUMBER),
        (2.5, ValueKind.NUMBER),
        ("x", ValueKind.TEXT),
        (["a"], ValueKind.SEQUENCE),
        ({"a": 1}, ValueKind.STRUCTURED),
    ])
    def test_kind_of(self, value, kind):
        assert kind_of(value) == kind


class TestNumbers:

    def test_parse_number(self):
        assert parse_number("42") == 42
        assert parse_number(" 3.5 ") == 3.5
        assert parse_number("abc") is None
        assert parse_number("") is None
        assert parse_number("nan") is None

    def test_normalize_number(self):
        assert normalize_number(7.0) == 7
        assert isinstance(normalize_number(7.0), int)
        assert normalize_number(7.5) == 7.5

    def test_to_number(self):
        assert to_number("12") == 12
        assert to_number(True) == 1
        assert to_number(False) == 0

    def test_to_number_rejects_text(self):
        with pytest.raises(EvalError) as exc_info:
            to_number("abc")
        assert exc_info.value.kind == EvalErrorKind.TYPE_MISMATCH

    def test_to_number_rejects_undefined(self):
        with pytest.raises(EvalError):
            to_number(None)


class TestText:

    @pytest.mark.parametrize("value,text", [
        (None, ""),
        (True, "true"),
        (False, "false"),
        (30, "30"),
        (7.0, "7"),
        (["a", "b"], "a, b"),
        ("Ana", "Ana"),
    ])
    def test_to_text(self, value, text):
        assert to_text(value) == text

    @pytest.mark.parametrize("value,short,exact", [
        (10 ** 5000, "1.0e+5000", "1" + "0" * 5000),
        (-123 * 10 ** 5000, "-1.23e+5002", "-123" + "0" * 5000),
    ], ids=["huge-positive", "huge-negative"])
    def test_to_text_of_huge_integer(self, value, short, exact):
        # interpreters with an int-to-str digit limit fall back to exponent form
        assert to_text(value) in (short, exact)


class TestTruthiness:

    @pytest.mark.parametrize("value", [None, "", [], {}, 0, False])
    def test_falsy(self, value):
        assert not is_truthy(value)

    @pytest.mark.parametrize("value", ["no", [0], 1, -1, True, {"a": 1}])
    def test_truthy(self, value):
        assert is_truthy(value)

    def test_is_empty(self):
        assert is_empty(None)
        assert is_empty("")
        assert is_empty([])
        assert not is_empty(0)
        assert not is_empty(False)


class TestEquality:

    def test_undefined_equals_only_undefined(self):
        assert values_equal(None, None)
        assert not values_equal(None, "")
        assert not values_equal(0, None)

    def test_number_and_numeric_text(self):
        assert values_equal(18, "18")
        assert values_equal("3.0", 3)

    def test_text_is_case_sensitive(self):
        assert values_equal("Other", "Other")
        assert not values_equal("other", "Other")

    def test_boolean_against_text(self):
        assert values_equal(True, "true")
        assert values_equal("False", False)
        assert not values_equal(True, "yes")

    def test_boolean_against_number(self):
        assert values_equal(True, 1)
        assert not values_equal(False, 1)

    def test_sequences_compare_as_sets(self):
        assert values_equal(["a", "b"], ["b", "a"])
        assert values_equal([1, 2], ["2", "1"])
        assert not values_equal(["a"], ["a", "b"])

    def test_structured(self):
        assert values_equal({"a": 1}, {"a": 1})
        assert not values_equal({"a": 1}, {"a": 2})


class TestCompare:

    def test_undefined_is_never_ordered(self):
        assert not compare(None, 18, operator.ge)
        assert not compare(None, 18, operator.lt)

    def test_numeric(self):
        assert compare("18", 18, operator.ge)
        assert compare(9, 10, operator.lt)

    def test_text_fallback(self):
        assert compare("b", "a", operator.gt)
        # two text values compare lexicographically
        assert compare("10", "9", operator.lt)
