"""
Tests for the recursive-descent parser and text interpolation.

These tests verify:
    - Operator precedence and associativity
    - Function calls and keyword literals
    - Deterministic re-parsing
    - ParseError reporting
    - Interpolated display text splitting
"""

import pytest

from surveylogic.errors import LexError, ParseError
from surveylogic.expressions import (
    BinaryExpression,
    BinaryOperator,
    FunctionCall,
    Literal,
    LogicalExpression,
    LogicalOperator,
    Reference,
    UnaryExpression,
    UnaryOperator,
)
from surveylogic.lexer import tokenize
from surveylogic.parser import (
    ExpressionParser,
    TextChunk,
    parse,
    parse_expression,
    parse_interpolated_text,
)


class TestPrimary:
    """Test leaves of the grammar."""

    def test_number(self):
        assert parse_expression("42") == Literal(42)

    def test_string(self):
        assert parse_expression("'Yes'") == Literal("Yes")

    def test_reference(self):
        assert parse_expression("{age}") == Reference("age")

    def test_keyword_literals(self):
        assert parse_expression("true") == Literal(True)
        assert parse_expression("FALSE") == Literal(False)
        assert parse_expression("null") == Literal(None)
        assert parse_expression("undefined") == Literal(None)

    def test_bare_identifier_is_reference(self):
        assert parse_expression("age") == Reference("age")

    def test_parenthesised_group(self):
        assert parse_expression("(1)") == Literal(1)


class TestPrecedence:
    """Test operator precedence and associativity."""

    def test_multiplication_binds_tighter_than_addition(self):
        node = parse_expression("1 + 2 * 3")
        assert node == BinaryExpression(
            BinaryOperator.ADD,
            Literal(1),
            BinaryExpression(BinaryOperator.MULTIPLY, Literal(2), Literal(3)),
        )

    def test_parentheses_override_precedence(self):
        node = parse_expression("(1 + 2) * 3")
        assert node.operator == BinaryOperator.MULTIPLY
        assert node.left.operator == BinaryOperator.ADD

    def test_subtraction_is_left_associative(self):
        node = parse_expression("10 - 4 - 3")
        assert node == BinaryExpression(
            BinaryOperator.SUBTRACT,
            BinaryExpression(BinaryOperator.SUBTRACT, Literal(10), Literal(4)),
            Literal(3),
        )

    def test_power_is_right_associative(self):
        node = parse_expression("2 ^ 3 ^ 2")
        assert node == BinaryExpression(
            BinaryOperator.POWER,
            Literal(2),
            BinaryExpression(BinaryOperator.POWER, Literal(3), Literal(2)),
        )

    def test_and_binds_tighter_than_or(self):
        node = parse_expression("{a} = 1 or {b} = 2 and {c} = 3")
        assert isinstance(node, LogicalExpression)
        assert node.operator == LogicalOperator.OR
        assert node.right.operator == LogicalOperator.AND

    def test_relational_binds_tighter_than_equality(self):
        node = parse_expression("{a} > 1 = true")
        assert node.operator == BinaryOperator.EQUALS
        assert node.left.operator == BinaryOperator.GREATER_THAN

    def test_comparison_binds_tighter_than_and(self):
        node = parse_expression("{age} >= 18 and {consent} = true")
        assert node.operator == LogicalOperator.AND
        assert node.left == BinaryExpression(BinaryOperator.GREATER_EQUAL, Reference("age"), Literal(18))

    def test_not_applies_to_following_unary(self):
        node = parse_expression("not {a} = 1")
        assert node.operator == BinaryOperator.EQUALS
        assert node.left == UnaryExpression(UnaryOperator.NOT, Reference("a"))

    def test_negation(self):
        assert parse_expression("-5") == UnaryExpression(UnaryOperator.NEGATE, Literal(5))

    def test_aliases_produce_same_tree(self):
        assert parse_expression("{a} == 1 && {b} <> 2") == parse_expression("{a} = 1 and {b} != 2")

    def test_contains_operator(self):
        node = parse_expression("{colors} contains 'red'")
        assert node == BinaryExpression(BinaryOperator.CONTAINS, Reference("colors"), Literal("red"))

    def test_postfix_empty(self):
        assert parse_expression("{a} empty") == UnaryExpression(UnaryOperator.EMPTY, Reference("a"))
        node = parse_expression("{a} notempty and {b} empty")
        assert node.operator == LogicalOperator.AND
        assert node.left.operator == UnaryOperator.NOT_EMPTY


class TestFunctionCalls:
    """Test function call syntax."""

    def test_call_with_arguments(self):
        node = parse_expression("sum({q1}, {q2})")
        assert node == FunctionCall("sum", (Reference("q1"), Reference("q2")))

    def test_call_without_arguments(self):
        assert parse_expression("today()") == FunctionCall("today", ())

    def test_nested_calls(self):
        node = parse_expression("iif({age} >= 18, 'adult', round({x}, 1))")
        assert node.name == "iif"
        assert len(node.arguments) == 3
        assert node.arguments[2] == FunctionCall("round", (Reference("x"), Literal(1)))

    def test_contains_called_as_function(self):
        node = parse_expression("contains({colors}, 'red')")
        assert node == FunctionCall("contains", (Reference("colors"), Literal("red")))


class TestDeterminism:
    """Re-parsing the same text yields a structurally identical tree."""

    @pytest.mark.parametrize("source", [
        "{age} >= 18",
        "sum({q1}, {q2}) * 2 - 1",
        "not ({a} = 'x' or {b} contains 3) and {c} notempty",
    ])
    def test_reparse_is_identical(self, source):
        assert parse(tokenize(source)) == parse(tokenize(source))
        assert ExpressionParser().parse_expression(source) == parse_expression(source)

    def test_cache_returns_same_tree(self):
        parser = ExpressionParser()
        assert parser.parse_expression("{a} = 1") is parser.parse_expression("{a} = 1")

    def test_parse_accepts_tokens_without_eof(self):
        tokens = [t for t in tokenize("1 + 1") if t.value is not None]
        assert parse(tokens) == parse_expression("1 + 1")


class TestParseErrors:
    """Test syntax errors."""

    def test_empty_expression(self):
        with pytest.raises(ParseError) as exc_info:
            parse_expression("   ")
        assert exc_info.value.position == 0

    def test_trailing_tokens(self):
        with pytest.raises(ParseError) as exc_info:
            parse_expression("1 2")
        assert exc_info.value.position == 2
        assert exc_info.value.expected == "end of expression"

    def test_missing_operand(self):
        with pytest.raises(ParseError):
            parse_expression("{a} >=")

    def test_unbalanced_parenthesis(self):
        with pytest.raises(ParseError) as exc_info:
            parse_expression("(1 + 2")
        assert exc_info.value.expected == "')'"

    def test_bad_argument_list(self):
        with pytest.raises(ParseError):
            parse_expression("sum(1 2)")

    def test_lex_errors_propagate(self):
        with pytest.raises(LexError):
            parse_expression("{a} = 'x")


class TestInterpolatedText:
    """Test display-text placeholder splitting."""

    def test_plain_text(self):
        assert parse_interpolated_text("Hello") == [TextChunk("Hello")]

    def test_references_and_chunks(self):
        parts = parse_interpolated_text("Hello {firstName}, you are {age} years old")
        assert parts == [
            TextChunk("Hello "),
            Reference("firstName"),
            TextChunk(", you are "),
            Reference("age"),
            TextChunk(" years old"),
        ]

    def test_adjacent_references(self):
        assert parse_interpolated_text("{a}{b}") == [Reference("a"), Reference("b")]

    def test_unclosed_brace_stays_literal(self):
        assert parse_interpolated_text("Price {amount") == [TextChunk("Price {amount")]

    def test_invalid_reference_stays_literal(self):
        assert parse_interpolated_text("a {} b") == [TextChunk("a {} b")]

    def test_empty_template(self):
        assert parse_interpolated_text("") == []
