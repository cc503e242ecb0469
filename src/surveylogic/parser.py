"""
Recursive-descent parser for logic expressions.

Builds an expression AST from a token stream. Operator precedence,
highest first:

expression     → or_expr
or_expr        → and_expr (("or" | "||") and_expr)*
and_expr       → equality (("and" | "&&") equality)*
equality       → relational (("=" | "!=") relational)*
relational     → additive ((< | > | <= | >= | contains | notcontains) additive
                           | empty | notempty)*
additive       → multiplicative (("+" | "-") multiplicative)*
multiplicative → exponent (("*" | "/" | "%") exponent)*
exponent       → unary ("^" exponent)?            (right-associative)
unary          → ("not" | "!" | "-") unary | primary
primary        → NUMBER | STRING | REFERENCE | "(" expression ")"
               | IDENTIFIER "(" arguments? ")"
               | IDENTIFIER                       (true/false/null or bare reference)

Also parses interpolated display text ("Hello {firstName}") into literal
chunks and references.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from surveylogic.errors import ParseError
from surveylogic.expressions import (
    BinaryExpression,
    BinaryOperator,
    Expression,
    FunctionCall,
    Literal,
    LogicalExpression,
    LogicalOperator,
    Reference,
    UnaryExpression,
    UnaryOperator,
    is_valid_reference_path,
)
from surveylogic.lexer import ExpressionLexer, Token, TokenKind

_EQUALITY_OPS = {
    "=": BinaryOperator.EQUALS,
    "!=": BinaryOperator.NOT_EQUALS,
}

_RELATIONAL_OPS = {
    "<": BinaryOperator.LESS_THAN,
    ">": BinaryOperator.GREATER_THAN,
    "<=": BinaryOperator.LESS_EQUAL,
    ">=": BinaryOperator.GREATER_EQUAL,
    "contains": BinaryOperator.CONTAINS,
    "notcontains": BinaryOperator.NOT_CONTAINS,
}

_POSTFIX_OPS = {
    "empty": UnaryOperator.EMPTY,
    "notempty": UnaryOperator.NOT_EMPTY,
}

_ADDITIVE_OPS = {
    "+": BinaryOperator.ADD,
    "-": BinaryOperator.SUBTRACT,
}

_MULTIPLICATIVE_OPS = {
    "*": BinaryOperator.MULTIPLY,
    "/": BinaryOperator.DIVIDE,
    "%": BinaryOperator.MODULO,
}

_CALLABLE_OPERATORS = {"contains", "notcontains"}

_KEYWORD_LITERALS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}


class ExpressionParser:
    """
    Recursive-descent parser.

    Turns a token list into an AST, respecting precedence and grouping.
    One instance may be reused; each ``parse`` call resets its state.
    """

    def __init__(self, lexer: Optional[ExpressionLexer] = None):
        self.lexer = lexer or ExpressionLexer()
        self._tokens: List[Token] = []
        self._position = 0
        self._cache: Dict[str, Expression] = {}

    def parse_expression(self, text: str) -> Expression:
        """
        Tokenize and parse ``text``.

        Results are cached by source text. Parsing is pure, so a cached
        node is structurally identical to a fresh one.

        Raises:
            LexError: on tokenization failure
            ParseError: on syntax error
        """
        cached = self._cache.get(text)
        if cached is not None:
            return cached
        node = self.parse(self.lexer.tokenize(text))
        self._cache[text] = node
        return node

    def parse(self, tokens: Sequence[Token]) -> Expression:
        """
        Parse a token sequence (as produced by the lexer) into an AST.

        Raises:
            ParseError: on syntax error
        """
        self._tokens = list(tokens)
        if not self._tokens or self._tokens[-1].kind != TokenKind.EOF:
            end = self._tokens[-1].position + len(self._tokens[-1].text) if self._tokens else 0
            self._tokens.append(Token(TokenKind.EOF, "", end))
        self._position = 0

        if self._is_at_end():
            raise ParseError("Empty expression", 0, "an expression")

        result = self._parse_or()

        if not self._is_at_end():
            current = self._current_token()
            raise ParseError(f"Unexpected token '{current.text}'", current.position, "end of expression")

        return result

    def _parse_or(self) -> Expression:
        left = self._parse_and()
        while self._match_operator("or"):
            right = self._parse_and()
            left = LogicalExpression(LogicalOperator.OR, left, right)
        return left

    def _parse_and(self) -> Expression:
        left = self._parse_equality()
        while self._match_operator("and"):
            right = self._parse_equality()
            left = LogicalExpression(LogicalOperator.AND, left, right)
        return left

    def _parse_equality(self) -> Expression:
        left = self._parse_relational()
        while True:
            op = self._match_any(_EQUALITY_OPS)
            if op is None:
                return left
            left = BinaryExpression(op, left, self._parse_relational())

    def _parse_relational(self) -> Expression:
        left = self._parse_additive()
        while True:
            postfix = self._match_any(_POSTFIX_OPS)
            if postfix is not None:
                left = UnaryExpression(postfix, left)
                continue
            op = self._match_any(_RELATIONAL_OPS)
            if op is None:
                return left
            left = BinaryExpression(op, left, self._parse_additive())

    def _parse_additive(self) -> Expression:
        left = self._parse_multiplicative()
        while True:
            op = self._match_any(_ADDITIVE_OPS)
            if op is None:
                return left
            left = BinaryExpression(op, left, self._parse_multiplicative())

    def _parse_multiplicative(self) -> Expression:
        left = self._parse_exponent()
        while True:
            op = self._match_any(_MULTIPLICATIVE_OPS)
            if op is None:
                return left
            left = BinaryExpression(op, left, self._parse_exponent())

    def _parse_exponent(self) -> Expression:
        base = self._parse_unary()
        if self._match_operator("^"):
            exponent = self._parse_exponent()
            return BinaryExpression(BinaryOperator.POWER, base, exponent)
        return base

    def _parse_unary(self) -> Expression:
        if self._match_operator("not"):
            return UnaryExpression(UnaryOperator.NOT, self._parse_unary())
        if self._match_operator("-"):
            return UnaryExpression(UnaryOperator.NEGATE, self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        token = self._current_token()

        if token.kind == TokenKind.NUMBER or token.kind == TokenKind.STRING:
            self._advance()
            return Literal(token.value)

        if token.kind == TokenKind.REFERENCE:
            self._advance()
            return Reference(token.value)

        if self._match_punctuation("("):
            expr = self._parse_or()
            if not self._match_punctuation(")"):
                raise ParseError("Expected ')' after grouped expression", self._current_position(), "')'")
            return expr

        # contains(...) / notcontains(...) are also callable as functions
        if token.kind == TokenKind.OPERATOR and token.value in _CALLABLE_OPERATORS and self._peek_is("("):
            self._advance()
            self._advance()
            return FunctionCall(token.value, tuple(self._parse_arguments()))

        if token.kind == TokenKind.IDENTIFIER:
            self._advance()
            if self._match_punctuation("("):
                return FunctionCall(token.value, tuple(self._parse_arguments()))
            lowered = token.value.lower()
            if lowered in _KEYWORD_LITERALS:
                return Literal(_KEYWORD_LITERALS[lowered])
            if not is_valid_reference_path(token.value):
                raise ParseError(f"Invalid reference '{token.text}'", token.position, "a question name")
            return Reference(token.value)

        if token.kind == TokenKind.EOF:
            raise ParseError("Unexpected end of expression", token.position, "an operand")
        raise ParseError(f"Unexpected token '{token.text}'", token.position, "an operand")

    def _parse_arguments(self) -> List[Expression]:
        arguments: List[Expression] = []
        if self._match_punctuation(")"):
            return arguments
        while True:
            arguments.append(self._parse_or())
            if self._match_punctuation(")"):
                return arguments
            if not self._match_punctuation(","):
                raise ParseError(
                    "Expected ',' or ')' in argument list", self._current_position(), "',' or ')'"
                )

    # Token helpers

    def _current_token(self) -> Token:
        if self._position >= len(self._tokens):
            return self._tokens[-1]
        return self._tokens[self._position]

    def _current_position(self) -> int:
        return self._current_token().position

    def _is_at_end(self) -> bool:
        return self._current_token().kind == TokenKind.EOF

    def _advance(self) -> Token:
        token = self._current_token()
        if not self._is_at_end():
            self._position += 1
        return token

    def _peek_is(self, symbol: str) -> bool:
        if self._position + 1 >= len(self._tokens):
            return False
        nxt = self._tokens[self._position + 1]
        return nxt.kind == TokenKind.PUNCTUATION and nxt.value == symbol

    def _match_operator(self, value: str) -> bool:
        current = self._current_token()
        if current.kind == TokenKind.OPERATOR and current.value == value:
            self._advance()
            return True
        return False

    def _match_any(self, table):
        current = self._current_token()
        if current.kind == TokenKind.OPERATOR and current.value in table:
            self._advance()
            return table[current.value]
        return None

    def _match_punctuation(self, symbol: str) -> bool:
        current = self._current_token()
        if current.kind == TokenKind.PUNCTUATION and current.value == symbol:
            self._advance()
            return True
        return False


@dataclass(frozen=True)
class TextChunk:
    """Literal text between placeholders in an interpolated string."""

    text: str


TemplatePart = Union[TextChunk, Reference]


def parse_interpolated_text(source: str) -> List[TemplatePart]:
    """
    Split display text into literal chunks and ``{...}`` references.

    "Hello {firstName}!" -> [TextChunk("Hello "), Reference("firstName"), TextChunk("!")]

    Braces that do not enclose a valid reference path (or are never closed)
    are kept as literal text.
    """
    parts: List[TemplatePart] = []
    buffer: List[str] = []
    position = 0

    while position < len(source):
        start = source.find("{", position)
        if start < 0:
            buffer.append(source[position:])
            break
        end = source.find("}", start + 1)
        if end < 0:
            buffer.append(source[position:])
            break

        buffer.append(source[position:start])
        inner = source[start + 1:end].strip()
        if "{" not in inner and is_valid_reference_path(inner):
            if buffer:
                parts.append(TextChunk("".join(buffer)))
                buffer = []
            parts.append(Reference(inner))
            position = end + 1
        else:
            buffer.append("{")
            position = start + 1

    text = "".join(buffer)
    if text:
        parts.append(TextChunk(text))
    return _merge_chunks(parts)


def _merge_chunks(parts: List[TemplatePart]) -> List[TemplatePart]:
    merged: List[TemplatePart] = []
    for part in parts:
        if isinstance(part, TextChunk):
            if not part.text:
                continue
            if merged and isinstance(merged[-1], TextChunk):
                merged[-1] = TextChunk(merged[-1].text + part.text)
                continue
        merged.append(part)
    return merged


def parse(tokens: Sequence[Token]) -> Expression:
    """Parse a token sequence with a fresh parser."""
    return ExpressionParser().parse(tokens)


def parse_expression(text: str) -> Expression:
    """Tokenize and parse ``text`` with a fresh parser."""
    return ExpressionParser().parse_expression(text)
