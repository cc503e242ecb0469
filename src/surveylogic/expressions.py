"""
Expression System for survey logic

Every logic property (visibleIf, requiredIf, setValueExpression, trigger
conditions, ...) is parsed once into an Abstract Syntax Tree and kept in
that form for the lifetime of the survey definition.

This ensures:
    - Parsing happens once, evaluation many times
    - Dependency analysis is a plain tree walk
    - Nodes can be cached and shared safely

ARCHITECTURAL RULE:
    Nodes are structure only.
    Evaluation belongs in the evaluator.
    Dependency collection belongs in the graph module.
"""

from __future__ import annotations

import re
from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple, Union

PathSegment = Union[str, int]

_SEGMENT_RE = re.compile(r"([^\s.\[\]{}]+)((?:\[\d+\])*)")
_INDEX_RE = re.compile(r"\[(\d+)\]")


class Expression(ABC):
    """
    Base class for all AST expressions.

    This is intentionally minimal.
    It exists to provide type-safety for the expression hierarchy.

    DO NOT:
        - Add evaluation logic here (belongs in the evaluator)
        - Add dependency logic here (belongs in the graph module)

    This class is structure only.
    """
    pass


class UnaryOperator(Enum):
    """
    Prefix and postfix unary operators.

    EMPTY / NOT_EMPTY come from the postfix ``empty`` / ``notempty``
    word operators (``{q1} empty``).
    """

    NOT = "!"
    NEGATE = "-"
    EMPTY = "empty"
    NOT_EMPTY = "notempty"


class BinaryOperator(Enum):
    """
    Non-short-circuit binary operators.

    Keep this minimal. Every operator here must be:
        - Meaningful in survey logic context
        - Unambiguous under the coercion rules in ``values``
    """

    # Arithmetic
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"
    POWER = "^"

    # Comparison
    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    GREATER_EQUAL = ">="
    LESS_THAN = "<"
    LESS_EQUAL = "<="

    # Text / sequence membership
    CONTAINS = "contains"
    NOT_CONTAINS = "notcontains"


class LogicalOperator(Enum):
    """Short-circuit operators. Kept apart from BinaryOperator on purpose."""

    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class Literal(Expression):
    """
    Represents a literal constant value.

    Examples:
        - 18
        - 3.5
        - 'Other'
        - true

    Properties:
        value: The literal value (int, float, str, bool or None)
    """

    value: Any


@dataclass(frozen=True)
class Reference(Expression):
    """
    References the current value of a question.

    Examples:
        - age            -> question "age"
        - colors[0]      -> first element of a multi-value answer
        - row.column     -> value inside a matrix row
        - panel.child    -> value inside a panel

    Properties:
        path: The reference text exactly as written between the braces

    IMPORTANT:
        This object does NOT check that the question exists.
        A reference to an unknown question simply resolves to undefined.
    """

    path: str

    @property
    def segments(self) -> Tuple[PathSegment, ...]:
        return split_reference_path(self.path)

    @property
    def root(self) -> str:
        """The question identifier this reference depends on."""
        return str(self.segments[0])


@dataclass(frozen=True)
class UnaryExpression(Expression):
    """
    Represents a unary operation.

    Example:
        !({q1} = 'Yes')

    Becomes:
        UnaryExpression(
            operator=UnaryOperator.NOT,
            operand=BinaryExpression(...)
        )
    """

    operator: UnaryOperator
    operand: Expression


@dataclass(frozen=True)
class BinaryExpression(Expression):
    """
    Represents an arithmetic, comparison or membership expression.

    Example:
        {age} >= 18

    Becomes:
        BinaryExpression(
            operator=BinaryOperator.GREATER_EQUAL,
            left=Reference("age"),
            right=Literal(18)
        )

    IMPORTANT:
        This object is immutable (frozen=True).
        It does NOT evaluate itself.
    """

    operator: BinaryOperator
    left: Expression
    right: Expression


@dataclass(frozen=True)
class LogicalExpression(Expression):
    """
    Represents ``and`` / ``or``.

    Separate from BinaryExpression because the right operand is only
    evaluated when the left operand does not decide the result.
    """

    operator: LogicalOperator
    left: Expression
    right: Expression


@dataclass(frozen=True)
class FunctionCall(Expression):
    """
    Represents a call to a built-in function.

    Example:
        iif({age} >= 18, 'adult', 'minor')

    Properties:
        name: Function name as written (lookup is case-insensitive)
        arguments: Argument expressions, in order

    IMPORTANT:
        Arity is NOT validated here.
        Unknown names and wrong argument counts are evaluation errors.
    """

    name: str
    arguments: Tuple[Expression, ...] = ()


def split_reference_path(path: str) -> Tuple[PathSegment, ...]:
    """
    Split ``row.column`` / ``q1[0]`` style paths into segments.

    ``"matrix.row1[2]"`` -> ``("matrix", "row1", 2)``

    Raises:
        ValueError: if ``path`` is not a well-formed reference path
    """
    text = path.strip()
    if not text:
        raise ValueError("empty reference path")

    segments = []
    for part in text.split("."):
        match = _SEGMENT_RE.fullmatch(part)
        if match is None:
            raise ValueError(f"invalid reference path '{path}'")
        segments.append(match.group(1))
        for index in _INDEX_RE.findall(match.group(2)):
            segments.append(int(index))
    return tuple(segments)


def is_valid_reference_path(path: str) -> bool:
    try:
        split_reference_path(path)
    except ValueError:
        return False
    return True
