"""
Evaluator for logic expressions.

Walks an expression AST and computes its value against a context that
resolves question references. Evaluation is pure: the same node and the
same context always produce the same value.
"""

from __future__ import annotations

import math
import operator
from datetime import date
from functools import partial
from typing import Any, Callable, Mapping, Optional, Sequence

from surveylogic.errors import EvalError, EvalErrorKind
from surveylogic.expressions import (
    BinaryExpression,
    BinaryOperator,
    Expression,
    FunctionCall,
    Literal,
    LogicalExpression,
    LogicalOperator,
    PathSegment,
    Reference,
    UnaryExpression,
    UnaryOperator,
)
from surveylogic.functions import FunctionRegistry, default_registry
from surveylogic.values import (
    compare,
    is_empty,
    is_truthy,
    normalize_number,
    to_number,
    to_text,
    values_equal,
)

_RELATIONAL = {
    BinaryOperator.LESS_THAN: operator.lt,
    BinaryOperator.LESS_EQUAL: operator.le,
    BinaryOperator.GREATER_THAN: operator.gt,
    BinaryOperator.GREATER_EQUAL: operator.ge,
}


def resolve_path(values: Mapping[str, Any], segments: Sequence[PathSegment]) -> Any:
    """
    Follow ``segments`` through answer values.

    Missing keys, out-of-range indexes and indexing into scalars all
    yield None instead of raising.
    """
    if not segments:
        return None
    current = values.get(str(segments[0]))
    for segment in segments[1:]:
        if isinstance(segment, int):
            if isinstance(current, (list, tuple)) and 0 <= segment < len(current):
                current = current[segment]
            else:
                return None
        elif isinstance(current, dict):
            current = current.get(segment)
        else:
            return None
    return current


class MappingContext:
    """
    Evaluation context over a plain mapping of answers.

    Args:
        values: question name -> value
        clock: callable returning today's date
    """

    def __init__(self, values: Mapping[str, Any], clock: Callable[[], date] = date.today):
        self.values = values
        self.clock = clock

    def resolve(self, reference: Reference) -> Any:
        return resolve_path(self.values, reference.segments)

    def today(self) -> date:
        return self.clock()


class ExpressionEvaluator:
    """
    Evaluates expression ASTs.

    Accepts an AST root and a context, returns a value from the closed
    value set (None, bool, number, str, sequence, dict).
    """

    def __init__(self, functions: Optional[FunctionRegistry] = None):
        self.functions = functions if functions is not None else default_registry()

    def evaluate(self, node: Expression, context) -> Any:
        """
        Compute the value of ``node``.

        Raises:
            EvalError: TypeMismatch, DivisionByZero, UnknownFunction or
                       ArityMismatch
        """
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Reference):
            return context.resolve(node)
        if isinstance(node, LogicalExpression):
            return self._evaluate_logical(node, context)
        if isinstance(node, BinaryExpression):
            return self._evaluate_binary(node, context)
        if isinstance(node, UnaryExpression):
            return self._evaluate_unary(node, context)
        if isinstance(node, FunctionCall):
            return self._evaluate_call(node, context)
        raise TypeError(f"Unsupported expression node: {type(node).__name__}")

    def evaluate_condition(self, node: Expression, context) -> bool:
        """Evaluate ``node`` and coerce the result to a boolean."""
        return is_truthy(self.evaluate(node, context))

    def _evaluate_logical(self, node: LogicalExpression, context) -> bool:
        left = is_truthy(self.evaluate(node.left, context))
        if node.operator == LogicalOperator.AND:
            if not left:
                return False
            return is_truthy(self.evaluate(node.right, context))
        if left:
            return True
        return is_truthy(self.evaluate(node.right, context))

    def _evaluate_unary(self, node: UnaryExpression, context) -> Any:
        value = self.evaluate(node.operand, context)
        if node.operator == UnaryOperator.NOT:
            return not is_truthy(value)
        if node.operator == UnaryOperator.NEGATE:
            return normalize_number(-to_number(value))
        if node.operator == UnaryOperator.EMPTY:
            return is_empty(value)
        if node.operator == UnaryOperator.NOT_EMPTY:
            return not is_empty(value)
        raise TypeError(f"Unsupported unary operator: {node.operator}")

    def _evaluate_binary(self, node: BinaryExpression, context) -> Any:
        left = self.evaluate(node.left, context)
        right = self.evaluate(node.right, context)
        op = node.operator

        if op == BinaryOperator.EQUALS:
            return values_equal(left, right)
        if op == BinaryOperator.NOT_EQUALS:
            return not values_equal(left, right)
        if op in _RELATIONAL:
            return compare(left, right, _RELATIONAL[op])
        if op in (BinaryOperator.CONTAINS, BinaryOperator.NOT_CONTAINS):
            spec = self.functions.require(op.value)
            return spec.impl(context, left, right)
        return _arithmetic(op, left, right)

    def _evaluate_call(self, node: FunctionCall, context) -> Any:
        spec = self.functions.require(node.name)
        spec.check_arity(len(node.arguments))
        if spec.lazy:
            args = [partial(self.evaluate, argument, context) for argument in node.arguments]
        else:
            args = [self.evaluate(argument, context) for argument in node.arguments]
        try:
            return spec.impl(context, *args)
        except OverflowError as exc:
            raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"{node.name}() result out of range: {exc}")


# results above 10 ** MAX_POWER_DIGITS are rejected before computing them
MAX_POWER_DIGITS = 308


def _arithmetic(op: BinaryOperator, left: Any, right: Any) -> Any:
    if op == BinaryOperator.ADD and (isinstance(left, str) or isinstance(right, str)):
        return to_text(left) + to_text(right)

    a = to_number(left)
    b = to_number(right)

    try:
        result = _apply_arithmetic(op, a, b)
    except OverflowError as exc:
        raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"{op.value} result out of range: {exc}")
    return normalize_number(result)


def _apply_arithmetic(op: BinaryOperator, a, b):
    if op == BinaryOperator.ADD:
        return a + b
    if op == BinaryOperator.SUBTRACT:
        return a - b
    if op == BinaryOperator.MULTIPLY:
        return a * b
    if op == BinaryOperator.DIVIDE:
        if b == 0:
            raise EvalError(EvalErrorKind.DIVISION_BY_ZERO, "division by zero")
        return a / b
    if op == BinaryOperator.MODULO:
        if b == 0:
            raise EvalError(EvalErrorKind.DIVISION_BY_ZERO, "modulo by zero")
        # sign follows the dividend
        return math.fmod(a, b)
    if op == BinaryOperator.POWER:
        return _power(a, b)
    raise TypeError(f"Unsupported binary operator: {op}")


def _power(a, b):
    if b > 0 and abs(a) > 1 and b * math.log10(abs(a)) > MAX_POWER_DIGITS:
        raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"power result exceeds 1e{MAX_POWER_DIGITS}")
    try:
        result = a ** b
    except ZeroDivisionError as exc:
        raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"invalid power: {exc}")
    if isinstance(result, complex):
        raise EvalError(EvalErrorKind.TYPE_MISMATCH, "power result is not a real number")
    return result


_DEFAULT_EVALUATOR = ExpressionEvaluator()


def evaluate(node: Expression, context) -> Any:
    """Evaluate ``node`` with the built-in function library."""
    return _DEFAULT_EVALUATOR.evaluate(node, context)
