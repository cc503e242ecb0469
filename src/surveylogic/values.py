"""
Value model and coercion rules.

Answers are plain Python values drawn from a closed set of kinds:

    Undefined   -> None
    Boolean     -> bool
    Number      -> int / float (never bool)
    Text        -> str
    Sequence    -> list / tuple   (multi-value answers)
    Structured  -> dict           (matrix rows, panels, multiple text)

Every operator in the evaluator goes through the helpers below, so each
comparison or arithmetic operation has exactly one defined behaviour.
"""

from __future__ import annotations

import json
import math
from enum import Enum
from typing import Any, Callable, Optional, Union

from surveylogic.errors import EvalError, EvalErrorKind

Number = Union[int, float]


class ValueKind(Enum):
    UNDEFINED = "undefined"
    BOOLEAN = "boolean"
    NUMBER = "number"
    TEXT = "text"
    SEQUENCE = "sequence"
    STRUCTURED = "structured"


def kind_of(value: Any) -> ValueKind:
    """Return the ValueKind of ``value``; unknown objects count as text."""
    if value is None:
        return ValueKind.UNDEFINED
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    if isinstance(value, dict):
        return ValueKind.STRUCTURED
    return ValueKind.TEXT


def normalize_number(value: Number) -> Number:
    """Collapse integral floats (``7.0``) to ints so results print cleanly."""
    if isinstance(value, float) and value.is_integer() and math.isfinite(value):
        return int(value)
    return value


def parse_number(text: str) -> Optional[Number]:
    """Parse a numeric string, returning None when it is not one."""
    stripped = text.strip()
    if not stripped:
        return None
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        number = float(stripped)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_numeric_text(value: Any) -> bool:
    return isinstance(value, str) and parse_number(value) is not None


def to_number(value: Any) -> Number:
    """Coerce ``value`` for arithmetic, raising TypeMismatch when impossible."""
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, str):
        number = parse_number(value)
        if number is not None:
            return number
    raise EvalError(
        EvalErrorKind.TYPE_MISMATCH,
        f"cannot use {kind_of(value).value} value {value!r} as a number",
    )


def _int_text(value: int) -> str:
    try:
        return str(value)
    except ValueError:
        # past the interpreter's int-to-str digit limit: 17 significant digits
        shift = int(math.log10(abs(value))) - 16
        digits = str(abs(value) // 10 ** shift)
        exponent = shift + len(digits) - 1
        sign = "-" if value < 0 else ""
        return f"{sign}{digits[0]}.{digits[1:].rstrip('0') or '0'}e+{exponent}"


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        number = normalize_number(value)
        if isinstance(number, int):
            return _int_text(number)
        return str(number)
    if isinstance(value, (list, tuple)):
        return ", ".join(to_text(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def is_empty(value: Any) -> bool:
    """True for undefined, blank text and empty sequences/mappings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def is_truthy(value: Any) -> bool:
    if is_empty(value):
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    return True


def values_equal(left: Any, right: Any) -> bool:
    """Equality used by ``=``; see the module docstring for the kinds."""
    if left is None or right is None:
        return left is None and right is None

    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        # Multi-value answers compare as sets: order is not significant.
        return all(any(values_equal(a, b) for b in right) for a in left) and all(
            any(values_equal(b, a) for a in left) for b in right
        )

    if isinstance(left, dict) or isinstance(right, dict):
        return left == right

    if isinstance(left, bool) or isinstance(right, bool):
        if isinstance(left, bool) and isinstance(right, bool):
            return left == right
        other = right if isinstance(left, bool) else left
        flag = left if isinstance(left, bool) else right
        if isinstance(other, str):
            return other.strip().lower() == to_text(flag)
        if is_number(other):
            return other == (1 if flag else 0)
        return False

    if _numeric_pair(left, right):
        return to_number(left) == to_number(right)

    return to_text(left) == to_text(right)


def compare(left: Any, right: Any, op: Callable[[Any, Any], bool]) -> bool:
    """Apply a relational ``op``; undefined on either side is always False."""
    if left is None or right is None:
        return False
    if _numeric_pair(left, right):
        return op(to_number(left), to_number(right))
    return op(to_text(left), to_text(right))


def _numeric_pair(left: Any, right: Any) -> bool:
    if is_number(left) and is_number(right):
        return True
    if is_number(left) and is_numeric_text(right):
        return True
    if is_numeric_text(left) and is_number(right):
        return True
    return False
