"""
Built-in function library.

Each function is registered with an arity range and an implementation.
Implementations receive the evaluation context first (for ``today()``
and friends), then either evaluated argument values or, for lazy
functions such as ``iif``, zero-argument thunks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from surveylogic.errors import EvalError, EvalErrorKind
from surveylogic.values import (
    is_number,
    is_truthy,
    normalize_number,
    parse_number,
    to_number,
    to_text,
    values_equal,
)

# beyond this a float has no digits left to round
MAX_ROUND_DIGITS = 308


@dataclass(frozen=True)
class FunctionSpec:
    """
    Signature of a built-in function.

    Properties:
        name: Registered name (lookup is case-insensitive)
        min_args: Minimum argument count
        max_args: Maximum argument count, None for variadic
        impl: Callable(context, *args)
        lazy: When True, args are thunks and evaluation is up to impl
    """

    name: str
    min_args: int
    max_args: Optional[int]
    impl: Callable[..., Any]
    lazy: bool = False

    def check_arity(self, count: int) -> None:
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            if self.max_args is None:
                expected = f"at least {self.min_args}"
            elif self.min_args == self.max_args:
                expected = str(self.min_args)
            else:
                expected = f"{self.min_args} to {self.max_args}"
            raise EvalError(
                EvalErrorKind.ARITY_MISMATCH,
                f"{self.name}() takes {expected} argument(s), got {count}",
            )


class FunctionRegistry:
    """Name -> FunctionSpec mapping."""

    def __init__(self, specs: Iterable[FunctionSpec] = ()):
        self._specs: Dict[str, FunctionSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: FunctionSpec) -> None:
        self._specs[spec.name.lower()] = spec

    def get(self, name: str) -> Optional[FunctionSpec]:
        return self._specs.get(name.lower())

    def require(self, name: str) -> FunctionSpec:
        spec = self.get(name)
        if spec is None:
            raise EvalError(EvalErrorKind.UNKNOWN_FUNCTION, f"unknown function '{name}'")
        return spec

    def names(self) -> List[str]:
        return sorted(spec.name for spec in self._specs.values())

    def copy(self) -> "FunctionRegistry":
        return FunctionRegistry(self._specs.values())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._specs


def _flatten(values: Iterable[Any]) -> Iterator[Any]:
    for value in values:
        if isinstance(value, (list, tuple)):
            yield from _flatten(value)
        else:
            yield value


def _soft_number(value: Any) -> Optional[float]:
    """Number for aggregate functions; None when the value is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if is_number(value):
        return value
    if isinstance(value, str):
        return parse_number(value)
    return None


def parse_date(value: Any) -> Optional[date]:
    """Parse ISO date/datetime text (or a date object); None for undefined."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"cannot use {value!r} as a date")


def _iif(context, condition, when_true, when_false):
    return when_true() if is_truthy(condition()) else when_false()


def _today(context):
    return context.today().isoformat()


def _age(context, value):
    born = parse_date(value)
    if born is None:
        return None
    today = context.today()
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


def _sum(context, *args):
    total = 0
    for value in _flatten(args):
        number = _soft_number(value)
        if number is not None:
            total += number
    return normalize_number(total)


def _avg(context, *args):
    values = list(_flatten(args))
    if not values:
        return 0
    return normalize_number(_sum(context, *values) / len(values))


def _min(context, *args):
    numbers = [n for n in (_soft_number(v) for v in _flatten(args)) if n is not None]
    return normalize_number(min(numbers)) if numbers else None


def _max(context, *args):
    numbers = [n for n in (_soft_number(v) for v in _flatten(args)) if n is not None]
    return normalize_number(max(numbers)) if numbers else None


def _round(context, value, digits=0):
    if value is None:
        return None
    places = int(to_number(digits))
    if abs(places) > MAX_ROUND_DIGITS:
        raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"round() takes at most {MAX_ROUND_DIGITS} digits")
    scale = 10 ** places
    try:
        # half away from zero, not Python's banker's rounding
        number = float(to_number(value)) * scale
        rounded = math.floor(abs(number) + 0.5) * (1 if number >= 0 else -1)
        return normalize_number(rounded / scale)
    except (OverflowError, ValueError) as exc:
        raise EvalError(EvalErrorKind.TYPE_MISMATCH, f"round() result out of range: {exc}")


def _contains(context, haystack, needle):
    if haystack is None:
        return False
    if isinstance(haystack, (list, tuple)):
        return any(values_equal(item, needle) for item in haystack)
    return to_text(needle) in to_text(haystack)


def _notcontains(context, haystack, needle):
    return not _contains(context, haystack, needle)


def _starts_with(context, text, prefix):
    if text is None:
        return False
    return to_text(text).startswith(to_text(prefix))


def _ends_with(context, text, suffix):
    if text is None:
        return False
    return to_text(text).endswith(to_text(suffix))


BUILTIN_FUNCTIONS = (
    FunctionSpec("iif", 3, 3, _iif, lazy=True),
    FunctionSpec("today", 0, 0, _today),
    FunctionSpec("age", 1, 1, _age),
    FunctionSpec("sum", 0, None, _sum),
    FunctionSpec("avg", 0, None, _avg),
    FunctionSpec("min", 1, None, _min),
    FunctionSpec("max", 1, None, _max),
    FunctionSpec("round", 1, 2, _round),
    FunctionSpec("contains", 2, 2, _contains),
    FunctionSpec("notcontains", 2, 2, _notcontains),
    FunctionSpec("startsWith", 2, 2, _starts_with),
    FunctionSpec("endsWith", 2, 2, _ends_with),
)


def default_registry() -> FunctionRegistry:
    """A fresh registry holding the built-in functions."""
    return FunctionRegistry(BUILTIN_FUNCTIONS)
