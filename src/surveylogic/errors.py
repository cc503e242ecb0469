"""
Error taxonomy for the survey logic engine.

Four families of errors exist:
    - LexError:    malformed expression text (tokenizer level)
    - ParseError:  malformed expression structure (grammar level)
    - EvalError:   a well-formed expression failed against current values
    - ConfigError: a definition-level problem (cycles, unstable logic, loops)

ARCHITECTURAL RULE:
    None of these cross the public engine API as uncaught exceptions.
    The store and dispatcher catch them, wrap them in a Diagnostic,
    and keep going with the remaining bindings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SurveyLogicError(Exception):
    """Base class for every error raised by the engine."""
    pass


class SurveyDefinitionError(SurveyLogicError):
    """Raised by the loaders when a definition document is malformed."""
    pass


class LexError(SurveyLogicError):
    """Raised when an expression string cannot be tokenized."""

    def __init__(self, message: str, position: int):
        self.message = message
        self.position = position
        super().__init__(f"Lex error at position {position}: {message}")


class ParseError(SurveyLogicError):
    """
    Raised when a token stream does not match the expression grammar.

    Properties:
        position: offset in the source string of the offending token
        expected: short description of what the parser was looking for
    """

    def __init__(self, message: str, position: int, expected: Optional[str] = None):
        self.message = message
        self.position = position
        self.expected = expected
        detail = f" (expected {expected})" if expected else ""
        super().__init__(f"Parse error at position {position}: {message}{detail}")


class EvalErrorKind(Enum):
    TYPE_MISMATCH = "TypeMismatch"
    DIVISION_BY_ZERO = "DivisionByZero"
    UNKNOWN_FUNCTION = "UnknownFunction"
    ARITY_MISMATCH = "ArityMismatch"


class EvalError(SurveyLogicError):
    """Raised when evaluation of a parsed expression fails."""

    def __init__(self, kind: EvalErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {message}")


class ConfigErrorKind(Enum):
    CYCLIC_SET_VALUE = "CyclicSetValue"
    UNSTABLE_LOGIC = "UnstableLogic"
    TRIGGER_LOOP = "TriggerLoop"


class ConfigError(SurveyLogicError):
    """Raised (and collected) for problems in the logic configuration itself."""

    def __init__(self, kind: ConfigErrorKind, message: str, owner: Optional[str] = None):
        self.kind = kind
        self.message = message
        self.owner = owner
        super().__init__(f"{kind.value}: {message}")


@dataclass(frozen=True)
class Diagnostic:
    """
    A non-fatal problem collected by the engine.

    Properties:
        error:  the underlying exception instance
        owner:  question/page name or trigger label the problem belongs to
        prop:   logic property name (e.g. "visibleIf"), if any
        source: the expression text, if any
    """

    error: SurveyLogicError
    owner: Optional[str] = None
    prop: Optional[str] = None
    source: Optional[str] = None

    @property
    def kind(self) -> str:
        kind = getattr(self.error, "kind", None)
        if kind is not None:
            return kind.value
        return type(self.error).__name__

    def __str__(self) -> str:
        where = ".".join(p for p in (self.owner, self.prop) if p)
        prefix = f"[{where}] " if where else ""
        return f"{prefix}{self.error}"
