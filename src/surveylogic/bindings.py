"""
Logic bindings: parsed logic properties attached to questions and pages.

A binding is created once per logic property when a definition is
loaded and never changes afterwards. Malformed expression text does not
abort loading; the offending binding is simply not installed and a
diagnostic is recorded instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Tuple

from surveylogic.errors import Diagnostic, LexError, ParseError
from surveylogic.expressions import Expression
from surveylogic.graph import references_of
from surveylogic.model import Page, Question, Survey
from surveylogic.parser import ExpressionParser

logger = logging.getLogger(__name__)


class BindingKind(Enum):
    VISIBLE_IF = "visibleIf"
    ENABLE_IF = "enableIf"
    REQUIRED_IF = "requiredIf"
    SET_VALUE_IF = "setValueIf"
    SET_VALUE_EXPRESSION = "setValueExpression"
    DEFAULT_VALUE_EXPRESSION = "defaultValueExpression"
    RESET_VALUE_IF = "resetValueIf"

    @property
    def writes_value(self) -> bool:
        return self in VALUE_KINDS


FLAG_KINDS = frozenset({BindingKind.VISIBLE_IF, BindingKind.ENABLE_IF, BindingKind.REQUIRED_IF})

VALUE_KINDS = frozenset({
    BindingKind.SET_VALUE_IF,
    BindingKind.SET_VALUE_EXPRESSION,
    BindingKind.DEFAULT_VALUE_EXPRESSION,
    BindingKind.RESET_VALUE_IF,
})


class OwnerKind(Enum):
    QUESTION = "question"
    PAGE = "page"


@dataclass(frozen=True)
class LogicBinding:
    """
    One logic property of one question or page, in parsed form.

    Properties:
        kind: which property this is
        owner: question or page name
        owner_kind: OwnerKind
        prop: property name as authored ("visibleIf", "expression", ...)
        expression: the parsed main expression
            - flag kinds / SET_VALUE_IF / RESET_VALUE_IF: the condition
            - SET_VALUE_EXPRESSION / DEFAULT_VALUE_EXPRESSION: the value
        condition: optional setValueIf gate of a SET_VALUE_EXPRESSION
        literal: value assigned by a bare SET_VALUE_IF
        source: expression text (for diagnostics)
        order: position in definition order; unique per survey
        references: root question names read by expression and condition
    """

    kind: BindingKind
    owner: str
    owner_kind: OwnerKind
    prop: str
    expression: Expression
    source: str
    order: int
    condition: Optional[Expression] = None
    literal: Any = None
    references: FrozenSet[str] = frozenset()

    @property
    def writes_value(self) -> bool:
        return self.kind.writes_value

    def __str__(self) -> str:
        return f"{self.owner}.{self.prop}"


class _Compiler:
    def __init__(self, parser: ExpressionParser):
        self.parser = parser
        self.bindings: List[LogicBinding] = []
        self.diagnostics: List[Diagnostic] = []

    def parse(self, owner: str, prop: str, source: Optional[str]) -> Optional[Expression]:
        try:
            return self.parser.parse_expression(source)
        except (LexError, ParseError) as exc:
            diagnostic = Diagnostic(exc, owner=owner, prop=prop, source=source)
            logger.warning("Ignoring %s: %s", prop, diagnostic)
            self.diagnostics.append(diagnostic)
            return None

    def add(self, kind, owner, owner_kind, prop, source, condition_source=None, literal=None):
        expression = self.parse(owner, prop, source)
        condition = None
        if condition_source:
            condition = self.parse(owner, "setValueIf", condition_source)
            if condition is None:
                return
        if expression is None:
            return

        refs = references_of(expression)
        if condition is not None:
            refs = refs | references_of(condition)
        self.bindings.append(LogicBinding(
            kind=kind,
            owner=owner,
            owner_kind=owner_kind,
            prop=prop,
            expression=expression,
            source=source,
            order=len(self.bindings),
            condition=condition,
            literal=literal,
            references=refs,
        ))

    def page(self, page: Page) -> None:
        for kind, source in (
            (BindingKind.VISIBLE_IF, page.visible_if),
            (BindingKind.ENABLE_IF, page.enable_if),
            (BindingKind.REQUIRED_IF, page.required_if),
        ):
            if source:
                self.add(kind, page.name, OwnerKind.PAGE, kind.value, source)

    def question(self, q: Question) -> None:
        for kind, source in (
            (BindingKind.VISIBLE_IF, q.visible_if),
            (BindingKind.ENABLE_IF, q.enable_if),
            (BindingKind.REQUIRED_IF, q.required_if),
            (BindingKind.DEFAULT_VALUE_EXPRESSION, q.default_value_expression),
            (BindingKind.RESET_VALUE_IF, q.reset_value_if),
        ):
            if source:
                self.add(kind, q.name, OwnerKind.QUESTION, kind.value, source)

        if q.type == "expression" and q.expression:
            self.add(BindingKind.SET_VALUE_EXPRESSION, q.name, OwnerKind.QUESTION, "expression", q.expression)

        if q.set_value_expression:
            self.add(
                BindingKind.SET_VALUE_EXPRESSION, q.name, OwnerKind.QUESTION, "setValueExpression",
                q.set_value_expression, condition_source=q.set_value_if,
            )
        elif q.set_value_if:
            self.add(
                BindingKind.SET_VALUE_IF, q.name, OwnerKind.QUESTION, "setValueIf",
                q.set_value_if, literal=q.set_value,
            )


def compile_bindings(
    survey: Survey, parser: Optional[ExpressionParser] = None
) -> Tuple[List[LogicBinding], List[Diagnostic]]:
    """
    Parse every logic property of ``survey`` into bindings.

    Bindings come back in definition order: each page's own bindings,
    then its questions depth-first.

    Returns:
        (bindings, diagnostics) where diagnostics hold Lex/Parse errors
    """
    compiler = _Compiler(parser or ExpressionParser())
    for page in survey.pages:
        compiler.page(page)
        for question in page.iter_questions():
            compiler.question(question)
    return compiler.bindings, compiler.diagnostics
