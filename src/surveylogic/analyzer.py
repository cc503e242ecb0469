"""
Survey Analyzer: early diagnostics and inventory of survey definitions.

This module provides lightweight static analysis of Survey objects:
    - Reference usage inventory
    - Undefined and unreferenced questions
    - Expression complexity metrics
    - Parse errors and value-binding cycles
    - Warning flags for authoring risk

IMPORTANT: It does NOT start a session and never evaluates expressions.
It only produces read-only reports.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from surveylogic.bindings import compile_bindings
from surveylogic.errors import LexError, ParseError
from surveylogic.expressions import (
    BinaryExpression,
    Expression,
    FunctionCall,
    Literal,
    LogicalExpression,
    Reference,
    UnaryExpression,
)
from surveylogic.graph import find_value_cycles
from surveylogic.model import Survey
from surveylogic.parser import ExpressionParser

MAX_RECOMMENDED_DEPTH = 5


@dataclass
class ExpressionMetrics:
    """Metrics about a single expression tree."""
    depth: int = 0
    node_count: int = 0
    references: Set[str] = field(default_factory=set)

    def add(self, other: ExpressionMetrics) -> None:
        self.depth = max(self.depth, other.depth)
        self.node_count += other.node_count
        self.references.update(other.references)


def _analyze_expression(expr: Optional[Expression]) -> ExpressionMetrics:
    """Recursively analyze an expression tree."""
    if expr is None:
        return ExpressionMetrics(depth=0, node_count=0)

    metrics = ExpressionMetrics(node_count=1)

    if isinstance(expr, (BinaryExpression, LogicalExpression)):
        children = [expr.left, expr.right]
    elif isinstance(expr, UnaryExpression):
        children = [expr.operand]
    elif isinstance(expr, FunctionCall):
        children = list(expr.arguments)
    else:
        children = []

    if isinstance(expr, Reference):
        metrics.references.add(expr.root)
    elif isinstance(expr, Literal):
        # Literals don't reference questions
        pass

    for child in children:
        child_metrics = _analyze_expression(child)
        metrics.depth = max(metrics.depth, 1 + child_metrics.depth)
        metrics.node_count += child_metrics.node_count
        metrics.references.update(child_metrics.references)

    return metrics


@dataclass
class SurveyReport:
    """Comprehensive analysis report for a survey."""

    survey_name: str
    total_pages: int = 0
    total_questions: int = 0
    total_triggers: int = 0
    total_bindings: int = 0

    # Reference usage
    reference_usage: Dict[str, int] = field(default_factory=dict)
    undefined_references: Set[str] = field(default_factory=set)
    unreferenced_questions: Set[str] = field(default_factory=set)

    # Expression complexity
    max_expression_depth: int = 0
    avg_expression_depth: float = 0.0
    total_expression_nodes: int = 0

    # Problems
    parse_errors: List[str] = field(default_factory=list)
    has_cycles: bool = False
    cycle_example: Optional[List[str]] = None

    # Warnings and flags
    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def analyze_survey(survey: Survey) -> SurveyReport:
    """
    Perform static analysis of a Survey.

    Checks for:
    - Reference definitions and usage
    - Expression complexity
    - Malformed expressions
    - Value bindings that feed back into themselves

    Returns a SurveyReport with metrics and warnings.
    """
    report = SurveyReport(survey_name=survey.title or "Untitled survey")
    parser = ExpressionParser()

    question_names = set(survey.question_names())
    report.total_pages = len(survey.pages)
    report.total_questions = len(question_names)
    report.total_triggers = len(survey.triggers)

    # =========================================================================
    # 1. COLLECT EXPRESSIONS
    # =========================================================================

    bindings, diagnostics = compile_bindings(survey, parser)
    report.total_bindings = len(bindings)
    report.parse_errors.extend(str(d) for d in diagnostics)

    expressions: List[Expression] = []
    for binding in bindings:
        expressions.append(binding.expression)
        if binding.condition is not None:
            expressions.append(binding.condition)

    for index, trigger in enumerate(survey.triggers):
        sources: List[Tuple[str, Optional[str]]] = [("expression", trigger.expression)]
        if trigger.run_expression:
            sources.append(("runExpression", trigger.run_expression))
        for prop, source in sources:
            try:
                expressions.append(parser.parse_expression(source or ""))
            except (LexError, ParseError) as exc:
                report.parse_errors.append(f"[trigger[{index}].{prop}] {exc}")

    # =========================================================================
    # 2. REFERENCE ANALYSIS
    # =========================================================================

    usage: Dict[str, int] = defaultdict(int)
    all_depths = []
    for expression in expressions:
        metrics = _analyze_expression(expression)
        for name in metrics.references:
            usage[name] += 1
        all_depths.append(metrics.depth)
        report.total_expression_nodes += metrics.node_count

    # trigger endpoints read or write questions without an expression
    referenced: Set[str] = set(usage)
    for trigger in survey.triggers:
        for name in (trigger.from_name, trigger.set_to_name):
            if name:
                referenced.add(name)

    report.reference_usage = dict(usage)
    report.undefined_references = set(usage) - question_names
    report.unreferenced_questions = question_names - referenced

    # =========================================================================
    # 3. EXPRESSION COMPLEXITY
    # =========================================================================

    if all_depths:
        report.max_expression_depth = max(all_depths)
        report.avg_expression_depth = sum(all_depths) / len(all_depths)

    # =========================================================================
    # 4. CYCLES
    # =========================================================================

    cycles = find_value_cycles(bindings)
    if cycles:
        report.has_cycles = True
        report.cycle_example = cycles[min(cycles)]

    # =========================================================================
    # 5. WARNING FLAGS
    # =========================================================================

    if report.undefined_references:
        report.add_warning(
            f"Undefined references: {', '.join(sorted(report.undefined_references))}"
        )

    if report.parse_errors:
        report.add_warning(f"{len(report.parse_errors)} expression(s) failed to parse")

    if report.has_cycles:
        report.add_warning(
            f"Cycle detected: {' -> '.join(report.cycle_example)}"
        )

    if report.max_expression_depth > MAX_RECOMMENDED_DEPTH:
        report.add_warning(
            f"High expression complexity: max depth {report.max_expression_depth}"
        )

    for trigger in survey.triggers:
        if trigger.goto_name and trigger.goto_name not in question_names and survey.get_page(trigger.goto_name) is None:
            report.add_warning(f"Skip target does not exist: {trigger.goto_name}")

    return report
