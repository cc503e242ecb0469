"""Answer validation against the current effective flags."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List

from surveylogic.model import Page, Question
from surveylogic.values import is_empty, is_numeric_text, is_number, to_text

if TYPE_CHECKING:
    from surveylogic.store import SurveyStateStore

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def merge(self, other: "ValidationResult") -> None:
        for message in other.errors:
            self.add_error(message)


def _check_question(store: "SurveyStateStore", question: Question, result: ValidationResult) -> None:
    if question.is_container:
        return
    if not store.is_visible(question.name) or not store.is_enabled(question.name):
        return

    label = question.display_title
    value = store.get_value(question.name)

    if is_empty(value):
        if store.is_required(question.name):
            result.add_error(f"{label} is required")
        return

    if question.type != "text":
        return
    text = to_text(value)
    if question.input_type == "email" and not EMAIL_PATTERN.match(text):
        result.add_error(f"{label} must be a valid email")
    if question.input_type == "number" and not (is_number(value) or is_numeric_text(value)):
        result.add_error(f"{label} must be a number")
    if question.min_length and len(text) < question.min_length:
        result.add_error(f"{label} must be at least {question.min_length} characters")
    if question.max_length and len(text) > question.max_length:
        result.add_error(f"{label} must be no more than {question.max_length} characters")


def validate_page(store: "SurveyStateStore", page: Page) -> ValidationResult:
    """
    Validate the questions of one page.

    Hidden or disabled questions are skipped. A page with a true requiredIf
    needs at least one answered question.
    """
    result = ValidationResult()
    for question in page.iter_questions():
        _check_question(store, question, result)
    if store.is_required(page.name) and not store.is_page_satisfied(page.name):
        result.add_error(f"{page.title or page.name} requires at least one answer")
    return result


def validate_survey(store: "SurveyStateStore") -> ValidationResult:
    """Validate every visible page."""
    result = ValidationResult()
    for page in store.survey.pages:
        if store.is_visible(page.name):
            result.merge(validate_page(store, page))
    return result
