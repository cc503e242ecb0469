"""
Core Survey Definition Objects

Defines the data structures a questionnaire definition is loaded into:
    - Questions (answer slots, possibly nested in panels)
    - Pages (ordered groups of questions)
    - Triggers (survey-level one-shot reactions)
    - Surveys (root container)

ARCHITECTURAL RULE:
    These objects:
        - Hold logic as expression STRINGS, exactly as authored
        - Know nothing about evaluation or current answers
        - Are not mutated once a session has started
        - Represent structure, not behavior

Parsing the logic strings into ASTs happens in the bindings module.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


@dataclass
class Question:
    """
    Represents a single question (or a panel that groups questions).

    Properties:
        name:
            Unique identifier; also the key of the answer value
            Examples: "age", "email", "contactEmail"

        type:
            Widget type as authored ("text", "checkbox", "panel", ...)
            The engine only treats "panel", "paneldynamic", "multipletext"
            and "expression" specially.

        visible_if / enable_if / required_if:
            Expression strings deriving the question's flags

        set_value_if / set_value_expression / set_value:
            Gate, value expression and literal used to auto-populate
            the answer

        default_value / default_value_expression:
            Initial value (literal or computed) for unanswered questions

        reset_value_if:
            Expression that clears the answer back to its default

        expression:
            Value expression of an "expression" question (read-only,
            always computed)

        elements:
            Child questions of panels and multiple-text questions

    ARCHITECTURAL RULE:
        - visible/enable/required describe presentation state
        - set/default/reset describe value state
        - These are separate concerns
    """

    name: str
    type: str = "text"
    title: Optional[str] = None
    description: Optional[str] = None
    html: Optional[str] = None
    is_required: bool = False
    input_type: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None

    default_value: Any = None
    default_value_expression: Optional[str] = None

    visible_if: Optional[str] = None
    enable_if: Optional[str] = None
    required_if: Optional[str] = None
    set_value_if: Optional[str] = None
    set_value_expression: Optional[str] = None
    set_value: Any = None
    reset_value_if: Optional[str] = None
    expression: Optional[str] = None

    elements: List["Question"] = field(default_factory=list)

    @property
    def is_container(self) -> bool:
        """Panels and multiple-text questions own child questions."""
        return bool(self.elements) or self.type in ("panel", "paneldynamic")

    @property
    def display_title(self) -> str:
        return self.title or self.name


@dataclass
class Page:
    """
    Represents one page of the questionnaire.

    Page-level logic:
        visible_if:  page hidden -> its questions are never required
        enable_if:   page disabled -> its questions are read-only,
                     required flags untouched
        required_if: at least one question on the page must be answered
    """

    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    elements: List[Question] = field(default_factory=list)
    visible_if: Optional[str] = None
    enable_if: Optional[str] = None
    required_if: Optional[str] = None

    def iter_questions(self) -> Iterator[Question]:
        """Yield every question on the page, depth-first, in order."""
        yield from _walk(self.elements)


class TriggerType(Enum):
    """Survey-level trigger actions."""

    COMPLETE = "complete"
    SET_VALUE = "setvalue"
    COPY_VALUE = "copyvalue"
    RUN_EXPRESSION = "runexpression"
    SKIP = "skip"


@dataclass
class Trigger:
    """
    A survey-level rule that acts once when its condition turns true.

    Properties:
        type: TriggerType
        expression: Condition expression string
        set_to_name: Target question (setvalue, copyvalue, runexpression)
        set_value: Literal value to assign (setvalue)
        from_name: Source question (copyvalue)
        goto_name: Target page or question (skip)
        run_expression: Expression to evaluate (runexpression)

    Example:
        Trigger(
            type=TriggerType.COPY_VALUE,
            expression="{consent} = true",
            from_name="email",
            set_to_name="contactEmail",
        )
    """

    type: TriggerType
    expression: str
    set_to_name: Optional[str] = None
    set_value: Any = None
    from_name: Optional[str] = None
    goto_name: Optional[str] = None
    run_expression: Optional[str] = None

    @property
    def label(self) -> str:
        target = self.set_to_name or self.goto_name or ""
        return f"{self.type.value}:{target}" if target else self.type.value


@dataclass
class Survey:
    """
    Root container for a questionnaire definition.

    Everything the engine needs (bindings, dependency graph, triggers)
    is derived from this object alone.

    Properties:
        title / description:
            Display strings, may contain {placeholders}

        pages:
            Ordered pages; definition order drives recompute order

        triggers:
            Survey-level triggers, evaluated in list order

        completed_html:
            Display text shown after completion

        metadata:
            Arbitrary key-value pairs (use sparingly)
            Example: {"maxPasses": 20}

    INVARIANTS:
        - Question names are unique across the whole survey
        - Page names are unique
    """

    title: Optional[str] = None
    description: Optional[str] = None
    pages: List[Page] = field(default_factory=list)
    triggers: List[Trigger] = field(default_factory=list)
    completed_html: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def iter_questions(self) -> Iterator[Question]:
        """Yield every question in definition order (page, then depth-first)."""
        for page in self.pages:
            yield from page.iter_questions()

    def get_page(self, page_name: str) -> Optional[Page]:
        """
        Retrieve a page by name.

        Returns:
            Page object or None if not found
        """
        for page in self.pages:
            if page.name == page_name:
                return page
        return None

    def get_question(self, name: str) -> Optional[Question]:
        """
        Retrieve a question by name, searching nested panels too.

        Returns:
            Question object or None if not found
        """
        for question in self.iter_questions():
            if question.name == name:
                return question
        return None

    def page_of(self, name: str) -> Optional[Page]:
        """Return the page that holds question ``name``."""
        for page in self.pages:
            for question in page.iter_questions():
                if question.name == name:
                    return page
        return None

    def parent_of(self, name: str) -> Optional[Question]:
        """Return the panel directly containing question ``name``, if any."""
        for question in self.iter_questions():
            if any(child.name == name for child in question.elements):
                return question
        return None

    def question_names(self) -> List[str]:
        return [question.name for question in self.iter_questions()]


def _walk(elements: List[Question]) -> Iterator[Question]:
    for element in elements:
        yield element
        if element.elements:
            yield from _walk(element.elements)
