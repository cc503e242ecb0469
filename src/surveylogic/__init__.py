"""
Survey Logic Engine

Evaluates the declarative logic attached to a questionnaire definition
(visibleIf, enableIf, requiredIf, setValueIf, setValueExpression and
survey-level triggers) and keeps every derived flag and computed value
consistent as answers change.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Rendering or widgets
    - Storage, network or authentication
    - Platform specifics

Definitions and answers come in as plain data; effective flags, values
and display text go out. One SurveyStateStore per session.
"""

from surveylogic.config import EngineConfig
from surveylogic.errors import (
    ConfigError,
    ConfigErrorKind,
    Diagnostic,
    EvalError,
    EvalErrorKind,
    LexError,
    ParseError,
    SurveyDefinitionError,
    SurveyLogicError,
)
from surveylogic.evaluator import ExpressionEvaluator, MappingContext, evaluate
from surveylogic.lexer import tokenize
from surveylogic.model import Page, Question, Survey, Trigger, TriggerType
from surveylogic.navigation import SurveyNavigator
from surveylogic.parser import parse, parse_expression, parse_interpolated_text
from surveylogic.serialization import survey_from_dict, survey_from_json, survey_from_yaml, survey_to_dict
from surveylogic.store import SurveyStateStore
from surveylogic.validators import ValidationResult, validate_page, validate_survey

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ConfigErrorKind",
    "Diagnostic",
    "EngineConfig",
    "EvalError",
    "EvalErrorKind",
    "ExpressionEvaluator",
    "LexError",
    "MappingContext",
    "Page",
    "ParseError",
    "Question",
    "Survey",
    "SurveyDefinitionError",
    "SurveyLogicError",
    "SurveyNavigator",
    "SurveyStateStore",
    "Trigger",
    "TriggerType",
    "ValidationResult",
    "evaluate",
    "parse",
    "parse_expression",
    "parse_interpolated_text",
    "survey_from_dict",
    "survey_from_json",
    "survey_from_yaml",
    "survey_to_dict",
    "tokenize",
    "validate_page",
    "validate_survey",
]
