"""
Serialization helpers for survey definitions and answer sets.

Reads SurveyJS-style definition documents (dict / JSON / YAML) into the
model objects and writes them back. Answer sets go to and from JSON for
the persistence collaborator.
This module intentionally keeps the document structure stable and explicit.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import yaml

from surveylogic.errors import SurveyDefinitionError
from surveylogic.model import Page, Question, Survey, Trigger, TriggerType

# model attribute -> document key
_QUESTION_FIELDS = (
    ("title", "title"),
    ("description", "description"),
    ("html", "html"),
    ("input_type", "inputType"),
    ("min_length", "minLength"),
    ("max_length", "maxLength"),
    ("default_value", "defaultValue"),
    ("default_value_expression", "defaultValueExpression"),
    ("visible_if", "visibleIf"),
    ("enable_if", "enableIf"),
    ("required_if", "requiredIf"),
    ("set_value_if", "setValueIf"),
    ("set_value_expression", "setValueExpression"),
    ("set_value", "setValue"),
    ("reset_value_if", "resetValueIf"),
    ("expression", "expression"),
)

_PAGE_FIELDS = (
    ("title", "title"),
    ("description", "description"),
    ("visible_if", "visibleIf"),
    ("enable_if", "enableIf"),
    ("required_if", "requiredIf"),
)


def _first(d: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if d.get(key) is not None:
            return d[key]
    return None


def _require_mapping(d: Any, what: str) -> Dict[str, Any]:
    if not isinstance(d, dict):
        raise SurveyDefinitionError(f"{what} must be a mapping, got {type(d).__name__}")
    return d


def question_from_dict(d: Dict[str, Any]) -> Question:
    d = _require_mapping(d, "question")
    name = d.get("name")
    if not name:
        raise SurveyDefinitionError(f"question without a name: {d!r}")

    q = Question(name=str(name), type=d.get("type", "text"), is_required=bool(d.get("isRequired", False)))
    for attr, key in _QUESTION_FIELDS:
        if key in d:
            setattr(q, attr, d[key])

    children = d.get("elements") or []
    if d.get("type") == "multipletext" and d.get("items"):
        children = [dict(item, type="text") for item in d["items"]]
    q.elements = [question_from_dict(child) for child in children]
    return q


def question_to_dict(q: Question) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": q.name, "type": q.type}
    if q.is_required:
        d["isRequired"] = True
    for attr, key in _QUESTION_FIELDS:
        value = getattr(q, attr)
        if value is not None:
            d[key] = value
    if q.elements:
        d["elements"] = [question_to_dict(child) for child in q.elements]
    return d


def page_from_dict(d: Dict[str, Any]) -> Page:
    d = _require_mapping(d, "page")
    name = d.get("name")
    if not name:
        raise SurveyDefinitionError(f"page without a name: {d!r}")
    page = Page(name=str(name))
    for attr, key in _PAGE_FIELDS:
        if key in d:
            setattr(page, attr, d[key])
    page.elements = [question_from_dict(el) for el in d.get("elements") or []]
    return page


def page_to_dict(p: Page) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": p.name}
    for attr, key in _PAGE_FIELDS:
        value = getattr(p, attr)
        if value is not None:
            d[key] = value
    d["elements"] = [question_to_dict(q) for q in p.elements]
    return d


def trigger_from_dict(d: Dict[str, Any]) -> Trigger:
    d = _require_mapping(d, "trigger")
    raw_type = _first(d, "type", "operator")
    try:
        trigger_type = TriggerType(str(raw_type).lower())
    except ValueError:
        raise SurveyDefinitionError(f"unknown trigger type: {raw_type!r}")

    expression = _first(d, "expression", "condition")
    if not expression:
        raise SurveyDefinitionError(f"trigger without a condition: {d!r}")

    return Trigger(
        type=trigger_type,
        expression=str(expression),
        set_to_name=_first(d, "setToName", "to"),
        set_value=_first(d, "setValue", "value"),
        from_name=_first(d, "fromName", "from"),
        goto_name=_first(d, "gotoName", "goto"),
        run_expression=_first(d, "runExpression"),
    )


def trigger_to_dict(t: Trigger) -> Dict[str, Any]:
    d: Dict[str, Any] = {"type": t.type.value, "expression": t.expression}
    for key, value in (
        ("setToName", t.set_to_name),
        ("setValue", t.set_value),
        ("fromName", t.from_name),
        ("gotoName", t.goto_name),
        ("runExpression", t.run_expression),
    ):
        if value is not None:
            d[key] = value
    return d


def survey_from_dict(d: Dict[str, Any]) -> Survey:
    d = _require_mapping(d, "survey definition")
    s = Survey(title=d.get("title"), description=d.get("description"))
    s.completed_html = d.get("completedHtml")
    s.metadata = dict(d.get("metadata") or {})

    if d.get("pages"):
        s.pages = [page_from_dict(p) for p in d["pages"]]
    elif d.get("elements"):
        # single-page survey
        s.pages = [Page(name="page1", elements=[question_from_dict(el) for el in d["elements"]])]

    s.triggers = [trigger_from_dict(t) for t in d.get("triggers") or []]

    names: List[str] = s.question_names()
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise SurveyDefinitionError(f"Duplicate question names: {', '.join(duplicates)}")
    return s


def survey_to_dict(s: Survey) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "pages": [page_to_dict(p) for p in s.pages],
        "triggers": [trigger_to_dict(t) for t in s.triggers],
    }
    if s.title is not None:
        d["title"] = s.title
    if s.description is not None:
        d["description"] = s.description
    if s.completed_html is not None:
        d["completedHtml"] = s.completed_html
    if s.metadata:
        d["metadata"] = s.metadata
    return d


def survey_to_json(s: Survey) -> str:
    return json.dumps(survey_to_dict(s), sort_keys=True)


def survey_from_json(s: str) -> Survey:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as exc:
        raise SurveyDefinitionError(f"invalid survey JSON: {exc}")
    return survey_from_dict(d)


def survey_to_yaml(s: Survey) -> str:
    return yaml.safe_dump(survey_to_dict(s))


def survey_from_yaml(s: str) -> Survey:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as exc:
        raise SurveyDefinitionError(f"invalid survey YAML: {exc}")
    return survey_from_dict(d)


def answers_to_json(answers: Dict[str, Any]) -> str:
    return json.dumps(answers, sort_keys=True, default=str)


def answers_from_json(s: Optional[str]) -> Dict[str, Any]:
    if not s:
        return {}
    d = json.loads(s)
    if not isinstance(d, dict):
        raise SurveyDefinitionError("answer set must be a JSON object")
    return d
