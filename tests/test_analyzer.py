"""
Tests for the Survey Analyzer.

Tests verify that the analyzer correctly:
    - Counts pages, questions, triggers and bindings
    - Detects undefined and unreferenced questions
    - Measures expression complexity
    - Reports parse errors and value cycles
"""

from surveylogic.analyzer import analyze_survey
from surveylogic.examples import build_example_survey
from surveylogic.model import Page, Question, Survey, Trigger, TriggerType


def test_simple_survey():
    """Analyze a two-question survey with one visibleIf."""
    survey = Survey(title="Simple", pages=[Page(name="p1", elements=[
        Question(name="age"),
        Question(name="job", visible_if="{age} >= 18"),
    ])])

    report = analyze_survey(survey)

    assert report.survey_name == "Simple"
    assert report.total_pages == 1
    assert report.total_questions == 2
    assert report.total_bindings == 1
    assert report.reference_usage == {"age": 1}
    assert report.undefined_references == set()
    assert report.unreferenced_questions == {"job"}
    assert not report.has_cycles
    assert report.warnings == []


def test_undefined_references():
    """Should detect references to questions that do not exist."""
    survey = Survey(pages=[Page(name="p1", elements=[
        Question(name="q1", visible_if="{ghost} = 1 and {q1} notempty"),
    ])])

    report = analyze_survey(survey)

    assert report.undefined_references == {"ghost"}
    assert any("ghost" in w for w in report.warnings)


def test_trigger_endpoints_count_as_references():
    survey = Survey(
        pages=[Page(name="p1", elements=[
            Question(name="consent"), Question(name="email"), Question(name="contactEmail"),
        ])],
        triggers=[Trigger(
            type=TriggerType.COPY_VALUE, expression="{consent} = true",
            from_name="email", set_to_name="contactEmail",
        )],
    )

    report = analyze_survey(survey)

    assert report.total_triggers == 1
    assert report.unreferenced_questions == set()


def test_expression_complexity():
    survey = Survey(pages=[Page(name="p1", elements=[
        Question(name="a", visible_if="{b} = 1"),
        Question(name="b", visible_if="(({a} + 1) * 2 - 3) / 4 > 1 and {a} < 10"),
    ])])

    report = analyze_survey(survey)

    assert report.max_expression_depth == 6
    assert report.total_expression_nodes == 3 + 15
    assert report.avg_expression_depth == (1 + 6) / 2
    assert any("complexity" in w for w in report.warnings)


def test_parse_errors_are_reported():
    survey = Survey(
        pages=[Page(name="p1", elements=[Question(name="q1", visible_if="{a} >=")])],
        triggers=[Trigger(type=TriggerType.COMPLETE, expression="'open")],
    )

    report = analyze_survey(survey)

    assert len(report.parse_errors) == 2
    assert report.parse_errors[0].startswith("[q1.visibleIf]")
    assert report.parse_errors[1].startswith("[trigger[0].expression]")
    assert "2 expression(s) failed to parse" in report.warnings


def test_value_cycle():
    survey = Survey(pages=[Page(name="p1", elements=[
        Question(name="a", set_value_expression="{b} + 1"),
        Question(name="b", set_value_expression="{a} + 1"),
    ])])

    report = analyze_survey(survey)

    assert report.has_cycles
    assert report.cycle_example == ["a", "b", "a"]
    assert "Cycle detected: a -> b -> a" in report.warnings


def test_missing_skip_target():
    survey = Survey(
        pages=[Page(name="p1", elements=[Question(name="q1")])],
        triggers=[Trigger(type=TriggerType.SKIP, expression="{q1} = 1", goto_name="nowhere")],
    )

    report = analyze_survey(survey)

    assert "Skip target does not exist: nowhere" in report.warnings


def test_example_survey_is_clean():
    report = analyze_survey(build_example_survey())

    assert report.undefined_references == set()
    assert report.parse_errors == []
    assert not report.has_cycles
