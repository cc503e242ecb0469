"""
Test the example survey end to end.

Drives a session through the example definition: age gating,
conditional requirement, the computed household size and the
copy/complete triggers.
"""

from surveylogic.examples import build_example_survey
from surveylogic.navigation import SurveyNavigator
from surveylogic.store import SurveyStateStore
from surveylogic.validators import validate_survey


def test_example_survey_structure():
    survey = build_example_survey()

    assert [p.name for p in survey.pages] == ["about", "household"]
    assert survey.get_question("employment").visible_if == "{age} >= 18"
    assert len(survey.triggers) == 2


def test_adult_session():
    store = SurveyStateStore(build_example_survey())
    nav = SurveyNavigator(store)

    assert store.diagnostics == []
    assert not nav.can_go_next()

    store.set_value("firstName", "Ana")
    store.set_value("age", 34)
    assert store.is_visible("employment")
    assert nav.can_go_next()

    store.set_value("employment", "Other")
    assert store.is_required("employmentOther")
    assert not nav.can_go_next()
    store.set_value("employmentOther", "Freelance")

    assert nav.next_page().name == "household"
    assert store.is_required("household")
    # the computed household size already answers the page
    assert store.is_page_satisfied("household")

    store.set_value("adults", 2)
    store.set_value("children", 1)
    assert store.get_value("householdSize") == 3

    store.set_value("email", "ana@example.com")
    store.set_value("consent", True)
    assert store.get_value("contactEmail") == "ana@example.com"
    assert not store.is_enabled("contactEmail")

    assert validate_survey(store).is_valid
    assert not nav.completed
    assert store.resolve_display_text(store.survey.completed_html) == "<p>Thank you, Ana!</p>"


def test_minor_completes_early():
    store = SurveyStateStore(build_example_survey())
    nav = SurveyNavigator(store)

    store.set_value("age", 15)

    assert nav.completed
    assert not store.is_visible("employment")
    assert not store.is_required("household")


def test_custom_adult_age():
    store = SurveyStateStore(build_example_survey(adult_age=21))
    store.set_value("age", 19)
    assert not store.is_visible("employment")
