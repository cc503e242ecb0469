"""
Tests for page navigation.
"""

import pytest

from surveylogic.model import Page, Question, Survey, Trigger, TriggerType
from surveylogic.navigation import SurveyNavigator
from surveylogic.store import SurveyStateStore


@pytest.fixture
def survey():
    return Survey(
        pages=[
            Page(name="start", elements=[Question(name="age", is_required=True)]),
            Page(name="adults", visible_if="{age} >= 18", elements=[Question(name="job")]),
            Page(name="minors", visible_if="{age} < 18", elements=[Question(name="school")]),
            Page(name="end", elements=[Question(name="comments")]),
        ],
        triggers=[
            Trigger(type=TriggerType.SKIP, expression="{age} > 99", goto_name="comments"),
            Trigger(type=TriggerType.COMPLETE, expression="{comments} = 'bye'"),
        ],
    )


@pytest.fixture
def nav(survey):
    return SurveyNavigator(SurveyStateStore(survey))


class TestPaging:

    def test_starts_on_first_page(self, nav):
        assert nav.current_page_index == 0
        assert nav.current_page.name == "start"

    def test_next_skips_hidden_pages(self, nav):
        nav.store.set_value("age", 30)
        assert nav.next_page().name == "adults"
        assert nav.next_page().name == "end"

    def test_next_for_minor(self, nav):
        nav.store.set_value("age", 12)
        assert nav.next_page().name == "minors"

    def test_previous_skips_hidden_pages(self, nav):
        nav.store.set_value("age", 12)
        nav.next_page()
        nav.next_page()
        assert nav.current_page.name == "end"
        assert nav.previous_page().name == "minors"
        assert nav.previous_page().name == "start"
        assert nav.previous_page().name == "start"

    def test_last_page_stays_put(self, nav):
        nav.current_page_index = 3
        assert nav.next_page().name == "end"

    def test_has_visible_pages_after_current(self, nav):
        nav.store.set_value("age", 30)
        nav.current_page_index = 2
        assert nav.has_visible_pages_after_current() is True
        nav.current_page_index = 3
        assert nav.has_visible_pages_after_current() is False


class TestCanGoNext:

    def test_required_question_blocks(self, nav):
        assert nav.can_go_next() is False
        nav.store.set_value("age", 40)
        assert nav.can_go_next() is True

    def test_hidden_page_always_passes(self, nav):
        nav.current_page_index = 1
        assert nav.can_go_next() is True


class TestTriggerTargets:

    def test_navigator_registers_itself(self, nav):
        assert nav.store.navigation is nav

    def test_skip_to_question_page(self, nav):
        nav.store.set_value("age", 120)
        assert nav.current_page.name == "end"

    def test_complete(self, nav):
        nav.store.set_value("comments", "bye")
        assert nav.completed is True
        assert nav.completed_by.type == TriggerType.COMPLETE

    def test_go_to_page_name(self, nav):
        assert nav.go_to("minors") is True
        assert nav.current_page.name == "minors"

    def test_go_to_unknown(self, nav):
        assert nav.go_to("nowhere") is False
        assert nav.current_page_index == 0


def test_empty_survey():
    nav = SurveyNavigator(SurveyStateStore(Survey()))
    assert nav.current_page is None
    assert nav.next_page() is None
    assert nav.can_go_next() is True
