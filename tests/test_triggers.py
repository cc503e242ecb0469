"""
Tests for the edge-triggered trigger dispatcher.

These tests verify:
    - Actions run only on false -> true transitions
    - Triggers are primed at session start without firing
    - Each action type
    - Broken triggers are disabled, not fatal
    - The trigger loop cap
"""

import pytest

from surveylogic.config import EngineConfig
from surveylogic.model import Page, Question, Survey, Trigger, TriggerType
from surveylogic.store import SurveyStateStore
from surveylogic.triggers import TriggerState


class FakeNavigation:
    def __init__(self):
        self.skips = []
        self.completions = []

    def on_skip(self, target, trigger=None):
        self.skips.append(target)

    def on_complete(self, trigger=None):
        self.completions.append(trigger)


def make_store(triggers, answers=None, config=None, navigation=None):
    survey = Survey(
        pages=[Page(name="p1", elements=[
            Question(name="consent"),
            Question(name="email"),
            Question(name="contactEmail"),
            Question(name="total"),
        ])],
        triggers=triggers,
    )
    return SurveyStateStore(survey, answers=answers, config=config, navigation=navigation)


COPY_EMAIL = Trigger(
    type=TriggerType.COPY_VALUE,
    expression="{consent} = true",
    from_name="email",
    set_to_name="contactEmail",
)


class TestCopyValue:
    """copyvalue from email to contactEmail when consent = true."""

    def test_copies_once(self):
        store = make_store([COPY_EMAIL])
        store.set_value("email", "ana@example.com")
        store.set_value("consent", True)
        assert store.get_value("contactEmail") == "ana@example.com"

        store.set_value("email", "rui@example.com")
        assert store.get_value("contactEmail") == "ana@example.com"
        assert store.triggers.slots[0].fire_count == 1

    def test_refires_on_each_rising_edge(self):
        store = make_store([COPY_EMAIL])
        store.set_value("email", "a@example.com")
        for value in (False, True, False, True):
            store.set_value("consent", value)
        assert store.triggers.slots[0].fire_count == 2

    def test_falling_edge_rearms_without_action(self):
        store = make_store([COPY_EMAIL])
        store.set_value("email", "a@example.com")
        store.set_value("consent", True)
        store.set_value("contactEmail", "manual@example.com")
        store.set_value("consent", False)
        assert store.triggers.slots[0].state == TriggerState.ARMED
        assert store.get_value("contactEmail") == "manual@example.com"

    def test_copy_is_deep(self):
        store = make_store([Trigger(
            type=TriggerType.COPY_VALUE, expression="{consent} = true", from_name="email", set_to_name="total",
        )])
        store.set_value("email", ["a", "b"])
        store.set_value("consent", True)
        store.set_value("email", ["c"])
        assert store.get_value("total") == ["a", "b"]


class TestPriming:

    def test_true_condition_at_start_does_not_fire(self):
        store = make_store([COPY_EMAIL], answers={"consent": True, "email": "a@example.com"})
        assert store.get_value("contactEmail") is None
        assert store.triggers.slots[0].state == TriggerState.FIRED

    def test_fires_after_rearming(self):
        store = make_store([COPY_EMAIL], answers={"consent": True, "email": "a@example.com"})
        store.set_value("consent", False)
        store.set_value("consent", True)
        assert store.get_value("contactEmail") == "a@example.com"


class TestActions:

    def test_setvalue(self):
        store = make_store([Trigger(
            type=TriggerType.SET_VALUE, expression="{consent} = false", set_to_name="email", set_value="none",
        )])
        store.set_value("consent", False)
        assert store.get_value("email") == "none"

    def test_runexpression_writes_result(self):
        store = make_store([Trigger(
            type=TriggerType.RUN_EXPRESSION,
            expression="{consent} = true",
            run_expression="'Hello ' + {email}",
            set_to_name="total",
        )])
        store.set_value("email", "Ana")
        store.set_value("consent", True)
        assert store.get_value("total") == "Hello Ana"

    def test_runexpression_without_target(self):
        store = make_store([Trigger(
            type=TriggerType.RUN_EXPRESSION, expression="{consent} = true", run_expression="1 + 1",
        )])
        store.set_value("consent", True)
        event = store.triggers.history[0]
        assert event.action == TriggerType.RUN_EXPRESSION
        assert event.value == 2

    def test_skip_and_complete_reach_navigation(self):
        navigation = FakeNavigation()
        store = make_store(
            [
                Trigger(type=TriggerType.SKIP, expression="{consent} = false", goto_name="total"),
                Trigger(type=TriggerType.COMPLETE, expression="{email} = 'done'"),
            ],
            navigation=navigation,
        )
        store.set_value("consent", False)
        store.set_value("email", "done")
        assert navigation.skips == ["total"]
        assert len(navigation.completions) == 1
        assert navigation.completions[0].type == TriggerType.COMPLETE

    def test_navigation_actions_without_collaborator(self):
        store = make_store([Trigger(type=TriggerType.COMPLETE, expression="{email} = 'done'")])
        store.set_value("email", "done")
        assert [e.action for e in store.triggers.history] == [TriggerType.COMPLETE]

    def test_triggers_run_in_list_order(self):
        store = make_store([
            Trigger(type=TriggerType.SET_VALUE, expression="{consent} = true", set_to_name="total", set_value=1),
            Trigger(type=TriggerType.SET_VALUE, expression="{consent} = true", set_to_name="total", set_value=2),
        ])
        store.set_value("consent", True)
        assert store.get_value("total") == 2


class TestBrokenTriggers:

    def test_unparseable_condition_disables_trigger(self):
        store = make_store([
            Trigger(type=TriggerType.SET_VALUE, expression="{consent} =", set_to_name="total", set_value=1),
            COPY_EMAIL,
        ])
        assert store.triggers.slots[0].disabled
        assert store.diagnostics[0].kind == "ParseError"
        store.set_value("email", "x@example.com")
        store.set_value("consent", True)
        assert store.get_value("total") is None
        assert store.get_value("contactEmail") == "x@example.com"

    def test_missing_target_disables_trigger(self):
        store = make_store([Trigger(type=TriggerType.SET_VALUE, expression="true", set_value=1)])
        assert store.triggers.slots[0].disabled
        assert store.diagnostics[0].kind == "SurveyDefinitionError"

    def test_condition_eval_error_counts_as_false(self):
        store = make_store([Trigger(
            type=TriggerType.SET_VALUE, expression="10 / {total} > 1", set_to_name="email", set_value="x",
        )])
        store.set_value("total", 0)
        assert store.get_value("email") is None
        assert "DivisionByZero" in [d.kind for d in store.diagnostics]
        store.set_value("total", 2)
        assert store.get_value("email") == "x"


class TestTriggerLoop:

    @pytest.fixture
    def store(self):
        return make_store(
            [
                Trigger(type=TriggerType.SET_VALUE, expression="{total} = 1", set_to_name="total", set_value=2),
                Trigger(type=TriggerType.SET_VALUE, expression="{total} = 2", set_to_name="total", set_value=1),
            ],
            config=EngineConfig(max_passes=3),
        )

    def test_loop_is_cut_off(self, store):
        store.set_value("total", 1)
        loops = [d for d in store.diagnostics if d.kind == "TriggerLoop"]
        assert len(loops) == 1
        assert loops[0].owner == "trigger[1]:setvalue:total"
        assert store.triggers.slots[1].disabled
        assert not store.triggers.slots[0].disabled
        assert store.get_value("total") == 2

    def test_remaining_triggers_keep_working(self, store):
        store.set_value("total", 1)
        store.set_value("total", 5)
        store.set_value("total", 1)
        assert store.get_value("total") == 2
        assert len([d for d in store.diagnostics if d.kind == "TriggerLoop"]) == 1
