"""
Trigger dispatcher.

Each trigger is a two-state machine:

    ARMED  --condition true-->  FIRED   (runs the action once)
    FIRED  --condition false--> ARMED   (no side effect)

Repeated recompute passes therefore never repeat an action while the
condition stays true. Value-writing actions go back through the store,
which queues them and drains them inside the current pass.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional

from surveylogic.errors import (
    ConfigError,
    Diagnostic,
    EvalError,
    LexError,
    ParseError,
    SurveyDefinitionError,
)
from surveylogic.evaluator import ExpressionEvaluator
from surveylogic.expressions import Expression
from surveylogic.model import Trigger, TriggerType
from surveylogic.parser import ExpressionParser

if TYPE_CHECKING:
    from surveylogic.store import SurveyStateStore

logger = logging.getLogger(__name__)

_NEEDS_TARGET = (TriggerType.SET_VALUE, TriggerType.COPY_VALUE)


class TriggerState(Enum):
    ARMED = "armed"
    FIRED = "fired"


@dataclass
class TriggerSlot:
    """Runtime state of one trigger."""

    trigger: Trigger
    index: int
    condition: Optional[Expression] = None
    run_expression: Optional[Expression] = None
    state: TriggerState = TriggerState.ARMED
    disabled: bool = False
    fire_count: int = 0

    @property
    def label(self) -> str:
        return f"trigger[{self.index}]:{self.trigger.label}"


@dataclass(frozen=True)
class TriggerEvent:
    """One executed trigger action, kept in the dispatcher history."""

    trigger: Trigger
    action: TriggerType
    target: Optional[str] = None
    value: Any = None


class TriggerDispatcher:
    """
    Evaluates trigger conditions and fires actions on false->true edges.

    Args:
        triggers: survey-level triggers, evaluated in list order
        parser: parser used to compile conditions once
        evaluator: evaluator for conditions and run expressions
        report: callback receiving every Diagnostic
    """

    def __init__(
        self,
        triggers: Iterable[Trigger],
        parser: ExpressionParser,
        evaluator: ExpressionEvaluator,
        report: Callable[[Diagnostic], None],
    ):
        self.evaluator = evaluator
        self.report = report
        self.slots: List[TriggerSlot] = []
        self.history: List[TriggerEvent] = []

        for index, trigger in enumerate(triggers):
            slot = TriggerSlot(trigger=trigger, index=index)
            self.slots.append(slot)
            slot.condition = self._compile(parser, slot, "expression", trigger.expression)
            if trigger.type == TriggerType.RUN_EXPRESSION:
                slot.run_expression = self._compile(parser, slot, "runExpression", trigger.run_expression)
            if trigger.type in _NEEDS_TARGET and not trigger.set_to_name:
                self._disable(slot, Diagnostic(
                    SurveyDefinitionError(f"{trigger.type.value} trigger needs a target question"),
                    owner=slot.label, prop="setToName",
                ))
            if trigger.type == TriggerType.COPY_VALUE and not trigger.from_name:
                self._disable(slot, Diagnostic(
                    SurveyDefinitionError("copyvalue trigger needs a source question"),
                    owner=slot.label, prop="fromName",
                ))

    def _compile(self, parser, slot: TriggerSlot, prop: str, source: Optional[str]) -> Optional[Expression]:
        try:
            return parser.parse_expression(source or "")
        except (LexError, ParseError) as exc:
            self._disable(slot, Diagnostic(exc, owner=slot.label, prop=prop, source=source))
            return None

    def _disable(self, slot: TriggerSlot, diagnostic: Diagnostic) -> None:
        slot.disabled = True
        self.report(diagnostic)

    def disable(self, slot: TriggerSlot, error: ConfigError) -> None:
        """Permanently switch ``slot`` off (used for TriggerLoop)."""
        if not slot.disabled:
            self._disable(slot, Diagnostic(error, owner=slot.label, prop="expression", source=slot.trigger.expression))

    @property
    def active(self) -> List[TriggerSlot]:
        return [slot for slot in self.slots if not slot.disabled]

    def prime(self, store: "SurveyStateStore") -> None:
        """Record the current truth of every condition without firing."""
        for slot in self.active:
            slot.state = TriggerState.FIRED if self._check(slot, store) else TriggerState.ARMED

    def dispatch(self, store: "SurveyStateStore") -> None:
        """Check every trigger against the settled state; fire on rising edges."""
        for slot in self.slots:
            if slot.disabled:
                continue
            now = self._check(slot, store)
            if now and slot.state == TriggerState.ARMED:
                slot.state = TriggerState.FIRED
                self._execute(slot, store)
            elif not now and slot.state == TriggerState.FIRED:
                slot.state = TriggerState.ARMED

    def _check(self, slot: TriggerSlot, store: "SurveyStateStore") -> bool:
        try:
            return self.evaluator.evaluate_condition(slot.condition, store)
        except EvalError as exc:
            self.report(Diagnostic(exc, owner=slot.label, prop="expression", source=slot.trigger.expression))
            return False

    def _execute(self, slot: TriggerSlot, store: "SurveyStateStore") -> None:
        trigger = slot.trigger
        slot.fire_count += 1
        logger.debug("Firing %s", slot.label)

        if trigger.type == TriggerType.COMPLETE:
            self._record(trigger)
            if store.navigation is not None:
                store.navigation.on_complete(trigger)
            return

        if trigger.type == TriggerType.SKIP:
            self._record(trigger, target=trigger.goto_name)
            if store.navigation is not None:
                store.navigation.on_skip(trigger.goto_name, trigger)
            return

        if trigger.type == TriggerType.SET_VALUE:
            value = copy.deepcopy(trigger.set_value)
        elif trigger.type == TriggerType.COPY_VALUE:
            value = store.get_value(trigger.from_name)
        else:
            try:
                value = self.evaluator.evaluate(slot.run_expression, store)
            except EvalError as exc:
                self.report(Diagnostic(
                    exc, owner=slot.label, prop="runExpression", source=trigger.run_expression,
                ))
                return

        self._record(trigger, target=trigger.set_to_name, value=value)
        if trigger.set_to_name:
            store.queue_write(trigger.set_to_name, value, origin=slot)

    def _record(self, trigger: Trigger, target: Optional[str] = None, value: Any = None) -> None:
        self.history.append(TriggerEvent(trigger=trigger, action=trigger.type, target=target, value=value))
