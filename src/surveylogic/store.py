"""
Survey State Store

One instance per active survey session. Owns the answers, the derived
flags of every question and page, the bindings and the trigger
dispatcher.

A top-level set_value runs one recompute pass:
    1. the write is queued and the queue drained
    2. each applied write re-runs every binding downstream of it, writers
       before readers, until nothing is stale (capped by max_passes)
    3. triggers are checked against the settled state; their writes join
       the queue
    4. subscribers are notified once with every id whose value or
       effective flag changed

IMPORTANT:
    No error escapes a pass. Evaluation failures fall back to false /
    undefined and are collected as diagnostics; configuration failures
    disable the offending binding or trigger.
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set, Tuple

from surveylogic.bindings import BindingKind, LogicBinding, OwnerKind, compile_bindings
from surveylogic.config import EngineConfig
from surveylogic.errors import ConfigError, ConfigErrorKind, Diagnostic, EvalError, EvalErrorKind
from surveylogic.evaluator import ExpressionEvaluator, resolve_path
from surveylogic.expressions import Reference
from surveylogic.graph import DependencyGraph
from surveylogic.model import Page, Question, Survey
from surveylogic.parser import ExpressionParser, TextChunk, parse_interpolated_text
from surveylogic.triggers import TriggerDispatcher, TriggerSlot
from surveylogic.values import is_empty, is_truthy, to_text

logger = logging.getLogger(__name__)

Listener = Callable[[Set[str]], None]

_FLAG_ATTRS = {
    BindingKind.VISIBLE_IF: "visible",
    BindingKind.ENABLE_IF: "enabled",
    BindingKind.REQUIRED_IF: "conditionally_required",
}


@dataclass
class Flags:
    """Own (not effective) flags of one question or page."""

    visible: bool = True
    enabled: bool = True
    static_required: bool = False
    conditionally_required: bool = False

    @property
    def required(self) -> bool:
        return self.static_required or self.conditionally_required


def _same_value(left: Any, right: Any) -> bool:
    # 1 == True in Python; a bool replacing a number is still a change
    return type(left) is type(right) and left == right


def _state_changed(before, after) -> bool:
    if before is None or after is None:
        return before is not after
    return not _same_value(before[0], after[0]) or before[1:] != after[1:]


class SurveyStateStore:
    """
    Reactive answer store for one survey session.

    Args:
        survey: the loaded definition
        answers: initial answer set from the persistence collaborator
        config: EngineConfig; defaults are read from ``survey.metadata``
        navigation: collaborator receiving skip / complete actions
    """

    def __init__(
        self,
        survey: Survey,
        answers: Optional[Dict[str, Any]] = None,
        config: Optional[EngineConfig] = None,
        navigation=None,
    ):
        self.survey = survey
        self.config = config if config is not None else EngineConfig.from_mapping(survey.metadata)
        self.navigation = navigation
        self.parser = ExpressionParser()
        self.evaluator = ExpressionEvaluator(self.config.functions)

        self._values: Dict[str, Any] = {
            name: copy.deepcopy(value) for name, value in (answers or {}).items() if value is not None
        }
        self._diagnostics: List[Diagnostic] = []
        self._listeners: List[Listener] = []
        self._queue: Deque[Tuple[str, Any, Optional[TriggerSlot]]] = deque()
        self._draining = False
        self._disabled: Set[int] = set()
        # evaluations currently failing, so a repeated failure is reported once
        self._failing: Dict[Tuple[int, str], EvalErrorKind] = {}

        self._questions: Dict[str, Question] = {}
        self._pages: Dict[str, Page] = {}
        self._ancestors: Dict[str, List[str]] = {}
        self._flags: Dict[str, Flags] = {}
        self._index_definition()

        bindings, diagnostics = compile_bindings(survey, self.parser)
        # already logged by the compiler
        self._diagnostics.extend(diagnostics)

        self.graph = DependencyGraph(bindings)
        for binding, error in self.graph.rejected:
            self.report(Diagnostic(error, owner=binding.owner, prop=binding.prop, source=binding.source))
        self._defaults: Dict[str, LogicBinding] = {
            b.owner: b for b in self.graph.bindings if b.kind == BindingKind.DEFAULT_VALUE_EXPRESSION
        }

        self.triggers = TriggerDispatcher(survey.triggers, self.parser, self.evaluator, self.report)

        self._initialize()

    def _index_definition(self) -> None:
        def walk(elements: Iterable[Question], ancestors: List[str]) -> None:
            for question in elements:
                self._questions[question.name] = question
                self._ancestors[question.name] = list(ancestors)
                self._flags[question.name] = Flags(static_required=question.is_required)
                if question.elements:
                    walk(question.elements, [question.name] + ancestors)

        for page in self.survey.pages:
            self._pages[page.name] = page
            self._flags[page.name] = Flags()
            walk(page.elements, [page.name])

    def _initialize(self) -> None:
        for question in self._questions.values():
            if question.name not in self._values and question.default_value is not None:
                self._values[question.name] = copy.deepcopy(question.default_value)

        stale = self._apply_bindings(self.graph.ordered)
        self._settle(stale)
        self.triggers.prime(self)
        logger.debug(
            "Session started: %d questions, %d bindings, %d triggers",
            len(self._questions), len(self.graph), len(self.triggers.slots),
        )

    # ------------------------------------------------------------------
    # Evaluation context
    # ------------------------------------------------------------------

    def resolve(self, reference: Reference) -> Any:
        return resolve_path(self._values, reference.segments)

    def today(self):
        return self.config.clock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_value(self, name: str) -> Any:
        return copy.deepcopy(self._values.get(name))

    @property
    def values(self) -> Dict[str, Any]:
        return self.snapshot()

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the current answers, for persistence."""
        return copy.deepcopy(self._values)

    def is_visible(self, name: str) -> bool:
        if name not in self._flags:
            return True
        if not self._flags[name].visible:
            return False
        return all(self._flags[a].visible for a in self._ancestors.get(name, ()))

    def is_enabled(self, name: str) -> bool:
        if name not in self._flags:
            return True
        if not self._flags[name].enabled:
            return False
        return all(self._flags[a].enabled for a in self._ancestors.get(name, ()))

    def is_required(self, name: str) -> bool:
        """
        Effective required flag.

        Questions: (isRequired or requiredIf) and effectively visible.
        Pages: the page's own requiredIf.
        """
        flags = self._flags.get(name)
        if flags is None:
            return False
        if name in self._pages:
            return flags.required
        return flags.required and self.is_visible(name)

    def is_page_satisfied(self, page_name: str) -> bool:
        """A page-level requirement holds when any question on it is answered."""
        page = self._pages.get(page_name)
        if page is None:
            return False
        return any(not is_empty(self._values.get(q.name)) for q in page.iter_questions())

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def resolve_display_text(self, template: Optional[str]) -> str:
        """Replace every ``{reference}`` in ``template`` with its text value."""
        if not template:
            return ""
        out = []
        for part in parse_interpolated_text(template):
            if isinstance(part, TextChunk):
                out.append(part.text)
            else:
                out.append(to_text(self.evaluator.evaluate(part, self)))
        return "".join(out)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_value(self, name: str, value: Any) -> None:
        """Write one answer and run a recompute pass."""
        self.queue_write(name, value)

    def queue_write(self, name: str, value: Any, origin: Optional[TriggerSlot] = None) -> None:
        """
        Queue a write; drain the queue unless a pass is already running.

        ``origin`` is the trigger slot producing the write, if any. The
        dispatcher uses this during a pass; hosts call set_value.
        """
        self._queue.append((name, copy.deepcopy(value), origin))
        if self._draining:
            return
        self._drain()

    def _drain(self) -> None:
        self._draining = True
        before = self._effective_state()
        trigger_writes = 0
        try:
            while self._queue:
                name, value, origin = self._queue.popleft()
                if origin is not None:
                    if origin.disabled:
                        continue
                    trigger_writes += 1
                    if trigger_writes > self.config.max_passes:
                        self._trigger_loop(origin)
                        continue
                if not self._store(name, value):
                    continue
                logger.debug("Recompute after %s changed", name)
                self._settle({name})
                self.triggers.dispatch(self)
        finally:
            self._draining = False

        after = self._effective_state()
        changed = {key for key in set(before) | set(after) if _state_changed(before.get(key), after.get(key))}
        if changed:
            for listener in list(self._listeners):
                listener(changed)

    def _trigger_loop(self, origin: TriggerSlot) -> None:
        error = ConfigError(
            ConfigErrorKind.TRIGGER_LOOP,
            f"more than {self.config.max_passes} trigger writes in one pass; disabling {origin.label}",
            owner=origin.label,
        )
        self.triggers.disable(origin, error)
        self._queue = deque(item for item in self._queue if item[2] is not origin)

    def _store(self, name: str, value: Any) -> bool:
        """Write ``value``; return False when nothing changed."""
        current = self._values.get(name)
        if value is None:
            if current is None:
                return False
            del self._values[name]
            return True
        if _same_value(current, value):
            return False
        self._values[name] = value
        return True

    def _effective_state(self) -> Dict[str, Tuple[Any, bool, bool, bool]]:
        # stored values are replaced on write, never mutated, so no copies
        state = {
            name: (self._values.get(name), self.is_visible(name), self.is_enabled(name), self.is_required(name))
            for name in self._flags
        }
        for name, value in self._values.items():
            if name not in state:
                # free variables (answers without a question definition)
                state[name] = (value, True, True, False)
        return state

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def _settle(self, changed: Set[str]) -> None:
        """
        Re-run every binding downstream of ``changed`` until nothing is stale.

        One pass covers the whole transitive closure in dependency order, so
        an acyclic chain of any depth settles in a single pass. max_passes
        only bounds the passes needed for writes a reader had already seen.
        """
        pending = set(changed)
        passes = 0
        while pending:
            affected = self.graph.propagation_order(pending, exclude=self._disabled)
            if not affected:
                return
            passes += 1
            if passes > self.config.max_passes:
                for binding in affected:
                    self._disable_unstable(binding)
                return
            pending = self._apply_bindings(affected)

    def _disable_unstable(self, binding: LogicBinding) -> None:
        self._disabled.add(binding.order)
        error = ConfigError(
            ConfigErrorKind.UNSTABLE_LOGIC,
            f"{binding} still changing after {self.config.max_passes} passes",
            owner=binding.owner,
        )
        self.report(Diagnostic(error, owner=binding.owner, prop=binding.prop, source=binding.source))

    def _apply_bindings(self, bindings: Iterable[LogicBinding]) -> Set[str]:
        """
        Evaluate ``bindings`` in order.

        Returns the names whose value changed after one of their readers
        had already run in this pass; those readers hold stale results.
        """
        ran: Set[int] = set()
        stale: Set[str] = set()
        for binding in bindings:
            if binding.order in self._disabled:
                continue
            ran.add(binding.order)
            if binding.kind in _FLAG_ATTRS:
                setattr(self._flags[binding.owner], _FLAG_ATTRS[binding.kind], self._condition(binding))
                continue
            if binding.owner_kind != OwnerKind.QUESTION:
                continue
            if self._apply_value_binding(binding):
                if any(reader.order in ran for reader in self.graph.readers_of(binding.owner)):
                    stale.add(binding.owner)
        return stale

    def _apply_value_binding(self, binding: LogicBinding) -> bool:
        owner = binding.owner

        if binding.kind == BindingKind.SET_VALUE_EXPRESSION:
            if binding.condition is not None and not self._condition(binding, binding.condition):
                return False
            return self._store(owner, self._value(binding))

        if binding.kind == BindingKind.SET_VALUE_IF:
            if not self._condition(binding):
                return False
            return self._store(owner, copy.deepcopy(binding.literal))

        if binding.kind == BindingKind.DEFAULT_VALUE_EXPRESSION:
            if self._values.get(owner) is not None:
                return False
            return self._store(owner, self._value(binding))

        if binding.kind == BindingKind.RESET_VALUE_IF:
            if not self._condition(binding) or self._values.get(owner) is None:
                return False
            return self._store(owner, self._default_for(owner))

        return False

    def _default_for(self, name: str) -> Any:
        binding = self._defaults.get(name)
        if binding is not None and binding.order not in self._disabled:
            value = self._value(binding)
            if value is not None:
                return value
        return copy.deepcopy(self._questions[name].default_value)

    def _condition(self, binding: LogicBinding, node=None) -> bool:
        part = "expression" if node is None else "condition"
        try:
            result = self.evaluator.evaluate_condition(node if node is not None else binding.expression, self)
        except EvalError as exc:
            self._failed((binding.order, part), exc, binding.owner, binding.prop, binding.source)
            return False
        self._failing.pop((binding.order, part), None)
        return result

    def _value(self, binding: LogicBinding) -> Any:
        try:
            result = copy.deepcopy(self.evaluator.evaluate(binding.expression, self))
        except EvalError as exc:
            self._failed((binding.order, "expression"), exc, binding.owner, binding.prop, binding.source)
            return None
        self._failing.pop((binding.order, "expression"), None)
        return result

    def _failed(self, key, error: EvalError, owner, prop, source) -> None:
        """Report ``error`` unless the same evaluation already failed the same way."""
        if self._failing.get(key) == error.kind:
            return
        self._failing[key] = error.kind
        self.report(Diagnostic(error, owner=owner, prop=prop, source=source))

    def report(self, diagnostic: Diagnostic) -> None:
        """Collect a non-fatal problem."""
        logger.warning("%s", diagnostic)
        self._diagnostics.append(diagnostic)
