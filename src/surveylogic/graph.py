"""
Dependency graph between logic bindings and the questions they read.

Used for three things:
    - deciding which bindings must re-run after a value changes
    - ordering them so every writer of a question runs before its readers
    - rejecting value-mutating bindings that feed back into themselves

IMPORTANT: An edge (binding -> question) means "reads", never "owns".
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from surveylogic.errors import ConfigError, ConfigErrorKind
from surveylogic.expressions import (
    BinaryExpression,
    Expression,
    FunctionCall,
    Literal,
    LogicalExpression,
    Reference,
    UnaryExpression,
)

if TYPE_CHECKING:
    from surveylogic.bindings import LogicBinding


def references_of(node: Optional[Expression]) -> FrozenSet[str]:
    """Collect the root question name of every Reference in ``node``."""
    found: Set[str] = set()
    stack = [node] if node is not None else []
    while stack:
        current = stack.pop()
        if isinstance(current, Reference):
            found.add(current.root)
        elif isinstance(current, (BinaryExpression, LogicalExpression)):
            stack.append(current.left)
            stack.append(current.right)
        elif isinstance(current, UnaryExpression):
            stack.append(current.operand)
        elif isinstance(current, FunctionCall):
            stack.extend(current.arguments)
        elif isinstance(current, Literal):
            # Literals don't reference questions
            pass
    return frozenset(found)


def _find_path_dfs(graph: Dict[str, Set[str]], start: str, targets: FrozenSet[str]) -> Optional[List[str]]:
    """Return a path start -> ... -> t for some t in ``targets``, else None."""
    if start in targets:
        return [start]
    visited: Set[str] = {start}
    stack: List[Tuple[str, List[str]]] = [(start, [start])]
    while stack:
        node, path = stack.pop()
        for neighbor in sorted(graph.get(node, ())):
            if neighbor in targets:
                return path + [neighbor]
            if neighbor not in visited:
                visited.add(neighbor)
                stack.append((neighbor, path + [neighbor]))
    return None


def value_edges(bindings: Iterable["LogicBinding"]) -> Dict[str, Set[str]]:
    """reference -> owners written by value-mutating bindings reading it."""
    graph: Dict[str, Set[str]] = defaultdict(set)
    for binding in bindings:
        if binding.writes_value:
            for ref in binding.references:
                graph[ref].add(binding.owner)
    return graph


def find_value_cycles(bindings: Iterable["LogicBinding"]) -> Dict[int, List[str]]:
    """
    Statically detect value-mutating bindings that feed back into themselves.

    A binding is cyclic when the question it writes reaches, through other
    value-mutating bindings, one of the questions it reads.

    Returns:
        binding order -> example cycle path (first and last element equal
        the binding's owner)
    """
    bindings = list(bindings)
    graph = value_edges(bindings)
    cycles: Dict[int, List[str]] = {}
    for binding in bindings:
        if not binding.writes_value:
            continue
        path = _find_path_dfs(graph, binding.owner, binding.references)
        if path:
            cycles[binding.order] = path + [binding.owner]
    return cycles


class DependencyGraph:
    """
    Index from question name to the bindings that read it.

    Construction performs the cycle check: value-mutating bindings whose
    owner sits on a cycle are left out and reported in ``rejected``.
    """

    def __init__(self, bindings: Iterable["LogicBinding"]):
        bindings = sorted(bindings, key=lambda b: b.order)
        cycles = find_value_cycles(bindings)

        self.rejected: List[Tuple["LogicBinding", ConfigError]] = []
        self.bindings: List["LogicBinding"] = []
        for binding in bindings:
            if binding.order in cycles:
                path = " -> ".join(cycles[binding.order])
                error = ConfigError(
                    ConfigErrorKind.CYCLIC_SET_VALUE,
                    f"{binding} depends on its own value ({path})",
                    owner=binding.owner,
                )
                self.rejected.append((binding, error))
            else:
                self.bindings.append(binding)

        self._readers: Dict[str, List["LogicBinding"]] = defaultdict(list)
        self._writers: Dict[str, List["LogicBinding"]] = defaultdict(list)
        for binding in self.bindings:
            for ref in binding.references:
                self._readers[ref].append(binding)
            if binding.writes_value:
                self._writers[binding.owner].append(binding)

        self._levels: Dict[str, int] = {}
        self._rank: Dict[int, int] = {
            b.order: max((self._level(ref) for ref in b.references), default=0) for b in self.bindings
        }
        # every writer of a question runs before every reader of it
        self.ordered: List["LogicBinding"] = sorted(self.bindings, key=self._sort_key)

    def _level(self, name: str) -> int:
        """0 for questions no binding writes, else one above the deepest input."""
        if name in self._levels:
            return self._levels[name]
        # the accepted value edges are acyclic; the placeholder only
        # guards the recursion
        self._levels[name] = 0
        level = 0
        for writer in self._writers.get(name, ()):
            level = max(level, 1 + max((self._level(ref) for ref in writer.references), default=0))
        self._levels[name] = level
        return level

    def _sort_key(self, binding: "LogicBinding") -> Tuple[int, int]:
        return self._rank[binding.order], binding.order

    def affected_bindings(self, changed: Union[str, Iterable[str]]) -> List["LogicBinding"]:
        """Bindings reading any of ``changed``, in definition order."""
        names = [changed] if isinstance(changed, str) else list(changed)
        seen: Dict[int, "LogicBinding"] = {}
        for name in names:
            for binding in self._readers.get(name, ()):
                seen[binding.order] = binding
        return [seen[order] for order in sorted(seen)]

    def propagation_order(
        self, changed: Union[str, Iterable[str]], exclude: Iterable[int] = ()
    ) -> List["LogicBinding"]:
        """
        Every binding transitively affected by ``changed``, writers first.

        A value-mutating binding may change its owner, so the owner's
        readers join the set. Bindings whose order is in ``exclude`` are
        left out and do not propagate.
        """
        skip = set(exclude)
        pending = [changed] if isinstance(changed, str) else list(changed)
        seen_names: Set[str] = set(pending)
        found: Dict[int, "LogicBinding"] = {}
        while pending:
            name = pending.pop()
            for binding in self._readers.get(name, ()):
                if binding.order in skip or binding.order in found:
                    continue
                found[binding.order] = binding
                if binding.writes_value and binding.owner not in seen_names:
                    seen_names.add(binding.owner)
                    pending.append(binding.owner)
        return sorted(found.values(), key=self._sort_key)

    def readers_of(self, name: str) -> List["LogicBinding"]:
        return list(self._readers.get(name, ()))

    def __len__(self) -> int:
        return len(self.bindings)
