"""Typed dependency graph of resource nodes."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from ..constants import STATE_APPLIED
from ..resources.models import SiteConfig
from ..services.base import SiteProvider
from ..utils.errors import GraphCycleError, GraphOrderingError


@dataclass
class NodeResult:
    """Outcome of applying one node.

    Attributes:
        outputs: Value handed to dependent nodes
        changed: Whether any mutating provider call was made
        state: Node state reached (applied, or issued for the certificate wait)
        record: Identifiers to persist in the state snapshot
    """

    outputs: Any = None
    changed: bool = False
    state: str = STATE_APPLIED
    record: dict[str, Any] = field(default_factory=dict)


@dataclass
class RunContext:
    """Everything a node sees during one reconciliation run."""

    provider: SiteProvider
    config: SiteConfig
    state: dict[str, dict[str, Any]]
    cancel_event: threading.Event = field(default_factory=threading.Event)
    poll_interval: float = 15.0
    results: dict[str, NodeResult] = field(default_factory=dict)

    def output(self, name: str) -> Any:
        """Outputs of an already applied node."""
        return self.results[name].outputs

    def recorded(self, name: str, key: str) -> Any:
        """Identifier persisted for a node by a previous run, if any."""
        return self.state.get(name, {}).get(key)


@dataclass(frozen=True)
class ResourceNode:
    name: str
    kind: str
    apply: Callable[[RunContext], NodeResult]
    destroy: Callable[[RunContext], bool] | None = None
    depends_on: tuple[str, ...] = ()
    terminal_state: str = STATE_APPLIED


class ResourceGraph:
    """Directed acyclic graph of resource nodes with explicitly declared edges.

    The constructor accepts nodes in any order. The graph is checked every time
    it changes: unknown dependencies and cycles are rejected when the offending
    node is added, and the graph is left as it was.
    """

    def __init__(self, nodes: Iterable[ResourceNode] = ()) -> None:
        self._nodes: dict[str, ResourceNode] = {}
        nodes = list(nodes)
        for node in nodes:
            self._insert(node)
        self._validate()

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, name: str) -> ResourceNode:
        return self._nodes[name]

    @property
    def names(self) -> list[str]:
        return list(self._nodes)

    def _insert(self, node: ResourceNode) -> None:
        if node.name in self._nodes:
            raise ValueError(f"Duplicate resource node {node.name}")
        if node.name in node.depends_on:
            raise GraphCycleError(f"Resource node {node.name} depends on itself")
        self._nodes[node.name] = node

    def add_node(self, node: ResourceNode) -> None:
        """Add a node whose dependencies are already in the graph.

        Raises:
            ValueError: On a duplicate name
            GraphOrderingError: If a dependency is unknown
            GraphCycleError: If the node would close a cycle
        """
        self._insert(node)
        try:
            self._validate()
        except Exception:
            del self._nodes[node.name]
            raise

    def _validate(self) -> None:
        for node in self._nodes.values():
            for dep in node.depends_on:
                if dep not in self._nodes:
                    raise GraphOrderingError(f"Resource node {node.name} depends on unknown node {dep}")

        # Iterative DFS with colouring; the path gives a readable cycle
        white, grey, black = 0, 1, 2
        colour = {name: white for name in self._nodes}
        for root in self._nodes:
            if colour[root] != white:
                continue
            path = [root]
            stack = [iter(self._nodes[root].depends_on)]
            colour[root] = grey
            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    colour[path.pop()] = black
                    stack.pop()
                    continue
                if dep not in self._nodes:
                    continue
                if colour[dep] == grey:
                    cycle = path[path.index(dep):] + [dep]
                    raise GraphCycleError(f"Dependency cycle: {' -> '.join(cycle)}")
                if colour[dep] == white:
                    colour[dep] = grey
                    path.append(dep)
                    stack.append(iter(self._nodes[dep].depends_on))

    def dependencies(self, name: str) -> tuple[str, ...]:
        return self._nodes[name].depends_on

    def dependents(self, name: str) -> list[str]:
        return [node.name for node in self._nodes.values() if name in node.depends_on]

    def ancestors(self, name: str) -> set[str]:
        """All nodes the given node transitively depends on."""
        seen: set[str] = set()
        pending = list(self._nodes[name].depends_on)
        while pending:
            dep = pending.pop()
            if dep in seen:
                continue
            seen.add(dep)
            pending.extend(self._nodes[dep].depends_on)
        return seen

    def requires(self, name: str, other: str) -> bool:
        """Whether name cannot start before other has been applied."""
        return other in self.ancestors(name)

    def topological_order(self) -> list[str]:
        """Leaves first; ties broken by declaration order so runs are deterministic."""
        position = {name: idx for idx, name in enumerate(self._nodes)}
        remaining = {name: len(node.depends_on) for name, node in self._nodes.items()}
        ready = sorted((name for name, count in remaining.items() if count == 0), key=position.get)
        order: list[str] = []
        while ready:
            name = ready.pop(0)
            order.append(name)
            for dependent in self.dependents(name):
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    ready.append(dependent)
            ready.sort(key=position.get)
        return order

    def levels(self) -> list[list[str]]:
        """Group nodes into waves that may run in parallel."""
        depth: dict[str, int] = {}
        for name in self.topological_order():
            deps = self._nodes[name].depends_on
            depth[name] = 1 + max((depth[dep] for dep in deps), default=-1)
        waves: list[list[str]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
        for name in self.topological_order():
            waves[depth[name]].append(name)
        return waves
