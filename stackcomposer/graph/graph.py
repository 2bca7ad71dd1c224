"""Finalized, immutable dependency graph."""

from __future__ import annotations

from collections.abc import Iterator

from stackcomposer.graph.models import GraphEdge
from stackcomposer.models.resources import ResourceKind, ResourceNode


class DependencyGraph:
    """Resource nodes in topological order plus the edges between them.

    Only ``DependencyGraphBuilder.finalize`` creates instances; holding one
    means every node is finalized and its properties are fully resolved.
    Iteration and every query that returns several nodes follow the
    topological order.
    """

    def __init__(self, stack_name: str, nodes: list[ResourceNode], edges: list[GraphEdge]) -> None:
        self._stack_name = stack_name
        self._nodes: dict[str, ResourceNode] = {node.name: node for node in nodes}
        self._position = {name: pos for pos, name in enumerate(self._nodes)}
        self._edges = tuple(edges)

        dependents: dict[str, list[str]] = {name: [] for name in self._nodes}
        for node in nodes:
            for dep in node.dependencies:
                dependents[dep].append(node.name)
        self._dependents = {
            name: tuple(sorted(names, key=self._position.__getitem__)) for name, names in dependents.items()
        }
        self._by_path = {node.path: node for node in nodes}

    @property
    def stack_name(self) -> str:
        return self._stack_name

    @property
    def order(self) -> tuple[str, ...]:
        return tuple(self._nodes)

    @property
    def nodes(self) -> tuple[ResourceNode, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> tuple[GraphEdge, ...]:
        return self._edges

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len({(edge.source, edge.target) for edge in self._edges})

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, name: str) -> ResourceNode:
        return self._nodes[name]

    def get(self, name: str) -> ResourceNode | None:
        return self._nodes.get(name)

    def position(self, name: str) -> int:
        """Index of *name* in the topological order."""
        return self._position[name]

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        return self._nodes[name].dependencies

    def dependents_of(self, name: str) -> tuple[str, ...]:
        return self._dependents[name]

    def ancestors_of(self, name: str) -> tuple[str, ...]:
        """Every node *name* transitively depends on, in topological order."""
        seen: set[str] = set()
        stack = list(self._nodes[name].dependencies)
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._nodes[current].dependencies)
        return tuple(sorted(seen, key=self._position.__getitem__))

    def nodes_of_kind(self, kind: ResourceKind) -> tuple[ResourceNode, ...]:
        return tuple(node for node in self._nodes.values() if node.kind == kind)

    def find_by_path(self, path: str) -> ResourceNode | None:
        return self._by_path.get(path)

    def paths(self) -> tuple[str, ...]:
        return tuple(self._by_path)
