"""Two-phase dependency graph builder.

Phase 1 (``add_node``) only records declarations, so a resource may depend
on one that is declared later. Phase 2 (``finalize``) looks every reference
up by name, orders the nodes and resolves their properties:

    1. collect edges       -- dependsOn + attribute references; unknown names fail
    2. check remote values -- every remote alias used must already be resolved
    3. order               -- Kahn's algorithm, ties broken by declaration order
    4. resolve properties  -- in topological order, so referenced attributes
                              are always final when read

Finalization is all-or-nothing: any failure leaves no graph behind.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from stackcomposer.errors import (
    CompositionStateError,
    CyclicDependencyError,
    DanglingReferenceError,
    DuplicateNodeError,
    UnresolvedRemoteReferenceError,
)
from stackcomposer.graph.graph import DependencyGraph
from stackcomposer.graph.models import EdgeType, GraphEdge
from stackcomposer.models.resources import NodeAttributeRef, NodeSpec, RemoteValueRef, ResourceNode
from stackcomposer.observability.logging import get_logger
from stackcomposer.remote.table import RemoteReferenceTable

_logger = get_logger("graph.builder")


class DependencyGraphBuilder:
    """Collects resource declarations and freezes them into a DependencyGraph."""

    def __init__(self, stack_name: str = "") -> None:
        self._stack_name = stack_name
        self._specs: dict[str, NodeSpec] = {}
        self._finalized = False

    @property
    def declared(self) -> tuple[str, ...]:
        return tuple(self._specs)

    def add_node(self, spec: NodeSpec) -> str:
        """Record a declaration and return its node id (the logical name)."""
        if self._finalized:
            raise CompositionStateError("graph_finalized", "add_node")
        if not spec.name:
            raise ValueError("resource name must not be empty")
        if spec.name in self._specs:
            raise DuplicateNodeError(spec.name)
        self._specs[spec.name] = spec
        return spec.name

    def finalize(self, remote_refs: RemoteReferenceTable | None = None) -> DependencyGraph:
        """Order and resolve every declaration.

        Raises:
            DanglingReferenceError: a dependency, attribute or remote alias is unknown.
            UnresolvedRemoteReferenceError: a remote alias is declared but not resolved.
            CyclicDependencyError: the declarations contain a cycle.
        """
        if self._finalized:
            raise CompositionStateError("graph_finalized", "finalize")
        refs = remote_refs if remote_refs is not None else RemoteReferenceTable()

        edges = self._collect_edges(refs)
        deps: dict[str, set[str]] = {name: set() for name in self._specs}
        for edge in edges:
            deps[edge.source].add(edge.target)

        order = _topological_order(list(self._specs), deps)

        declared_index = {name: idx for idx, name in enumerate(self._specs)}
        resolved: dict[str, Mapping[str, Any]] = {}
        nodes: list[ResourceNode] = []
        for name in order:
            spec = self._specs[name]
            resolved[name] = _resolve_value(spec.properties, resolved, refs)
            nodes.append(
                ResourceNode(
                    name=name,
                    kind=spec.kind,
                    properties=resolved[name],
                    dependencies=tuple(sorted(deps[name], key=declared_index.__getitem__)),
                    index=declared_index[name],
                    stack_name=self._stack_name,
                )
            )

        self._finalized = True
        graph = DependencyGraph(self._stack_name, nodes, edges)
        _logger.info(
            "graph_finalized",
            stack=self._stack_name,
            nodes=graph.node_count,
            edges=graph.edge_count,
            order=list(graph.order),
        )
        return graph

    def _collect_edges(self, refs: RemoteReferenceTable) -> list[GraphEdge]:
        edges: dict[tuple[str, str, EdgeType, str], GraphEdge] = {}

        def _add(edge: GraphEdge) -> None:
            edges.setdefault((edge.source, edge.target, edge.edge_type, edge.source_field), edge)

        for name, spec in self._specs.items():
            for dep in spec.depends_on:
                if dep not in self._specs:
                    raise DanglingReferenceError(name, dep)
                _add(GraphEdge(source=name, target=dep, edge_type=EdgeType.EXPLICIT))

            for field_path, marker in _walk_markers(spec.properties):
                if isinstance(marker, NodeAttributeRef):
                    target = self._specs.get(marker.node)
                    if target is None or marker.attribute not in target.properties:
                        raise DanglingReferenceError(name, str(marker))
                    _add(
                        GraphEdge(
                            source=name,
                            target=marker.node,
                            edge_type=EdgeType.ATTRIBUTE,
                            source_field=field_path,
                        )
                    )
                else:
                    ref = refs.get(marker.alias)
                    if ref is None:
                        raise DanglingReferenceError(name, str(marker))
                    if not ref.resolved:
                        raise UnresolvedRemoteReferenceError(ref.alias, ref.state.value)
        return list(edges.values())


def _walk_markers(value: Any, path: str = "") -> Iterator[tuple[str, NodeAttributeRef | RemoteValueRef]]:
    """Yield (property path, marker) for every reference marker inside *value*."""
    if isinstance(value, NodeAttributeRef | RemoteValueRef):
        yield path, value
    elif isinstance(value, Mapping):
        for key, item in value.items():
            yield from _walk_markers(item, f"{path}.{key}" if path else str(key))
    elif isinstance(value, list | tuple):
        for idx, item in enumerate(value):
            yield from _walk_markers(item, f"{path}[{idx}]")


def _resolve_value(value: Any, resolved: Mapping[str, Mapping[str, Any]], refs: RemoteReferenceTable) -> Any:
    """Substitute markers and freeze containers: mappings become read-only, lists become tuples.

    Referenced attributes are already frozen, so sharing them between nodes is safe.
    """
    if isinstance(value, NodeAttributeRef):
        return resolved[value.node][value.attribute]
    if isinstance(value, RemoteValueRef):
        return refs[value.alias].value
    if isinstance(value, Mapping):
        return MappingProxyType({key: _resolve_value(item, resolved, refs) for key, item in value.items()})
    if isinstance(value, list | tuple):
        return tuple(_resolve_value(item, resolved, refs) for item in value)
    return value


def _topological_order(names: list[str], deps: Mapping[str, set[str]]) -> list[str]:
    """Kahn's algorithm; among ready nodes the earliest declared goes first."""
    index = {name: idx for idx, name in enumerate(names)}
    remaining = {name: len(deps[name]) for name in names}
    dependents: dict[str, list[str]] = {name: [] for name in names}
    for name in names:
        for dep in deps[name]:
            dependents[dep].append(name)

    ready = [index[name] for name in names if remaining[name] == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        name = names[heapq.heappop(ready)]
        order.append(name)
        for dependent in dependents[name]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                heapq.heappush(ready, index[dependent])

    if len(order) < len(names):
        raise CyclicDependencyError(_find_cycle(names, deps, set(order)))
    return order


def _find_cycle(names: list[str], deps: Mapping[str, set[str]], ordered: set[str]) -> list[str]:
    """Return one concrete cycle among the nodes Kahn's algorithm could not order.

    Every unordered node has at least one unordered dependency, so following
    the earliest-declared one always ends up revisiting a node.
    """
    index = {name: idx for idx, name in enumerate(names)}
    stuck = [name for name in names if name not in ordered]
    position: dict[str, int] = {}
    path: list[str] = []
    current = stuck[0]
    while current not in position:
        position[current] = len(path)
        path.append(current)
        current = min((dep for dep in deps[current] if dep not in ordered), key=index.__getitem__)
    return path[position[current] :] + [current]
