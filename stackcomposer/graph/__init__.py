"""Resource dependency graph for one composition pass.

Declarations are collected first (forward references by name allowed) and
turned into an immutable, topologically ordered graph by ``finalize``.
"""

from stackcomposer.graph.builder import DependencyGraphBuilder
from stackcomposer.graph.graph import DependencyGraph
from stackcomposer.graph.models import EdgeType, GraphEdge

__all__ = [
    "DependencyGraph",
    "DependencyGraphBuilder",
    "EdgeType",
    "GraphEdge",
]
