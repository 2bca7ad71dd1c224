"""Data structures for the resource dependency graph."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class EdgeType(StrEnum):
    """Why one declared resource depends on another."""

    EXPLICIT = "explicit"  # listed in dependsOn
    ATTRIBUTE = "attribute"  # a property reads another node's attribute


@dataclass(frozen=True)
class GraphEdge:
    """A typed edge from a dependent node to the node it depends on."""

    source: str
    target: str
    edge_type: EdgeType
    source_field: str = ""  # property path that creates the edge; empty for explicit edges
