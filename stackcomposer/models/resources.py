"""Resource declarations and finalized resource nodes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ResourceKind(StrEnum):
    """Closed set of resource kinds the composer understands."""

    STORAGE = "storage"
    IDENTITY_PROVIDER = "identity-provider"
    AUDIT_SINK = "audit-sink"
    API_ENDPOINT = "api-endpoint"
    CONTENT_DISTRIBUTION = "content-distribution"
    CONFIG_PUBLISHER = "config-publisher"


@dataclass(frozen=True)
class NodeAttributeRef:
    """Reference to a property of another declared node.

    Creates an implicit dependency edge from the referencing node to ``node``.
    """

    node: str
    attribute: str

    def __str__(self) -> str:
        return f"{self.node}.{self.attribute}"


@dataclass(frozen=True)
class RemoteValueRef:
    """Reference to the value of a declared remote reference, by alias."""

    alias: str

    def __str__(self) -> str:
        return f"remote:{self.alias}"


@dataclass(frozen=True)
class NodeSpec:
    """A resource declaration as written by the operator.

    ``properties`` may contain ``NodeAttributeRef`` / ``RemoteValueRef`` markers
    at any depth. ``depends_on`` may name nodes declared later (forward
    references are resolved when the graph is finalized).
    """

    name: str
    kind: ResourceKind
    properties: Mapping[str, Any] = field(default_factory=dict)
    depends_on: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResourceNode:
    """A finalized node of the dependency graph.

    Immutable: ``properties`` hold fully resolved values (no reference
    markers, nested mappings read-only, sequences as tuples) and
    ``dependencies`` are ordered by declaration index. Equality compares
    every field; the hash covers stack, name and index only.
    """

    name: str
    kind: ResourceKind
    properties: Mapping[str, Any]
    dependencies: tuple[str, ...]
    index: int
    stack_name: str = ""

    @property
    def path(self) -> str:
        """Stable construct path used to address the node, e.g. ``/vams/cdn``."""
        return f"/{self.stack_name}/{self.name}" if self.stack_name else f"/{self.name}"

    def __hash__(self) -> int:
        return hash((self.stack_name, self.name, self.index))

    def output(self, attribute: str) -> Any:
        """Return a resolved property value, or None if the node has none."""
        return self.properties.get(attribute)
