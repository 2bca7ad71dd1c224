"""Core data structures for stackcomposer."""

from stackcomposer.models.artifact import ConfigArtifact
from stackcomposer.models.config import ComposerConfig
from stackcomposer.models.remote import RemoteReference, RemoteScope, ResolutionState
from stackcomposer.models.resources import (
    NodeAttributeRef,
    NodeSpec,
    RemoteValueRef,
    ResourceKind,
    ResourceNode,
)
from stackcomposer.models.routing import DistributionBinding, RoutingRule
from stackcomposer.models.suppression import SuppressionEntry

__all__ = [
    "ComposerConfig",
    "ConfigArtifact",
    "DistributionBinding",
    "NodeAttributeRef",
    "NodeSpec",
    "RemoteReference",
    "RemoteScope",
    "RemoteValueRef",
    "ResolutionState",
    "ResourceKind",
    "ResourceNode",
    "RoutingRule",
    "SuppressionEntry",
]
