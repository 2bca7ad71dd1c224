"""Pydantic schemas for the declaration document.

The schema only checks shape; name lookups (dependencies, references,
routes) happen when the graph is finalized.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from stackcomposer.models.resources import ResourceKind


class _Schema(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)


class ParameterSchema(_Schema):
    """Where to look for a deployment parameter value."""

    env: str | None = None
    context: str | None = None
    default: str | None = None
    required: bool = True
    description: str = ""


class RemoteReferenceSchema(_Schema):
    """A value to read from another region/account before composing."""

    id: str = Field(min_length=1)
    region: str = Field(min_length=1)
    account: str | None = None
    name: str = Field(min_length=1)


class ResourceSchema(_Schema):
    name: str = Field(min_length=1, pattern=r"^[A-Za-z0-9][A-Za-z0-9_\-/]*$")
    kind: ResourceKind
    properties: dict[str, Any] = Field(default_factory=dict)
    depends_on: list[str] = Field(default_factory=list, alias="dependsOn")


class RouteSchema(_Schema):
    path_prefix: str = Field(min_length=1, alias="pathPrefix")
    target: str = Field(min_length=1)
    priority: int = Field(default=1, ge=1)


class RoutingSchema(_Schema):
    """Routing for one content distribution."""

    distribution: str = Field(min_length=1)
    web_acl: str | None = Field(default=None, alias="webAcl")
    routes: list[RouteSchema] = Field(default_factory=list)


class SuppressionSchema(_Schema):
    path: str = Field(min_length=1)
    rule_id: str = Field(min_length=1, alias="ruleId")
    reason: str = Field(min_length=1)
    applies_to: list[str] = Field(default_factory=list, alias="appliesTo")
    apply_to_children: bool = Field(default=False, alias="applyToChildren")


class ManifestSchema(_Schema):
    """Top-level declaration document."""

    stack_name: str = Field(min_length=1, alias="stackName")
    parameters: dict[str, ParameterSchema] = Field(default_factory=dict)
    remote_references: list[RemoteReferenceSchema] = Field(default_factory=list, alias="remoteReferences")
    resources: list[ResourceSchema] = Field(min_length=1)
    routing: list[RoutingSchema] = Field(default_factory=list)
    suppressions: list[SuppressionSchema] = Field(default_factory=list)
