"""Declaration document loading.

``load_manifest`` validates the JSON document; ``Manifest.build`` turns it
into a CompositionPlan once parameters are resolved. Property values may
contain single-key reference markers:

    {"ref": "node.attribute"}   -> NodeAttributeRef (implicit dependency)
    {"remote": "alias"}         -> RemoteValueRef (resolved before finalization)
    {"param": "name"}           -> substituted here with the parameter value
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from stackcomposer.errors import ManifestError, MissingParameterError
from stackcomposer.manifest.schemas import ManifestSchema
from stackcomposer.models.remote import RemoteScope
from stackcomposer.models.resources import NodeAttributeRef, NodeSpec, RemoteValueRef
from stackcomposer.observability.logging import get_logger
from stackcomposer.parameters import ParameterSpec, ResolvedParameter
from stackcomposer.remote.table import RemoteReferenceTable

_logger = get_logger("manifest")

_MARKERS = frozenset({"ref", "remote", "param"})


@dataclass(frozen=True)
class RouteDirective:
    distribution: str
    target: str
    path_prefix: str
    priority: int = 1


@dataclass(frozen=True)
class WebAclDirective:
    distribution: str
    reference: str


@dataclass(frozen=True)
class SuppressionDirective:
    path_pattern: str
    rule_id: str
    justification: str
    applies_to: tuple[str, ...] = ()
    apply_to_children: bool = False


@dataclass
class CompositionPlan:
    """Everything one composition pass consumes, built fresh per pass."""

    stack_name: str
    specs: tuple[NodeSpec, ...]
    remote_refs: RemoteReferenceTable
    routes: tuple[RouteDirective, ...] = ()
    web_acls: tuple[WebAclDirective, ...] = ()
    suppressions: tuple[SuppressionDirective, ...] = ()
    parameters: dict[str, ResolvedParameter] = field(default_factory=dict)


class Manifest:
    """A validated declaration document."""

    def __init__(self, schema: ManifestSchema) -> None:
        self._schema = schema

    @property
    def stack_name(self) -> str:
        return self._schema.stack_name

    def parameter_specs(self) -> list[ParameterSpec]:
        return [
            ParameterSpec(
                name=name,
                env=param.env,
                context=param.context,
                default=param.default,
                required=param.required,
                description=param.description,
            )
            for name, param in self._schema.parameters.items()
        ]

    def build(
        self,
        parameters: Mapping[str, ResolvedParameter] | None = None,
        stack_name: str = "",
    ) -> CompositionPlan:
        """Create a CompositionPlan with parameters substituted.

        Raises:
            ManifestError: a reference marker is malformed.
            MissingParameterError: a property uses a parameter that has no value.
        """
        params = dict(parameters or {})

        remote_refs = RemoteReferenceTable()
        for ref in self._schema.remote_references:
            remote_refs.declare(ref.id, RemoteScope(region=ref.region, account=ref.account or None), ref.name)

        specs = tuple(
            NodeSpec(
                name=res.name,
                kind=res.kind,
                properties={
                    key: _convert(value, params, f"resources[{idx}].properties.{key}")
                    for key, value in res.properties.items()
                },
                depends_on=tuple(res.depends_on),
            )
            for idx, res in enumerate(self._schema.resources)
        )

        routes: list[RouteDirective] = []
        web_acls: list[WebAclDirective] = []
        for idx, routing in enumerate(self._schema.routing):
            if routing.web_acl is not None:
                if routing.web_acl not in remote_refs:
                    raise ManifestError(f"routing[{idx}].webAcl", f"unknown remote reference '{routing.web_acl}'")
                web_acls.append(WebAclDirective(distribution=routing.distribution, reference=routing.web_acl))
            routes.extend(
                RouteDirective(
                    distribution=routing.distribution,
                    target=route.target,
                    path_prefix=route.path_prefix,
                    priority=route.priority,
                )
                for route in routing.routes
            )

        suppressions = tuple(
            SuppressionDirective(
                path_pattern=sup.path,
                rule_id=sup.rule_id,
                justification=sup.reason,
                applies_to=tuple(sup.applies_to),
                apply_to_children=sup.apply_to_children,
            )
            for sup in self._schema.suppressions
        )

        return CompositionPlan(
            stack_name=stack_name or self._schema.stack_name,
            specs=specs,
            remote_refs=remote_refs,
            routes=tuple(routes),
            web_acls=tuple(web_acls),
            suppressions=suppressions,
            parameters=params,
        )


def parse_manifest(data: Mapping[str, Any]) -> Manifest:
    """Validate an already-decoded declaration document."""
    try:
        schema = ManifestSchema.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
        raise ManifestError(location, str(first.get("msg", "invalid value"))) from exc
    return Manifest(schema)


def load_manifest(path: str | Path) -> Manifest:
    """Read and validate a JSON declaration document."""
    manifest_path = Path(path)
    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(str(manifest_path), f"cannot read file: {exc.strerror or exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"{manifest_path}:{exc.lineno}:{exc.colno}", exc.msg) from exc
    if not isinstance(data, dict):
        raise ManifestError(str(manifest_path), "document must be a JSON object")
    manifest = parse_manifest(data)
    _logger.debug("manifest_loaded", path=str(manifest_path), stack=manifest.stack_name)
    return manifest


def _convert(value: Any, params: Mapping[str, ResolvedParameter], location: str) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and next(iter(value)) in _MARKERS:
            return _convert_marker(value, params, location)
        return {key: _convert(item, params, f"{location}.{key}") for key, item in value.items()}
    if isinstance(value, list):
        return [_convert(item, params, f"{location}[{idx}]") for idx, item in enumerate(value)]
    return value


def _convert_marker(value: dict[str, Any], params: Mapping[str, ResolvedParameter], location: str) -> Any:
    marker, target = next(iter(value.items()))
    if not isinstance(target, str) or not target:
        raise ManifestError(location, f"'{marker}' marker needs a non-empty string")

    if marker == "ref":
        node, _, attribute = target.partition(".")
        if not node or not attribute:
            raise ManifestError(location, f"'ref' must look like 'node.attribute', got '{target}'")
        return NodeAttributeRef(node=node, attribute=attribute)
    if marker == "remote":
        return RemoteValueRef(alias=target)

    resolved = params.get(target)
    if resolved is None:
        raise MissingParameterError(target)
    return resolved.value
