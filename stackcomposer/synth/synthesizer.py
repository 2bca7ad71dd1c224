"""Runtime config synthesizer.

Collects the identifiers the browser client needs (API endpoint, identity
pool and client, storage buckets) from a finalized graph into one ordered
ConfigArtifact. The client has no fallback for a missing value, so a
required output that no node produced fails the pass instead of being
emitted empty.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from stackcomposer.errors import MissingOutputError
from stackcomposer.graph.graph import DependencyGraph
from stackcomposer.models.artifact import ConfigArtifact
from stackcomposer.models.resources import ResourceKind, ResourceNode

_log = structlog.get_logger(component="synth")


@dataclass(frozen=True)
class OutputField:
    """One artifact key and the node property it is read from.

    ``role`` restricts matching nodes to those whose ``role`` property equals
    it; with ``accept_unroled`` nodes without a role also match.
    """

    key: str
    kind: ResourceKind
    attribute: str
    required: bool = True
    role: str | None = None
    accept_unroled: bool = False

    def matches(self, node: ResourceNode) -> bool:
        if node.kind != self.kind:
            return False
        if self.role is None:
            return True
        node_role = node.output("role")
        return node_role == self.role or (self.accept_unroled and node_role in (None, ""))


OUTPUT_FIELDS: tuple[OutputField, ...] = (
    OutputField("api.url", ResourceKind.API_ENDPOINT, "url"),
    OutputField("identity.poolId", ResourceKind.IDENTITY_PROVIDER, "poolId"),
    OutputField("identity.clientId", ResourceKind.IDENTITY_PROVIDER, "clientId"),
    OutputField("identity.identityPoolId", ResourceKind.IDENTITY_PROVIDER, "identityPoolId", required=False),
    OutputField("storage.bucketName", ResourceKind.STORAGE, "bucketName", role="assets", accept_unroled=True),
    OutputField(
        "storage.artifactBucketName",
        ResourceKind.STORAGE,
        "bucketName",
        required=False,
        role="artifacts",
    ),
)


class RuntimeConfigSynthesizer:
    """Builds the ConfigArtifact from a finalized graph.

    Args:
        region: deployment region, emitted first as ``region`` when non-empty.
        fields: artifact vocabulary; defaults to OUTPUT_FIELDS.
    """

    def __init__(self, region: str = "", fields: tuple[OutputField, ...] = OUTPUT_FIELDS) -> None:
        self._region = region
        self._fields = fields

    def synthesize(self, graph: DependencyGraph) -> ConfigArtifact:
        """Collect every output field; deterministic for a given graph.

        Raises:
            MissingOutputError: a required field has no producing node or an empty value.
        """
        entries: list[tuple[str, str]] = []
        if self._region:
            entries.append(("region", self._region))

        for output in self._fields:
            value = self._collect(graph, output)
            if value is not None:
                entries.append((output.key, value))

        artifact = ConfigArtifact(entries=tuple(entries))
        _log.info("config_synthesized", keys=list(artifact))
        return artifact

    def _collect(self, graph: DependencyGraph, output: OutputField) -> str | None:
        candidates = [node for node in graph if output.matches(node)]
        if not candidates:
            if output.required:
                raise MissingOutputError(output.key, f"no '{output.kind}' resource declared")
            return None

        if len(candidates) > 1:
            _log.warning(
                "config_output_ambiguous",
                key=output.key,
                chosen=candidates[0].name,
                candidates=[node.name for node in candidates],
            )
        node = candidates[0]
        value = node.output(output.attribute)
        if value is None or str(value) == "":
            if output.required:
                raise MissingOutputError(output.key, f"resource '{node.name}' has no '{output.attribute}'")
            return None
        return str(value)
