"""Composition pass.

Runs one deterministic build-then-emit pass over a CompositionPlan:

    declaring -> resolving -> graph_finalized -> bound
              -> config_synthesized -> suppressions_applied -> emitted

States only move forward. Any failure aborts the whole pass with
CompositionAborted; nothing is handed to the publisher unless the pass
reaches ``emitted``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from stackcomposer.errors import CompositionAborted, CompositionStateError
from stackcomposer.graph.builder import DependencyGraphBuilder
from stackcomposer.graph.graph import DependencyGraph
from stackcomposer.manifest.loader import CompositionPlan
from stackcomposer.models.artifact import ConfigArtifact
from stackcomposer.models.routing import DistributionBinding
from stackcomposer.models.suppression import SuppressionEntry
from stackcomposer.observability.logging import composition_context, get_logger
from stackcomposer.observability.metrics import artifacts_published_total, composition_passes_total
from stackcomposer.parameters import ResolvedParameter
from stackcomposer.publishing.base import ConfigPublisher
from stackcomposer.remote.resolver import RemoteReferenceResolver
from stackcomposer.routing.binder import RoutingBinder
from stackcomposer.suppression.registry import SuppressionRegistry
from stackcomposer.synth.synthesizer import RuntimeConfigSynthesizer


class CompositionState(StrEnum):
    """States of a composition pass, in the only order they may occur."""

    DECLARING = "declaring"
    RESOLVING = "resolving"
    GRAPH_FINALIZED = "graph_finalized"
    BOUND = "bound"
    CONFIG_SYNTHESIZED = "config_synthesized"
    SUPPRESSIONS_APPLIED = "suppressions_applied"
    EMITTED = "emitted"
    ABORTED = "aborted"


_ORDER = [
    CompositionState.DECLARING,
    CompositionState.RESOLVING,
    CompositionState.GRAPH_FINALIZED,
    CompositionState.BOUND,
    CompositionState.CONFIG_SYNTHESIZED,
    CompositionState.SUPPRESSIONS_APPLIED,
    CompositionState.EMITTED,
]


@dataclass(frozen=True)
class CompositionResult:
    """The artifact set handed to external collaborators after ``emitted``."""

    graph: DependencyGraph
    bindings: tuple[DistributionBinding, ...]
    artifact: ConfigArtifact
    suppressions: tuple[SuppressionEntry, ...]
    suppression_metadata: dict[str, dict[str, str]] = field(default_factory=dict)
    parameters: dict[str, ResolvedParameter] = field(default_factory=dict)


class CompositionPass:
    """One build-then-emit pass. Not reusable: ``run`` may be called once.

    Args:
        plan:      declarations, remote references and directives for this pass.
        resolver:  remote reference resolver.
        region:    deployment region written into the artifact (optional).
        publisher: receives the artifact once the pass is emitted (optional).
    """

    def __init__(
        self,
        plan: CompositionPlan,
        resolver: RemoteReferenceResolver,
        region: str = "",
        publisher: ConfigPublisher | None = None,
    ) -> None:
        self._plan = plan
        self._resolver = resolver
        self._region = region
        self._publisher = publisher
        self._state: CompositionState | None = None
        self.pass_id = ""
        self._log = get_logger("composer")

    @property
    def state(self) -> CompositionState | None:
        return self._state

    async def run(self) -> CompositionResult:
        """Execute every state in order.

        Raises:
            CompositionStateError: the pass was already run.
            CompositionAborted: any step failed; ``cause`` holds the original error.
        """
        if self._state is not None:
            raise CompositionStateError(self._state.value, "run")

        with composition_context(self._plan.stack_name) as pass_id:
            self.pass_id = pass_id
            return await self._run_and_record()

    async def _run_and_record(self) -> CompositionResult:
        try:
            result = await self._run()
        except Exception as exc:
            failed_in = self._state or CompositionState.DECLARING
            self._state = CompositionState.ABORTED
            composition_passes_total.labels(outcome="aborted", state=failed_in.value).inc()
            self._log.error(
                "composition_aborted",
                state=failed_in.value,
                error_type=type(exc).__name__,
                identifier=getattr(exc, "identifier", ""),
                error=str(exc),
            )
            raise CompositionAborted(failed_in.value, exc) from exc

        composition_passes_total.labels(outcome="emitted", state=CompositionState.EMITTED.value).inc()
        self._log.info(
            "composition_emitted",
            nodes=result.graph.node_count,
            keys=list(result.artifact),
            suppressions=len(result.suppressions),
        )
        return result

    async def _run(self) -> CompositionResult:
        plan = self._plan

        # --- 1. Declarations ----------------------------------------------
        self._advance(CompositionState.DECLARING)
        builder = DependencyGraphBuilder(stack_name=plan.stack_name)
        for spec in plan.specs:
            builder.add_node(spec)

        # --- 2. Remote references (join barrier) --------------------------
        self._advance(CompositionState.RESOLVING)
        # Every pass reads its own copy; the plan only holds declarations.
        refs = plan.remote_refs.fresh()
        await self._resolver.resolve_all(refs)

        # --- 3. Graph -----------------------------------------------------
        self._advance(CompositionState.GRAPH_FINALIZED)
        graph = builder.finalize(refs)

        # --- 4. Routing ---------------------------------------------------
        self._advance(CompositionState.BOUND)
        binder = RoutingBinder(graph)
        for acl in plan.web_acls:
            binder.attach_web_acl(acl.distribution, refs[acl.reference])
        for route in plan.routes:
            binder.bind(route.distribution, route.target, route.path_prefix, route.priority)

        # --- 5. Runtime config --------------------------------------------
        self._advance(CompositionState.CONFIG_SYNTHESIZED)
        artifact = RuntimeConfigSynthesizer(region=self._region).synthesize(graph)

        # --- 6. Suppressions ----------------------------------------------
        self._advance(CompositionState.SUPPRESSIONS_APPLIED)
        registry = SuppressionRegistry(graph)
        for directive in plan.suppressions:
            registry.suppress(
                directive.path_pattern,
                directive.rule_id,
                directive.justification,
                applies_to=directive.applies_to,
                apply_to_children=directive.apply_to_children,
            )

        # --- 7. Emit ------------------------------------------------------
        self._advance(CompositionState.EMITTED)
        if self._publisher is not None:
            await self._publish(artifact)

        return CompositionResult(
            graph=graph,
            bindings=binder.bindings(),
            artifact=artifact,
            suppressions=registry.entries(),
            suppression_metadata=registry.as_metadata(),
            parameters=dict(plan.parameters),
        )

    async def _publish(self, artifact: ConfigArtifact) -> None:
        assert self._publisher is not None
        try:
            await self._publisher.publish(artifact)
        except Exception:
            artifacts_published_total.labels(publisher=self._publisher.publisher_name, success="false").inc()
            raise
        artifacts_published_total.labels(publisher=self._publisher.publisher_name, success="true").inc()

    def _advance(self, state: CompositionState) -> None:
        current = _ORDER.index(self._state) if self._state in _ORDER else -1
        if _ORDER.index(state) != current + 1:
            raise CompositionStateError(self._state.value if self._state else "new", f"enter {state.value}")
        self._state = state
        self._log.debug("composition_state", state=state.value)


async def compose(
    plan: CompositionPlan,
    resolver: RemoteReferenceResolver,
    region: str = "",
    publisher: ConfigPublisher | None = None,
) -> CompositionResult:
    """Run a single composition pass over *plan*."""
    return await CompositionPass(plan, resolver, region=region, publisher=publisher).run()
