"""Tests for the two-phase dependency graph builder.

Covers forward references, attribute references, remote value markers,
deterministic ordering, cycle detection and the finalized graph queries.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from stackcomposer.errors import (
    CompositionStateError,
    CyclicDependencyError,
    DanglingReferenceError,
    DuplicateNodeError,
    UnresolvedRemoteReferenceError,
)
from stackcomposer.graph import DependencyGraphBuilder, EdgeType
from stackcomposer.models.remote import RemoteScope
from stackcomposer.models.resources import (
    NodeAttributeRef,
    NodeSpec,
    RemoteValueRef,
    ResourceKind,
)
from stackcomposer.remote.table import RemoteReferenceTable

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _spec(
    name: str,
    kind: ResourceKind = ResourceKind.STORAGE,
    depends_on: tuple[str, ...] = (),
    **properties: object,
) -> NodeSpec:
    return NodeSpec(name=name, kind=kind, properties=properties, depends_on=depends_on)


def _build(*specs: NodeSpec, stack_name: str = "vams", refs: RemoteReferenceTable | None = None):
    builder = DependencyGraphBuilder(stack_name=stack_name)
    for spec in specs:
        builder.add_node(spec)
    return builder.finalize(refs)


# ---------------------------------------------------------------------------
# Declaration phase
# ---------------------------------------------------------------------------


class TestAddNode:
    def test_returns_logical_name_as_id(self) -> None:
        builder = DependencyGraphBuilder()
        assert builder.add_node(_spec("storage")) == "storage"
        assert builder.declared == ("storage",)

    def test_duplicate_name_rejected(self) -> None:
        builder = DependencyGraphBuilder()
        builder.add_node(_spec("storage"))
        with pytest.raises(DuplicateNodeError) as exc_info:
            builder.add_node(_spec("storage", ResourceKind.AUDIT_SINK))
        assert exc_info.value.identifier == "storage"

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            DependencyGraphBuilder().add_node(_spec(""))

    def test_add_after_finalize_rejected(self) -> None:
        builder = DependencyGraphBuilder()
        builder.add_node(_spec("storage"))
        builder.finalize()
        with pytest.raises(CompositionStateError):
            builder.add_node(_spec("late"))

    def test_second_finalize_rejected(self) -> None:
        builder = DependencyGraphBuilder()
        builder.add_node(_spec("storage"))
        builder.finalize()
        with pytest.raises(CompositionStateError):
            builder.finalize()


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_deployment_example_order(self) -> None:
        graph = _build(
            _spec("storage"),
            _spec("identity", ResourceKind.IDENTITY_PROVIDER),
            _spec("api", ResourceKind.API_ENDPOINT, depends_on=("identity",)),
            _spec("cdn", ResourceKind.CONTENT_DISTRIBUTION, depends_on=("api",)),
        )
        order = list(graph.order)
        assert order.index("storage") < order.index("api")
        assert order.index("identity") < order.index("api")
        assert order.index("api") < order.index("cdn")

    def test_forward_reference_by_name(self) -> None:
        graph = _build(
            _spec("cdn", ResourceKind.CONTENT_DISTRIBUTION, depends_on=("api",)),
            _spec("api", ResourceKind.API_ENDPOINT),
        )
        assert graph.order == ("api", "cdn")

    def test_ties_broken_by_declaration_order(self) -> None:
        graph = _build(_spec("c"), _spec("a"), _spec("b"))
        assert graph.order == ("c", "a", "b")

    def test_same_declarations_give_same_order_and_paths(self) -> None:
        specs = (
            _spec("cdn", ResourceKind.CONTENT_DISTRIBUTION, depends_on=("api", "storage")),
            _spec("storage"),
            _spec("api", ResourceKind.API_ENDPOINT, depends_on=("identity",)),
            _spec("identity", ResourceKind.IDENTITY_PROVIDER),
        )
        first = _build(*specs)
        second = _build(*specs)
        assert first.order == second.order
        assert first.paths() == second.paths()

    def test_node_path_includes_stack(self) -> None:
        graph = _build(_spec("storage"))
        assert graph["storage"].path == "/vams/storage"
        assert graph.find_by_path("/vams/storage") is graph["storage"]

    def test_node_path_without_stack(self) -> None:
        graph = _build(_spec("storage"), stack_name="")
        assert graph["storage"].path == "/storage"


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class TestReferences:
    def test_attribute_reference_creates_edge_and_resolves(self) -> None:
        graph = _build(
            _spec("api", ResourceKind.API_ENDPOINT, pool=NodeAttributeRef("identity", "poolId")),
            _spec("identity", ResourceKind.IDENTITY_PROVIDER, poolId="us-west-2_abc"),
        )
        assert graph.order == ("identity", "api")
        assert graph["api"].properties["pool"] == "us-west-2_abc"
        attr_edges = [edge for edge in graph.edges if edge.edge_type is EdgeType.ATTRIBUTE]
        assert len(attr_edges) == 1
        assert attr_edges[0].source == "api"
        assert attr_edges[0].target == "identity"
        assert attr_edges[0].source_field == "pool"

    def test_nested_attribute_reference_resolved(self) -> None:
        graph = _build(
            _spec(
                "cdn",
                ResourceKind.CONTENT_DISTRIBUTION,
                origins=[{"domain": NodeAttributeRef("bucket", "domain")}],
            ),
            _spec("bucket", domain="web.s3.amazonaws.com"),
        )
        assert graph["cdn"].properties["origins"] == ({"domain": "web.s3.amazonaws.com"},)

    def test_chained_attribute_references(self) -> None:
        graph = _build(
            _spec("c", value=NodeAttributeRef("b", "value")),
            _spec("b", value=NodeAttributeRef("a", "value")),
            _spec("a", value="root"),
        )
        assert graph.order == ("a", "b", "c")
        assert graph["c"].properties["value"] == "root"

    def test_explicit_and_attribute_edge_counted_once(self) -> None:
        graph = _build(
            _spec("api", ResourceKind.API_ENDPOINT, depends_on=("identity",), pool=NodeAttributeRef("identity", "id")),
            _spec("identity", ResourceKind.IDENTITY_PROVIDER, id="x"),
        )
        assert graph.edge_count == 1
        assert len(graph.edges) == 2

    def test_unknown_dependency_is_dangling(self) -> None:
        with pytest.raises(DanglingReferenceError) as exc_info:
            _build(_spec("api", ResourceKind.API_ENDPOINT, depends_on=("identity",)))
        assert exc_info.value.node == "api"
        assert exc_info.value.reference == "identity"

    def test_unknown_attribute_is_dangling(self) -> None:
        with pytest.raises(DanglingReferenceError) as exc_info:
            _build(
                _spec("api", ResourceKind.API_ENDPOINT, pool=NodeAttributeRef("identity", "poolId")),
                _spec("identity", ResourceKind.IDENTITY_PROVIDER, clientId="c"),
            )
        assert exc_info.value.reference == "identity.poolId"

    def test_remote_value_substituted_when_resolved(self) -> None:
        refs = RemoteReferenceTable()
        refs.declare("wafAcl", RemoteScope("us-east-1"), "/vams/waf")
        refs["wafAcl"].mark_resolved("arn:aws:wafv2:us-east-1::webacl/demo")
        graph = _build(_spec("cdn", ResourceKind.CONTENT_DISTRIBUTION, acl=RemoteValueRef("wafAcl")), refs=refs)
        assert graph["cdn"].properties["acl"] == "arn:aws:wafv2:us-east-1::webacl/demo"

    def test_remote_value_pending_rejected(self) -> None:
        refs = RemoteReferenceTable()
        refs.declare("wafAcl", RemoteScope("us-east-1"), "/vams/waf")
        with pytest.raises(UnresolvedRemoteReferenceError) as exc_info:
            _build(_spec("cdn", ResourceKind.CONTENT_DISTRIBUTION, acl=RemoteValueRef("wafAcl")), refs=refs)
        assert exc_info.value.identifier == "wafAcl"

    def test_remote_value_undeclared_is_dangling(self) -> None:
        with pytest.raises(DanglingReferenceError):
            _build(_spec("cdn", ResourceKind.CONTENT_DISTRIBUTION, acl=RemoteValueRef("missing")))

    def test_finalized_properties_are_read_only(self) -> None:
        graph = _build(_spec("storage", bucketName="b"))
        with pytest.raises(TypeError):
            graph["storage"].properties["bucketName"] = "other"  # type: ignore[index]

    def test_nested_values_frozen(self) -> None:
        graph = _build(_spec("cdn", ResourceKind.CONTENT_DISTRIBUTION, origins=[{"domain": "a"}], tags={"env": "dev"}))
        props = graph["cdn"].properties
        assert isinstance(props["origins"], tuple)
        with pytest.raises(TypeError):
            props["origins"][0]["domain"] = "b"  # type: ignore[index]
        with pytest.raises(TypeError):
            props["tags"]["env"] = "prod"  # type: ignore[index]

    def test_referenced_nested_value_cannot_leak_between_nodes(self) -> None:
        graph = _build(
            _spec("api", ResourceKind.API_ENDPOINT, cors=NodeAttributeRef("web", "cors")),
            _spec("web", cors={"origins": ["https://example.com"]}),
        )
        shared = graph["api"].properties["cors"]
        assert shared == {"origins": ("https://example.com",)}
        with pytest.raises(TypeError):
            shared["origins"] = ()  # type: ignore[index]
        assert graph["web"].properties["cors"]["origins"] == ("https://example.com",)

    def test_spec_properties_not_shared_with_node(self) -> None:
        tags = {"env": "dev"}
        graph = _build(_spec("storage", tags=tags))
        tags["env"] = "prod"
        assert graph["storage"].properties["tags"]["env"] == "dev"

    def test_nodes_hashable(self) -> None:
        graph = _build(_spec("storage", tags={"env": "dev"}), _spec("api", ResourceKind.API_ENDPOINT))
        nodes = set(graph)
        assert len(nodes) == 2
        assert graph["storage"] in nodes
        assert hash(graph["storage"]) == hash(graph["storage"])


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestCycles:
    def test_two_node_cycle_named(self) -> None:
        with pytest.raises(CyclicDependencyError) as exc_info:
            _build(_spec("a", depends_on=("b",)), _spec("b", depends_on=("a",)))
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert exc_info.value.identifier == "a -> b -> a"

    def test_self_dependency_is_cycle(self) -> None:
        with pytest.raises(CyclicDependencyError) as exc_info:
            _build(_spec("a", depends_on=("a",)))
        assert exc_info.value.cycle == ["a", "a"]

    def test_cycle_behind_acyclic_prefix(self) -> None:
        with pytest.raises(CyclicDependencyError) as exc_info:
            _build(
                _spec("root"),
                _spec("x", depends_on=("root", "z")),
                _spec("y", depends_on=("x",)),
                _spec("z", depends_on=("y",)),
            )
        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"x", "y", "z"}
        assert "root" not in cycle

    def test_failed_finalize_leaves_builder_open(self) -> None:
        builder = DependencyGraphBuilder()
        builder.add_node(_spec("a", depends_on=("missing",)))
        with pytest.raises(DanglingReferenceError):
            builder.finalize()
        builder.add_node(_spec("missing"))
        assert builder.finalize().order == ("missing", "a")


# ---------------------------------------------------------------------------
# Graph queries
# ---------------------------------------------------------------------------


class TestGraphQueries:
    def _graph(self):
        return _build(
            _spec("storage"),
            _spec("identity", ResourceKind.IDENTITY_PROVIDER),
            _spec("api", ResourceKind.API_ENDPOINT, depends_on=("identity",)),
            _spec("cdn", ResourceKind.CONTENT_DISTRIBUTION, depends_on=("api", "storage")),
        )

    def test_dependencies_ordered_by_declaration(self) -> None:
        assert self._graph().dependencies_of("cdn") == ("storage", "api")

    def test_dependents(self) -> None:
        graph = self._graph()
        assert graph.dependents_of("identity") == ("api",)
        assert graph.dependents_of("cdn") == ()

    def test_ancestors_in_topological_order(self) -> None:
        assert self._graph().ancestors_of("cdn") == ("storage", "identity", "api")

    def test_nodes_of_kind(self) -> None:
        nodes = self._graph().nodes_of_kind(ResourceKind.API_ENDPOINT)
        assert [node.name for node in nodes] == ["api"]

    def test_container_protocol(self) -> None:
        graph = self._graph()
        assert "api" in graph
        assert "missing" not in graph
        assert len(graph) == graph.node_count == 4
        assert graph.get("missing") is None
        assert [node.name for node in graph] == list(graph.order)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@st.composite
def _acyclic_specs(draw: st.DrawFn) -> list[NodeSpec]:
    count = draw(st.integers(min_value=1, max_value=12))
    names = [f"n{idx}" for idx in range(count)]
    specs = []
    for idx, name in enumerate(names):
        deps = draw(st.lists(st.sampled_from(names[:idx]), unique=True)) if idx else []
        specs.append(_spec(name, depends_on=tuple(deps)))
    return draw(st.permutations(specs))


@given(_acyclic_specs())
@settings(max_examples=75)
def test_order_respects_every_edge(specs: list[NodeSpec]) -> None:
    graph = _build(*specs)
    position = {name: idx for idx, name in enumerate(graph.order)}
    assert sorted(graph.order) == sorted(spec.name for spec in specs)
    for edge in graph.edges:
        assert position[edge.target] < position[edge.source]


@given(st.integers(min_value=1, max_value=8), st.integers(min_value=0, max_value=4))
@settings(max_examples=50)
def test_any_ring_raises_cycle(ring_size: int, extra: int) -> None:
    ring = [f"r{idx}" for idx in range(ring_size)]
    specs = [_spec(name, depends_on=(ring[(idx + 1) % ring_size],)) for idx, name in enumerate(ring)]
    specs += [_spec(f"free{idx}") for idx in range(extra)]
    with pytest.raises(CyclicDependencyError) as exc_info:
        _build(*specs)
    cycle = exc_info.value.cycle
    assert cycle[0] == cycle[-1]
    assert set(cycle) == set(ring)
