"""Routing binder.

Attaches path-based routing rules from a content distribution to API
endpoints, and the firewall ACL resolved from a remote scope, once the
dependency graph is finalized. Every distribution starts with the catch-all
static content rule at priority 0; API rules must sit above it.
"""

from __future__ import annotations

from urllib.parse import urlparse

import structlog

from stackcomposer.errors import BindingOrderError, ConflictingRouteError
from stackcomposer.graph.graph import DependencyGraph
from stackcomposer.models.remote import RemoteReference
from stackcomposer.models.resources import ResourceKind, ResourceNode
from stackcomposer.models.routing import (
    DEFAULT_PATH_PATTERN,
    DEFAULT_PRIORITY,
    DistributionBinding,
    RoutingRule,
)
from stackcomposer.observability.metrics import routing_rules_bound_total

_log = structlog.get_logger(component="routing.binder")

_API_METHODS = ("DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT")


def normalize_path_prefix(path_prefix: str) -> str:
    """Turn ``/api``, ``api/`` or ``/api/*`` into the pattern ``/api/*``."""
    prefix = path_prefix.strip()
    if prefix.endswith("*"):
        prefix = prefix[:-1]
    prefix = prefix.strip("/")
    if not prefix or "*" in prefix:
        raise ValueError(f"Invalid path prefix: {path_prefix!r}")
    return f"/{prefix}/*"


class RoutingBinder:
    """Binds routing rules and web ACLs onto distributions of a finalized graph."""

    def __init__(self, graph: DependencyGraph) -> None:
        if not isinstance(graph, DependencyGraph):
            raise BindingOrderError("<graph>", "routing requires a finalized dependency graph")
        self._graph = graph
        self._rules: dict[str, list[RoutingRule]] = {}
        self._web_acls: dict[str, str] = {}

    def bind(
        self,
        distribution: str,
        api_endpoint: str,
        path_prefix: str,
        priority: int = 1,
    ) -> RoutingRule:
        """Route requests under *path_prefix* on *distribution* to *api_endpoint*.

        Raises:
            BindingOrderError: either node is missing from the graph or has the wrong kind.
            ValueError: the prefix is malformed or the priority does not beat the default rule.
            ConflictingRouteError: a pattern equal to, nested in or enclosing this
                one is already bound at this priority.
        """
        self._require(distribution, ResourceKind.CONTENT_DISTRIBUTION)
        api = self._require(api_endpoint, ResourceKind.API_ENDPOINT)
        if priority <= DEFAULT_PRIORITY:
            raise ValueError(f"API route priority must be greater than {DEFAULT_PRIORITY}, got {priority}")

        pattern = normalize_path_prefix(path_prefix)
        rules = self._rules_for(distribution)
        for existing in rules:
            if existing.priority == priority and _overlaps(existing.path_pattern, pattern):
                raise ConflictingRouteError(distribution, pattern, priority)

        rule = RoutingRule(
            path_pattern=pattern,
            target=api_endpoint,
            priority=priority,
            origin_domain=_origin_domain(api),
            allowed_methods=_API_METHODS,
            cache_enabled=False,
            viewer_protocol="redirect-to-https",
        )
        rules.append(rule)
        routing_rules_bound_total.inc()
        _log.info(
            "route_bound",
            distribution=distribution,
            pattern=pattern,
            target=api_endpoint,
            priority=priority,
            origin=rule.origin_domain,
        )
        return rule

    def attach_web_acl(self, distribution: str, reference: RemoteReference) -> str:
        """Attach the firewall ACL held by a resolved remote reference.

        Raises:
            UnresolvedRemoteReferenceError: the reference has not been resolved.
            ConflictingRouteError: a different ACL is already attached.
        """
        self._require(distribution, ResourceKind.CONTENT_DISTRIBUTION)
        acl_id = reference.value
        current = self._web_acls.get(distribution)
        if current is not None and current != acl_id:
            raise ConflictingRouteError(distribution, "web-acl", DEFAULT_PRIORITY)
        self._web_acls[distribution] = acl_id
        self._rules_for(distribution)
        _log.info("web_acl_attached", distribution=distribution, reference=reference.alias)
        return acl_id

    def rules(self, distribution: str) -> tuple[RoutingRule, ...]:
        """Rules of *distribution*, highest priority first, then in bind order."""
        self._require(distribution, ResourceKind.CONTENT_DISTRIBUTION)
        rules = self._rules_for(distribution)
        return tuple(sorted(rules, key=lambda rule: -rule.priority))

    def bindings(self) -> tuple[DistributionBinding, ...]:
        """One binding per touched distribution, in graph order."""
        names = sorted(self._rules, key=self._graph.position)
        return tuple(
            DistributionBinding(
                distribution=name,
                web_acl_id=self._web_acls.get(name),
                rules=self.rules(name),
            )
            for name in names
        )

    def _rules_for(self, distribution: str) -> list[RoutingRule]:
        rules = self._rules.get(distribution)
        if rules is None:
            node = self._graph[distribution]
            rules = [
                RoutingRule(
                    path_pattern=DEFAULT_PATH_PATTERN,
                    target=distribution,
                    priority=DEFAULT_PRIORITY,
                    origin_domain=str(node.output("originDomain") or ""),
                )
            ]
            self._rules[distribution] = rules
        return rules

    def _require(self, name: str, kind: ResourceKind) -> ResourceNode:
        node = self._graph.get(name)
        if node is None:
            raise BindingOrderError(name, "resource is not part of the finalized graph")
        if node.kind != kind:
            raise BindingOrderError(name, f"expected kind '{kind}', found '{node.kind}'")
        return node


def _origin_domain(api: ResourceNode) -> str:
    url = api.output("url")
    if not url:
        raise BindingOrderError(api.name, "API endpoint has no 'url' to route to")
    parsed = urlparse(str(url))
    return parsed.netloc or parsed.path.split("/")[0]


def _overlaps(first: str, second: str) -> bool:
    """True if one ``/prefix/*`` pattern equals or contains the other."""
    if DEFAULT_PATH_PATTERN in (first, second):
        return False
    a, b = first[:-1], second[:-1]
    return a.startswith(b) or b.startswith(a)
