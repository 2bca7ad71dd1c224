"""Routing rule data structures."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PATH_PATTERN = "*"
DEFAULT_PRIORITY = 0


@dataclass(frozen=True)
class RoutingRule:
    """A path-based routing rule on a content distribution.

    ``target`` is the node id requests matching ``path_pattern`` are sent to.
    Higher ``priority`` wins over lower; the catch-all static content rule
    sits at priority 0.
    """

    path_pattern: str
    target: str
    priority: int
    origin_domain: str = ""
    allowed_methods: tuple[str, ...] = ("GET", "HEAD")
    cache_enabled: bool = True
    viewer_protocol: str = "redirect-to-https"

    @property
    def is_default(self) -> bool:
        return self.path_pattern == DEFAULT_PATH_PATTERN and self.priority == DEFAULT_PRIORITY


@dataclass(frozen=True)
class DistributionBinding:
    """Everything bound to one content distribution after the routing step."""

    distribution: str
    web_acl_id: str | None
    rules: tuple[RoutingRule, ...]
