"""Declarative input: the JSON manifest and the plan built from it."""

from stackcomposer.manifest.loader import (
    CompositionPlan,
    Manifest,
    RouteDirective,
    SuppressionDirective,
    WebAclDirective,
    load_manifest,
    parse_manifest,
)

__all__ = [
    "CompositionPlan",
    "Manifest",
    "RouteDirective",
    "SuppressionDirective",
    "WebAclDirective",
    "load_manifest",
    "parse_manifest",
]
