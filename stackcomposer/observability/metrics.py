"""Prometheus metrics for stackcomposer.

All collectors are module-level and registered on the default registry;
callers record through ``.labels(...)``. A run is one short-lived process,
so values leave it through ``write_metrics`` (a textfile for the
node_exporter textfile collector or a CI artifact) rather than a scrape
endpoint.
"""

from __future__ import annotations

from pathlib import Path

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, write_to_textfile

remote_resolutions_total = Counter(
    "stackcomposer_remote_resolutions_total",
    "Remote reference reads, by outcome.",
    ["outcome"],  # resolved | not_found | unavailable
)

remote_resolution_seconds = Histogram(
    "stackcomposer_remote_resolution_seconds",
    "Wall-clock duration of a single remote reference read.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

composition_passes_total = Counter(
    "stackcomposer_composition_passes_total",
    "Composition passes, by outcome and (for aborts) the state reached.",
    ["outcome", "state"],
)

routing_rules_bound_total = Counter(
    "stackcomposer_routing_rules_bound_total",
    "Routing rules attached to content distributions.",
)

artifacts_published_total = Counter(
    "stackcomposer_artifacts_published_total",
    "Config artifact publications, by publisher and success.",
    ["publisher", "success"],
)


def write_metrics(path: str | Path, registry: CollectorRegistry = REGISTRY) -> None:
    """Write *registry* to *path* in the Prometheus text format.

    The file is replaced atomically; missing parent directories are created.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(target), registry)
