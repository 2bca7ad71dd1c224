"""Policy suppression registry.

Records accepted policy exceptions for downstream validators. Directives are
written against node paths (``/<stack>/<name>``, optionally with ``fnmatch``
wildcards) but stored against node identities resolved after finalization,
so later renames of path strings cannot silently detach them. Nodes are
never modified.
"""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable

import structlog

from stackcomposer.errors import UnknownSuppressionTargetError
from stackcomposer.graph.graph import DependencyGraph
from stackcomposer.models.suppression import SuppressionEntry

_log = structlog.get_logger(component="suppression")


class SuppressionRegistry:
    """Metadata table: node id -> rule id -> SuppressionEntry list.

    A node may carry several entries for one rule when overlapping
    directives address it; the rule is suppressed if any of them matches.
    The resulting table does not depend on the order directives arrive in.
    """

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph
        self._directives: dict[tuple[str, str], tuple[SuppressionEntry, ...]] = {}
        self._entries: dict[str, dict[str, list[SuppressionEntry]]] = {}

    def suppress(
        self,
        path_pattern: str,
        rule_id: str,
        justification: str,
        applies_to: Iterable[str] | None = None,
        apply_to_children: bool = False,
    ) -> tuple[SuppressionEntry, ...]:
        """Suppress *rule_id* on every node addressed by *path_pattern*.

        Re-applying the same (path_pattern, rule_id) is a no-op. Returns the
        entries this directive produced for the addressed nodes.

        Raises:
            ValueError: empty rule id/justification or an invalid applies_to regex.
            UnknownSuppressionTargetError: the pattern addresses no node.
        """
        if not rule_id:
            raise ValueError("rule id must not be empty")
        if not justification.strip():
            raise ValueError(f"suppression of '{rule_id}' needs a justification")
        patterns = tuple(applies_to or ())
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid appliesTo pattern {pattern!r}: {exc}") from exc

        targets = self._match(path_pattern, apply_to_children)
        if not targets:
            raise UnknownSuppressionTargetError(path_pattern)

        key = (path_pattern, rule_id)
        if key in self._directives:
            _log.debug("suppression_already_applied", path=path_pattern, rule_id=rule_id)
            return self._directives[key]

        created = tuple(
            SuppressionEntry(
                node=node,
                rule_id=rule_id,
                justification=justification.strip(),
                applies_to=patterns,
                path_pattern=path_pattern,
            )
            for node in targets
        )
        for entry in created:
            bucket = self._entries.setdefault(entry.node, {}).setdefault(rule_id, [])
            bucket.append(entry)
            bucket.sort(key=_entry_sort_key)
        self._directives[key] = created
        _log.info("suppression_applied", path=path_pattern, rule_id=rule_id, nodes=targets)
        return created

    def is_suppressed(self, node: str, rule_id: str, finding: str | None = None) -> bool:
        """True if any entry suppresses *rule_id* on *node* (for *finding*, when narrowed)."""
        for entry in self._entries.get(node, {}).get(rule_id, ()):
            if not entry.applies_to:
                return True
            if finding is not None and any(re.search(pattern, finding) for pattern in entry.applies_to):
                return True
        return False

    def entries(self) -> tuple[SuppressionEntry, ...]:
        """Every entry, in graph order then rule id then directive."""
        return tuple(entry for node in self._ordered_nodes() for entry in self.entries_for(node))

    def entries_for(self, node: str) -> tuple[SuppressionEntry, ...]:
        rules = self._entries.get(node, {})
        return tuple(entry for rule_id in sorted(rules) for entry in rules[rule_id])

    def as_metadata(self) -> dict[str, dict[str, str]]:
        """``{node path: {rule id: justification}}`` for downstream validators.

        Distinct justifications for the same rule are sorted and joined with
        ``"; "``.
        """
        metadata: dict[str, dict[str, str]] = {}
        for node in self._ordered_nodes():
            rules = self._entries[node]
            metadata[self._graph[node].path] = {
                rule_id: "; ".join(sorted({entry.justification for entry in rules[rule_id]}))
                for rule_id in sorted(rules)
            }
        return metadata

    def __len__(self) -> int:
        return sum(len(bucket) for rules in self._entries.values() for bucket in rules.values())

    def _ordered_nodes(self) -> list[str]:
        return sorted(self._entries, key=self._graph.position)

    def _match(self, path_pattern: str, apply_to_children: bool) -> list[str]:
        pattern = path_pattern.rstrip("/") or "/"
        matched: list[str] = []
        for node in self._graph:
            path = node.path
            if fnmatch.fnmatchcase(path, pattern):
                matched.append(node.name)
            elif apply_to_children and (pattern == "/" or fnmatch.fnmatchcase(path, f"{pattern}/*")):
                matched.append(node.name)
        return matched


def _entry_sort_key(entry: SuppressionEntry) -> tuple[str, tuple[str, ...], str]:
    return (entry.path_pattern, entry.applies_to, entry.justification)
