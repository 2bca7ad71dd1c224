"""Policy suppression data structures."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SuppressionEntry:
    """An accepted policy exception attached to one graph node.

    ``applies_to`` narrows the suppression to findings matching one of the
    regular expressions; empty means every finding of ``rule_id``.
    ``path_pattern`` records the directive that produced the entry.
    """

    node: str
    rule_id: str
    justification: str
    applies_to: tuple[str, ...] = ()
    path_pattern: str = ""
