"""Failure taxonomy for the composition pass.

Every error carries ``identifier``: the node name, reference, path pattern,
parameter name or artifact key the operator has to fix before re-running
the pass. None of these are recoverable within a pass.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stackcomposer.models.remote import RemoteScope


class ComposerError(Exception):
    """Base class for every fatal composition error."""

    def __init__(self, message: str, identifier: str) -> None:
        super().__init__(message)
        self.identifier = identifier


# ---------------------------------------------------------------------------
# Remote reference resolution
# ---------------------------------------------------------------------------


class ScopeUnavailableError(ComposerError):
    """The remote scope could not be reached (network or permission failure)."""

    def __init__(self, scope: RemoteScope, name: str, reason: str) -> None:
        super().__init__(
            f"Scope '{scope}' unavailable while reading '{name}': {reason}",
            identifier=f"{scope}:{name}",
        )
        self.scope = scope
        self.name = name
        self.reason = reason


class NotFoundError(ComposerError):
    """The remote scope has no value under the requested name."""

    def __init__(self, scope: RemoteScope, name: str) -> None:
        super().__init__(f"Parameter '{name}' not found in scope '{scope}'", identifier=f"{scope}:{name}")
        self.scope = scope
        self.name = name


class UnresolvedRemoteReferenceError(ComposerError):
    """A remote value was read before its reference was resolved."""

    def __init__(self, alias: str, state: str) -> None:
        super().__init__(f"Remote reference '{alias}' is {state}, not resolved", identifier=alias)
        self.alias = alias
        self.state = state


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------


class DuplicateNodeError(ComposerError):
    """Two declarations share one logical name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Resource '{name}' is declared more than once", identifier=name)
        self.name = name


class DanglingReferenceError(ComposerError):
    """A declaration references a node, attribute or remote alias that does not exist."""

    def __init__(self, node: str, reference: str) -> None:
        super().__init__(f"Resource '{node}' references unknown '{reference}'", identifier=f"{node} -> {reference}")
        self.node = node
        self.reference = reference


class CyclicDependencyError(ComposerError):
    """The declarations contain a dependency cycle."""

    def __init__(self, cycle: list[str]) -> None:
        path = " -> ".join(cycle)
        super().__init__(f"Dependency cycle detected: {path}", identifier=path)
        self.cycle = cycle


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class ConflictingRouteError(ComposerError):
    """A routing rule collides with an existing rule at the same priority."""

    def __init__(self, distribution: str, path_pattern: str, priority: int) -> None:
        super().__init__(
            f"Route '{path_pattern}' at priority {priority} already bound on distribution '{distribution}'",
            identifier=f"{distribution}:{path_pattern}@{priority}",
        )
        self.distribution = distribution
        self.path_pattern = path_pattern
        self.priority = priority


class BindingOrderError(ComposerError):
    """Routing was attempted against a graph or node that is not finalized/bindable."""

    def __init__(self, node: str, reason: str) -> None:
        super().__init__(f"Cannot bind '{node}': {reason}", identifier=node)
        self.node = node
        self.reason = reason


# ---------------------------------------------------------------------------
# Synthesis, suppression, parameters, input, publishing
# ---------------------------------------------------------------------------


class MissingOutputError(ComposerError):
    """A required config artifact field was not produced by any node."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Config output '{key}' missing: {reason}", identifier=key)
        self.key = key


class UnknownSuppressionTargetError(ComposerError):
    """A suppression path pattern matched no node in the finalized graph."""

    def __init__(self, path_pattern: str) -> None:
        super().__init__(f"Suppression path '{path_pattern}' matches no resource", identifier=path_pattern)
        self.path_pattern = path_pattern


class MissingParameterError(ComposerError):
    """A required parameter had no value from any source."""

    def __init__(self, name: str, sources: str = "") -> None:
        detail = f" (checked: {sources})" if sources else ""
        super().__init__(f"Parameter '{name}' has no value{detail}", identifier=name)
        self.name = name


class ManifestError(ComposerError):
    """The declaration document is malformed."""

    def __init__(self, location: str, detail: str) -> None:
        super().__init__(f"Invalid manifest at '{location}': {detail}", identifier=location)
        self.location = location
        self.detail = detail


class PublishError(ComposerError):
    """The config artifact could not be handed to the external publisher."""

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Publishing to '{target}' failed: {reason}", identifier=target)
        self.target = target
        self.reason = reason


# ---------------------------------------------------------------------------
# Pass lifecycle
# ---------------------------------------------------------------------------


class CompositionStateError(ComposerError):
    """An operation was invoked in a state that does not permit it."""

    def __init__(self, state: str, operation: str) -> None:
        super().__init__(f"'{operation}' is not allowed in state '{state}'", identifier=state)
        self.state = state
        self.operation = operation


class CompositionAborted(ComposerError):
    """The composition pass failed; nothing was emitted.

    ``state`` is the state the pass was in when ``cause`` was raised.
    """

    def __init__(self, state: str, cause: Exception) -> None:
        identifier = cause.identifier if isinstance(cause, ComposerError) else state
        super().__init__(f"Composition aborted in state '{state}': {cause}", identifier=identifier)
        self.state = state
        self.cause = cause
