"""Remote reference data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from stackcomposer.errors import UnresolvedRemoteReferenceError


class ResolutionState(StrEnum):
    """Lifecycle of a remote reference within one composition pass."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class RemoteScope:
    """Region/account qualifier of a value living outside the deployment scope."""

    region: str
    account: str | None = None

    def __str__(self) -> str:
        return f"{self.account}/{self.region}" if self.account else self.region


@dataclass
class RemoteReference:
    """A (scope, name) pair whose value is fetched once per pass.

    Created pending when the pass starts, then resolved or failed exactly
    once. A settled reference never changes again.
    """

    alias: str
    scope: RemoteScope
    name: str
    _state: ResolutionState = field(default=ResolutionState.PENDING, init=False)
    _value: str | None = field(default=None, init=False, repr=False)
    _error: BaseException | None = field(default=None, init=False, repr=False)

    @property
    def key(self) -> tuple[RemoteScope, str]:
        return (self.scope, self.name)

    @property
    def state(self) -> ResolutionState:
        return self._state

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def resolved(self) -> bool:
        return self._state is ResolutionState.RESOLVED

    @property
    def value(self) -> str:
        """Resolved value. Raises UnresolvedRemoteReferenceError otherwise."""
        if self._state is not ResolutionState.RESOLVED or self._value is None:
            raise UnresolvedRemoteReferenceError(self.alias, self._state.value)
        return self._value

    def mark_resolved(self, value: str) -> None:
        self._settle(ResolutionState.RESOLVED)
        self._value = value

    def mark_failed(self, error: BaseException) -> None:
        self._settle(ResolutionState.FAILED)
        self._error = error

    def _settle(self, state: ResolutionState) -> None:
        if self._state is not ResolutionState.PENDING:
            raise RuntimeError(f"Remote reference '{self.alias}' already {self._state.value}")
        self._state = state
