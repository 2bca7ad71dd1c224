"""Ordered registry of the remote references declared for one pass."""

from __future__ import annotations

from collections.abc import Iterator

from stackcomposer.errors import ManifestError
from stackcomposer.models.remote import RemoteReference, RemoteScope, ResolutionState


class RemoteReferenceTable:
    """Alias -> RemoteReference, in declaration order.

    The table owns the references; graph nodes only ever read resolved
    values through it.
    """

    def __init__(self) -> None:
        self._refs: dict[str, RemoteReference] = {}

    def declare(self, alias: str, scope: RemoteScope, name: str) -> RemoteReference:
        if not alias:
            raise ManifestError("remoteReferences", "reference id must not be empty")
        if alias in self._refs:
            raise ManifestError(f"remoteReferences.{alias}", "duplicate reference id")
        if not scope.region or not name:
            raise ManifestError(f"remoteReferences.{alias}", "region and name must not be empty")
        ref = RemoteReference(alias=alias, scope=scope, name=name)
        self._refs[alias] = ref
        return ref

    def get(self, alias: str) -> RemoteReference | None:
        return self._refs.get(alias)

    def __getitem__(self, alias: str) -> RemoteReference:
        return self._refs[alias]

    def __contains__(self, alias: object) -> bool:
        return alias in self._refs

    def __iter__(self) -> Iterator[RemoteReference]:
        return iter(self._refs.values())

    def __len__(self) -> int:
        return len(self._refs)

    def pending(self) -> list[RemoteReference]:
        return [ref for ref in self._refs.values() if ref.state is ResolutionState.PENDING]

    @property
    def all_resolved(self) -> bool:
        return all(ref.resolved for ref in self._refs.values())

    def fresh(self) -> RemoteReferenceTable:
        """A new table with the same declarations, every reference pending."""
        table = RemoteReferenceTable()
        for ref in self._refs.values():
            table.declare(ref.alias, ref.scope, ref.name)
        return table
