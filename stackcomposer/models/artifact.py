"""Runtime config artifact."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class ConfigArtifact(Mapping[str, str]):
    """Ordered, immutable mapping of named outputs handed to the runtime client.

    Consumers receive copies (``as_dict``/``to_json``), never this object's
    internals.
    """

    entries: tuple[tuple[str, str], ...]

    def __getitem__(self, key: str) -> str:
        for name, value in self.entries:
            if name == key:
                return value
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def as_dict(self) -> dict[str, str]:
        return dict(self.entries)

    def to_json(self) -> bytes:
        """Serialise in artifact order; identical artifacts give identical bytes."""
        return json.dumps(self.as_dict(), indent=2, ensure_ascii=False).encode("utf-8") + b"\n"
