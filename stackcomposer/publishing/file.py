"""File config publisher: writes the artifact JSON next to the web build."""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path

import structlog

from stackcomposer.errors import PublishError
from stackcomposer.models.artifact import ConfigArtifact
from stackcomposer.publishing.base import ConfigPublisher

_log = structlog.get_logger(component="publishing.file")


class FileConfigPublisher(ConfigPublisher):
    """Writes the artifact atomically (temp file + rename) to *path*."""

    def __init__(self, path: str | Path) -> None:
        if not str(path):
            raise ValueError("Publish path must not be empty")
        self._path = Path(path)

    @property
    def publisher_name(self) -> str:
        return "file"

    @property
    def target(self) -> str:
        return str(self._path)

    async def publish(self, artifact: ConfigArtifact) -> None:
        await asyncio.to_thread(self._write, artifact.to_json())
        _log.info("artifact_written", path=str(self._path), keys=len(artifact))

    def _write(self, payload: bytes) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PublishError(str(self._path), str(exc)) from exc
