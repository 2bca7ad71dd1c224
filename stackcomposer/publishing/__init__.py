"""Config artifact publishing.

Hands the synthesized ConfigArtifact, by value, to the external runtime
configuration consumer.

Exports:
    ConfigPublisher      -- Abstract base for all publishers.
    FileConfigPublisher  -- Atomic JSON file write.
    HttpConfigPublisher  -- JSON PUT to an HTTP endpoint.
    build_publisher      -- Factory used by the CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from stackcomposer.publishing.base import ConfigPublisher
from stackcomposer.publishing.file import FileConfigPublisher
from stackcomposer.publishing.http import HttpConfigPublisher

if TYPE_CHECKING:
    from stackcomposer.models.config import PublisherConfig

_log = structlog.get_logger(component="publishing")

__all__ = [
    "ConfigPublisher",
    "FileConfigPublisher",
    "HttpConfigPublisher",
    "build_publisher",
]


def build_publisher(config: PublisherConfig) -> ConfigPublisher | None:
    """Select the publisher from configuration.

    The HTTP endpoint wins when both a URL and a path are configured. With
    neither, the artifact is only returned to the caller.
    """
    if config.url:
        _log.info("http_publisher_enabled", url=config.url)
        return HttpConfigPublisher(url=config.url, timeout=config.timeout_seconds)
    if config.path:
        _log.info("file_publisher_enabled", path=config.path)
        return FileConfigPublisher(path=config.path)
    _log.debug("no_publisher_configured")
    return None
