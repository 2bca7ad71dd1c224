"""Config publisher interface.

ConfigPublisher -- ABC every publisher must implement. Publishers receive
                   the artifact only after the pass reached ``emitted`` and
                   must raise PublishError rather than fail silently: a
                   runtime client with no config cannot start.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from stackcomposer.models.artifact import ConfigArtifact


class ConfigPublisher(ABC):
    """Abstract base class for all config artifact publishers."""

    @property
    @abstractmethod
    def publisher_name(self) -> str:
        """Human-readable publisher identifier used in metrics and logs."""

    @property
    @abstractmethod
    def target(self) -> str:
        """Where the artifact goes (path or URL)."""

    @abstractmethod
    async def publish(self, artifact: ConfigArtifact) -> None:
        """Deliver *artifact* to the external runtime-config consumer.

        Raises:
            PublishError: delivery failed.
        """
