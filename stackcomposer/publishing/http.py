"""HTTP config publisher.

PUTs the artifact JSON to a runtime-configuration endpoint. The body is the
flat artifact mapping so consumers need no stackcomposer-specific schema.
"""

from __future__ import annotations

import httpx
import structlog

from stackcomposer.errors import PublishError
from stackcomposer.models.artifact import ConfigArtifact
from stackcomposer.publishing.base import ConfigPublisher

_log = structlog.get_logger(component="publishing.http")


class HttpConfigPublisher(ConfigPublisher):
    """Delivers the artifact by PUTting a JSON body to a configurable URL.

    Args:
        url:       Full endpoint URL (must be HTTPS in production).
        headers:   Optional extra headers (e.g. Authorization).
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Publish url must not be empty")
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport

    @property
    def publisher_name(self) -> str:
        return "http"

    @property
    def target(self) -> str:
        return self._url

    async def publish(self, artifact: ConfigArtifact) -> None:
        """PUT *artifact*; raise PublishError on non-2xx, timeout or transport error."""
        request_headers = {
            "Content-Type": "application/json",
            **self._headers,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.put(
                    self._url,
                    content=artifact.to_json(),
                    headers=request_headers,
                )
        except httpx.TimeoutException as exc:
            _log.warning("publish_request_timeout", url=self._url)
            raise PublishError(self._url, "request timed out") from exc
        except httpx.HTTPError as exc:
            _log.warning("publish_http_error", url=self._url, error=str(exc))
            raise PublishError(self._url, str(exc)) from exc

        if not response.is_success:
            _log.warning(
                "publish_non_2xx_response",
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise PublishError(self._url, f"HTTP {response.status_code}")
        _log.info("artifact_published", url=self._url, keys=len(artifact))
