"""Remote reference resolver.

Resolution is read-once and eager: every declared reference is fetched
before the dependency graph is finalized, and ``resolve_all`` only returns
once all reads have finished (success or failure). Retries are private to
this module and bounded by configuration; callers only ever see the final
outcome.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from stackcomposer.errors import NotFoundError, ScopeUnavailableError
from stackcomposer.models.remote import RemoteScope
from stackcomposer.observability.metrics import remote_resolution_seconds, remote_resolutions_total
from stackcomposer.remote.stores import ParameterStore
from stackcomposer.remote.table import RemoteReferenceTable

_log = structlog.get_logger(component="remote.resolver")


class RemoteReferenceResolver:
    """Fetches values that live outside the current deployment scope.

    Args:
        store:           backend performing the actual reads.
        timeout_seconds: bound on a single read attempt.
        max_retries:     extra attempts after a ScopeUnavailableError (0 = one attempt).
        backoff_seconds: base delay, doubled after each failed attempt.
        concurrency:     maximum reads in flight during ``resolve_all``.
    """

    def __init__(
        self,
        store: ParameterStore,
        timeout_seconds: float = 10.0,
        max_retries: int = 0,
        backoff_seconds: float = 0.5,
        concurrency: int = 8,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._store = store
        self._timeout = timeout_seconds
        self._max_retries = max(0, max_retries)
        self._backoff = backoff_seconds
        self._concurrency = concurrency

    async def resolve(self, scope: RemoteScope, name: str) -> str:
        """Return the value stored under *name* in *scope*.

        Raises:
            ValueError: scope region or name is empty.
            NotFoundError: the scope has no such name (never retried).
            ScopeUnavailableError: the scope could not be reached after all attempts.
        """
        if scope is None or not scope.region:
            raise ValueError("remote scope must name a region")
        if not name:
            raise ValueError("remote parameter name must not be empty")

        attempt = 0
        while True:
            try:
                return await self._read_once(scope, name)
            except ScopeUnavailableError as exc:
                if attempt >= self._max_retries:
                    raise
                delay = self._backoff * (2**attempt)
                attempt += 1
                _log.warning(
                    "remote_read_retry",
                    scope=str(scope),
                    parameter=name,
                    attempt=attempt,
                    delay_seconds=delay,
                    reason=exc.reason,
                )
                await asyncio.sleep(delay)

    async def _read_once(self, scope: RemoteScope, name: str) -> str:
        t_start = time.monotonic()
        try:
            value = await asyncio.wait_for(self._store.fetch(scope, name), timeout=self._timeout)
        except TimeoutError as exc:
            remote_resolutions_total.labels(outcome="unavailable").inc()
            raise ScopeUnavailableError(scope, name, f"timed out after {self._timeout}s") from exc
        except NotFoundError:
            remote_resolutions_total.labels(outcome="not_found").inc()
            raise
        except ScopeUnavailableError:
            remote_resolutions_total.labels(outcome="unavailable").inc()
            raise
        finally:
            remote_resolution_seconds.observe(time.monotonic() - t_start)

        remote_resolutions_total.labels(outcome="resolved").inc()
        _log.debug("remote_read", store=self._store.store_name, scope=str(scope), parameter=name)
        return value

    async def resolve_all(self, table: RemoteReferenceTable) -> None:
        """Resolve every pending reference in *table*, then join.

        Distinct (scope, name) pairs are read concurrently and only once, even
        when several aliases share a pair. Every pending reference is settled
        before this returns. If any read failed, the first failure in
        declaration order is raised.
        """
        pending = table.pending()
        if not pending:
            return

        semaphore = asyncio.Semaphore(self._concurrency)
        keys = list(dict.fromkeys(ref.key for ref in pending))

        async def _bounded(scope: RemoteScope, name: str) -> str:
            async with semaphore:
                return await self.resolve(scope, name)

        _log.info("remote_resolution_started", references=len(pending), distinct_reads=len(keys))
        results = await asyncio.gather(*(_bounded(scope, name) for scope, name in keys), return_exceptions=True)
        outcomes = dict(zip(keys, results, strict=True))

        first_error: BaseException | None = None
        for ref in pending:
            outcome = outcomes[ref.key]
            if isinstance(outcome, BaseException):
                ref.mark_failed(outcome)
                if first_error is None:
                    first_error = outcome
                _log.error(
                    "remote_reference_failed",
                    alias=ref.alias,
                    scope=str(ref.scope),
                    parameter=ref.name,
                    error=str(outcome),
                )
            else:
                ref.mark_resolved(outcome)

        if first_error is not None:
            raise first_error
        _log.info("remote_resolution_completed", references=len(pending))
