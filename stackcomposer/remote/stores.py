"""Parameter store backends for remote reference reads.

Stores perform exactly one read per ``fetch`` call and translate backend
failures into the composer taxonomy:

    name absent in scope      -> NotFoundError
    transport / permissions   -> ScopeUnavailableError
"""

from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from stackcomposer.errors import NotFoundError, ScopeUnavailableError
from stackcomposer.models.remote import RemoteScope

_log = structlog.get_logger(component="remote.stores")


class ParameterStore(ABC):
    """Abstract backend holding named values per scope."""

    @property
    @abstractmethod
    def store_name(self) -> str:
        """Human-readable backend identifier used in logs."""

    @abstractmethod
    async def fetch(self, scope: RemoteScope, name: str) -> str:
        """Read the value stored under *name* in *scope*.

        Raises:
            NotFoundError: the scope has no such name.
            ScopeUnavailableError: the scope cannot be reached.
        """


class InMemoryParameterStore(ParameterStore):
    """Dict-backed store.

    Args:
        values:             ``{(scope, name): value}``.
        unavailable_scopes: scopes that behave as unreachable.
    """

    def __init__(
        self,
        values: Mapping[tuple[RemoteScope, str], str] | None = None,
        unavailable_scopes: set[RemoteScope] | None = None,
    ) -> None:
        self._values = dict(values or {})
        self._unavailable = set(unavailable_scopes or ())
        self.reads: list[tuple[RemoteScope, str]] = []

    @property
    def store_name(self) -> str:
        return "memory"

    def put(self, scope: RemoteScope, name: str, value: str) -> None:
        self._values[(scope, name)] = value

    def mark_unavailable(self, scope: RemoteScope) -> None:
        self._unavailable.add(scope)

    async def fetch(self, scope: RemoteScope, name: str) -> str:
        self.reads.append((scope, name))
        if scope in self._unavailable:
            raise ScopeUnavailableError(scope, name, "scope marked unavailable")
        try:
            return self._values[(scope, name)]
        except KeyError:
            raise NotFoundError(scope, name) from None


class SsmParameterStore(ParameterStore):
    """AWS Systems Manager Parameter Store, read across regions and accounts.

    The boto3 call is blocking, so it runs in a worker thread and the event
    loop stays free to drive other reads concurrently.

    Args:
        session:           boto3 session used for SSM/STS clients.
        role_arn_template: when set and the scope names an account, credentials
                           come from STS ``assume_role`` on
                           ``role_arn_template.format(account=...)``.
        with_decryption:   decrypt SecureString parameters.
        client_factory:    builds the SSM client for a scope (overrides the
                           session/role logic; used by tests).
    """

    def __init__(
        self,
        session: boto3.session.Session | None = None,
        role_arn_template: str = "",
        with_decryption: bool = True,
        client_factory: Callable[[RemoteScope], Any] | None = None,
    ) -> None:
        self._session = session or boto3.session.Session()
        self._role_arn_template = role_arn_template
        self._with_decryption = with_decryption
        self._client_factory = client_factory or self._build_client
        self._clients: dict[RemoteScope, Any] = {}
        self._lock = threading.Lock()

    @property
    def store_name(self) -> str:
        return "ssm"

    async def fetch(self, scope: RemoteScope, name: str) -> str:
        return await asyncio.to_thread(self._get_parameter, scope, name)

    def _get_parameter(self, scope: RemoteScope, name: str) -> str:
        try:
            client = self._client(scope)
            response = client.get_parameter(Name=name, WithDecryption=self._with_decryption)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code == "ParameterNotFound":
                raise NotFoundError(scope, name) from exc
            _log.warning("ssm_client_error", scope=str(scope), parameter=name, code=code)
            raise ScopeUnavailableError(scope, name, code or str(exc)) from exc
        except BotoCoreError as exc:
            _log.warning("ssm_transport_error", scope=str(scope), parameter=name, error=str(exc))
            raise ScopeUnavailableError(scope, name, str(exc)) from exc
        return str(response["Parameter"]["Value"])

    def _client(self, scope: RemoteScope) -> Any:
        with self._lock:
            client = self._clients.get(scope)
            if client is None:
                client = self._client_factory(scope)
                self._clients[scope] = client
            return client

    def _build_client(self, scope: RemoteScope) -> Any:
        if not (scope.account and self._role_arn_template):
            return self._session.client("ssm", region_name=scope.region)

        role_arn = self._role_arn_template.format(account=scope.account)
        sts = self._session.client("sts", region_name=scope.region)
        credentials = sts.assume_role(RoleArn=role_arn, RoleSessionName="stackcomposer")["Credentials"]
        _log.debug("ssm_assumed_role", scope=str(scope), role_arn=role_arn)
        return self._session.client(
            "ssm",
            region_name=scope.region,
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
        )
