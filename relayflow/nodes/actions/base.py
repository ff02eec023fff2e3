"""Shared plumbing for handlers that call external HTTP APIs."""

from typing import Any, ClassVar, Optional

import httpx

from relayflow.config import settings
from relayflow.credentials import CredentialStore, get_valid_connection
from relayflow.exceptions import NotFoundError
from relayflow.executor.context import ExecutionContext
from relayflow.executor.errors import MissingCredentialsError
from relayflow.nodes.base import NodeHandler, NodeResult


class HttpActionHandler(NodeHandler):
    """Handler that talks HTTP through ``httpx``.

    ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__()
        self.transport = transport
        self.timeout = timeout if timeout is not None else settings.http_timeout

    def client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport, **kwargs)


class CredentialedHandler(HttpActionHandler):
    """Handler that needs the run owner's connection to a service."""

    service: ClassVar[str] = ""

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(transport=transport, timeout=timeout)
        self.credential_store = credential_store

    async def access_token(self, context: ExecutionContext) -> str:
        """Return a usable access token, refreshing an expired one first."""
        if self.credential_store is None:
            raise MissingCredentialsError(
                f"No credential store configured for {self.service}", service=self.service
            )
        try:
            connection = await get_valid_connection(
                self.credential_store, context.user_id, self.service
            )
        except NotFoundError as e:
            raise MissingCredentialsError(str(e), service=self.service)
        if connection is None:
            raise MissingCredentialsError(
                f"{self.service.capitalize()} connection not found. "
                f"Please connect your {self.service} account.",
                service=self.service,
            )
        return connection.access_token

    async def execute(self, config: Any, context: ExecutionContext) -> NodeResult:
        try:
            return await super().execute(config, context)
        except MissingCredentialsError as e:
            self.logger.warning("Missing credentials", service=self.service, user_id=context.user_id)
            return NodeResult.fail(e.message, error_code=e.error_code)


def response_body(response: httpx.Response) -> Any:
    """Parsed JSON body, falling back to text."""
    try:
        return response.json()
    except ValueError:
        return response.text
