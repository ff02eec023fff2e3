"""Credential store collaborators used by integration handlers."""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Optional, Tuple

import structlog

from relayflow.exceptions import NotFoundError
from .schemas import Connection

logger = structlog.get_logger()

RefreshCallback = Callable[[str, Connection], Awaitable[Connection]]


class CredentialStore(ABC):
    """Per-user connection lookup."""

    @abstractmethod
    async def get_connection(self, user_id: str, service: str) -> Optional[Connection]:
        """Return the user's connection for ``service`` or ``None``."""

    @abstractmethod
    async def refresh(self, user_id: str, service: str) -> Connection:
        """Refresh an expired connection and return the updated one."""


class InMemoryCredentialStore(CredentialStore):
    """Dictionary-backed credential store.

    ``refresher`` is called with ``(user_id, connection)`` and must return
    the refreshed connection; without one, refresh is unsupported.
    """

    def __init__(self, refresher: Optional[RefreshCallback] = None):
        self._connections: Dict[Tuple[str, str], Connection] = {}
        self.refresher = refresher

    def add(self, user_id: str, connection: Connection) -> None:
        self._connections[(user_id, connection.service)] = connection

    async def get_connection(self, user_id: str, service: str) -> Optional[Connection]:
        return self._connections.get((user_id, service))

    async def refresh(self, user_id: str, service: str) -> Connection:
        connection = self._connections.get((user_id, service))
        if connection is None:
            raise NotFoundError(f"{service} connection not found for user")
        if self.refresher is None or not connection.refresh_token:
            raise NotFoundError(f"No refresh token found for {service} connection")
        refreshed = await self.refresher(user_id, connection)
        self._connections[(user_id, service)] = refreshed
        logger.info("Refreshed connection", user_id=user_id, service=service)
        return refreshed


async def get_valid_connection(
    store: CredentialStore, user_id: str, service: str
) -> Optional[Connection]:
    """Fetch a connection, refreshing it first when the token has expired."""
    connection = await store.get_connection(user_id, service)
    if connection is None:
        return None
    if connection.is_expired():
        connection = await store.refresh(user_id, service)
    return connection
