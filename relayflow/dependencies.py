"""Wiring of stores, handlers and publishers into a WorkflowExecutor."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
import structlog

from relayflow.core.redis_client import close_redis_client
from relayflow.credentials import CredentialStore
from relayflow.database import DatabaseManager
from relayflow.executions import (
    ExecutionStore,
    ProgressPublisher,
    RedisProgressPublisher,
    SQLExecutionStore,
)
from relayflow.executor.engine import WorkflowExecutor
from relayflow.nodes import create_default_registry
from relayflow.workflows import SQLWorkflowStore, WorkflowStore

logger = structlog.get_logger()

_credential_store: Optional[CredentialStore] = None


def configure_credential_store(store: Optional[CredentialStore]) -> None:
    """Set the credential store used by executors built in this process."""
    global _credential_store
    _credential_store = store


def get_credential_store() -> Optional[CredentialStore]:
    return _credential_store


def build_executor(
    workflow_store: WorkflowStore,
    execution_store: ExecutionStore,
    publisher: Optional[ProgressPublisher] = None,
    credential_store: Optional[CredentialStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> WorkflowExecutor:
    """Assemble an executor from explicit collaborators."""
    registry = create_default_registry(
        credential_store=credential_store or _credential_store,
        transport=transport,
    )
    return WorkflowExecutor(
        workflow_store=workflow_store,
        execution_store=execution_store,
        registry=registry,
        publisher=publisher,
    )


@asynccontextmanager
async def executor_session(
    database_url: Optional[str] = None,
    publisher: Optional[ProgressPublisher] = None,
) -> AsyncIterator[WorkflowExecutor]:
    """Yield an executor backed by the SQL stores and Redis progress channel.

    Engine and Redis connections are bound to the running event loop, so
    both are released when the block exits.
    """
    db = DatabaseManager(database_url)
    await db.initialize(create_tables=True)
    try:
        yield build_executor(
            workflow_store=SQLWorkflowStore(db),
            execution_store=SQLExecutionStore(db),
            publisher=publisher or RedisProgressPublisher(),
        )
    finally:
        await db.close()
        await close_redis_client()
