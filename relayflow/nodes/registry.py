"""Node handler registry."""

from typing import Dict, List, Optional

import httpx
import structlog

from relayflow.credentials import CredentialStore
from relayflow.executor.errors import MissingHandlerError
from .actions import (
    EmailHandler,
    HttpRequestHandler,
    SheetsHandler,
    SlackHandler,
    WebhookHandler,
)
from .base import NodeHandler
from .control import (
    ConditionHandler,
    DelayHandler,
    LoopHandler,
    TriggerHandler,
    VariableHandler,
)

logger = structlog.get_logger()


class NodeHandlerRegistry:
    """Maps node type strings to handler instances.

    The registry only looks handlers up; it never executes them.
    """

    def __init__(self):
        self._handlers: Dict[str, NodeHandler] = {}
        self.logger = logger.bind(component="node_registry")

    def register(self, node_type: str, handler: NodeHandler) -> None:
        """Register ``handler`` for ``node_type``, replacing any previous one."""
        if node_type in self._handlers:
            self.logger.debug("Replacing node handler", node_type=node_type)
        self._handlers[node_type] = handler

    def get(self, node_type: str, raise_missing: bool = True) -> Optional[NodeHandler]:
        """Look up the handler for ``node_type``.

        Raises ``MissingHandlerError`` for unknown types unless
        ``raise_missing`` is false, in which case None is returned.
        """
        handler = self._handlers.get(node_type)
        if handler is None and raise_missing:
            raise MissingHandlerError(node_type)
        return handler

    def has(self, node_type: str) -> bool:
        return node_type in self._handlers

    @property
    def types(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, node_type: str) -> bool:
        return self.has(node_type)

    def __len__(self) -> int:
        return len(self._handlers)


def create_default_registry(
    credential_store: Optional[CredentialStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NodeHandlerRegistry:
    """Registry with one handler per supported node type."""
    registry = NodeHandlerRegistry()

    condition = ConditionHandler()
    registry.register("trigger", TriggerHandler())
    registry.register("condition", condition)
    registry.register("ifElse", condition)
    registry.register("loop", LoopHandler())
    registry.register("variable", VariableHandler())
    registry.register("delay", DelayHandler())

    registry.register("http", HttpRequestHandler(transport=transport))
    registry.register("webhook", WebhookHandler(transport=transport))
    registry.register("slack", SlackHandler(credential_store, transport=transport))
    registry.register("email", EmailHandler(credential_store, transport=transport))
    registry.register("sheets", SheetsHandler(credential_store, transport=transport))

    return registry
