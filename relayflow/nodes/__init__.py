"""Node handlers and the handler registry."""

from .base import NodeConfig, NodeHandler, NodeResult
from .control import (
    ConditionHandler,
    DelayHandler,
    LoopHandler,
    TriggerHandler,
    VariableHandler,
)
from .registry import NodeHandlerRegistry, create_default_registry

__all__ = [
    "ConditionHandler",
    "DelayHandler",
    "LoopHandler",
    "NodeConfig",
    "NodeHandler",
    "NodeHandlerRegistry",
    "NodeResult",
    "TriggerHandler",
    "VariableHandler",
    "create_default_registry",
]
