"""Workflow execution engine.

``WorkflowExecutor`` lives in ``relayflow.executor.engine``; it depends on
the node handlers, which in turn depend on the context and resolver
exported here.
"""

from .context import ExecutionContext, LoopFrame
from .errors import (
    CycleError,
    ExecutionError,
    InvalidExpressionError,
    InvalidLoopSourceError,
    MissingCredentialsError,
    MissingHandlerError,
    NodeExecutionError,
    WorkflowExecutionError,
)
from .graph import order
from .resolver import resolve, resolve_deep

__all__ = [
    "CycleError",
    "ExecutionContext",
    "ExecutionError",
    "InvalidExpressionError",
    "InvalidLoopSourceError",
    "LoopFrame",
    "MissingCredentialsError",
    "MissingHandlerError",
    "NodeExecutionError",
    "WorkflowExecutionError",
    "order",
    "resolve",
    "resolve_deep",
]
